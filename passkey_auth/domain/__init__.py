"""Domain layer primitives (value objects, exceptions)."""

from . import exceptions
from .passkeys import (
    AuthenticationResult,
    CeremonyPurpose,
    CeremonyStart,
    ChallengeSession,
    DirectoryIdentity,
    IssuedChallenge,
    RegistrationResult,
    RelyingParty,
    normalize_email,
)

__all__ = [
    "AuthenticationResult",
    "CeremonyPurpose",
    "CeremonyStart",
    "ChallengeSession",
    "DirectoryIdentity",
    "IssuedChallenge",
    "RegistrationResult",
    "RelyingParty",
    "exceptions",
    "normalize_email",
]
