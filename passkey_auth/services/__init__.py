"""Service layer entry points."""

from .account_service import CredentialStatus, PasskeyAccountService
from .authentication_service import PasskeyAuthenticationService, check_sign_count
from .challenge_sessions import (
    ChallengeSessionManager,
    ChallengeStore,
    InMemoryChallengeStore,
    RedisChallengeStore,
)
from .identity import DatabaseIdentityDirectory, IdentityDirectory
from .registration_service import PasskeyRegistrationService

__all__ = [
    "ChallengeSessionManager",
    "ChallengeStore",
    "CredentialStatus",
    "DatabaseIdentityDirectory",
    "IdentityDirectory",
    "InMemoryChallengeStore",
    "PasskeyAccountService",
    "PasskeyAuthenticationService",
    "PasskeyRegistrationService",
    "RedisChallengeStore",
    "check_sign_count",
]
