"""Repository layer for persistence access."""

from .account_repository import DirectoryAccountRepository
from .passkey_repository import CredentialRepository, PasskeyCredentialRepository

__all__ = [
    "CredentialRepository",
    "DirectoryAccountRepository",
    "PasskeyCredentialRepository",
]
