"""Credential status and revocation for signed-in directory users."""

from __future__ import annotations

from dataclasses import dataclass

from passkey_auth.core.logging import get_logger
from passkey_auth.core.metrics import record_revocation
from passkey_auth.domain.exceptions import NoCredentialError
from passkey_auth.repositories import CredentialRepository
from passkey_auth.services.identity import IdentityDirectory

logger = get_logger(__name__)


@dataclass(frozen=True)
class CredentialStatus:
    has_credential: bool
    email: str


class PasskeyAccountService:
    """Operations authorised by a directory bearer token rather than a ceremony."""

    def __init__(self, credentials: CredentialRepository, directory: IdentityDirectory) -> None:
        self.credentials = credentials
        self.directory = directory

    def status(self, bearer_token: str) -> CredentialStatus:
        email = self.directory.verify_bearer_token(bearer_token)
        return CredentialStatus(
            has_credential=self.credentials.find_by_email(email) is not None,
            email=email,
        )

    def revoke(self, bearer_token: str) -> str:
        """Delete the caller's passkey and return the email it belonged to."""
        email = self.directory.verify_bearer_token(bearer_token)
        credential = self.credentials.find_by_email(email)
        if credential is None:
            raise NoCredentialError("No biometric credentials found")

        self.credentials.delete(credential.id)
        record_revocation()
        logger.info("Passkey revoked", extra={"email": email, "user_id": credential.id})
        return email
