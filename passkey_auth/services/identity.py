"""Identity directory binding."""

from __future__ import annotations

from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from passkey_auth.core.logging import get_logger
from passkey_auth.core.security import decode_directory_token
from passkey_auth.domain import DirectoryIdentity, normalize_email
from passkey_auth.domain.exceptions import (
    RepositoryUnavailableError,
    UnauthorizedError,
    UnknownIdentityError,
)
from passkey_auth.repositories import DirectoryAccountRepository

logger = get_logger(__name__)


class IdentityDirectory(Protocol):
    """What the ceremonies need from the account directory."""

    def resolve_by_email(self, email: str) -> DirectoryIdentity: ...

    def verify_bearer_token(self, token: str) -> str: ...


class DatabaseIdentityDirectory:
    """Directory adapter over the ``directory_accounts`` table and HS256 tokens."""

    def __init__(self, session: Session) -> None:
        self.accounts = DirectoryAccountRepository(session)

    def resolve_by_email(self, email: str) -> DirectoryIdentity:
        email = normalize_email(email)
        try:
            account = self.accounts.get_by_email(email)
        except SQLAlchemyError as exc:
            self.accounts.rollback()
            logger.error("Directory lookup failed", extra={"error": str(exc)})
            raise RepositoryUnavailableError() from exc

        if account is None or account.disabled:
            logger.info("No directory account for email", extra={"email": email})
            raise UnknownIdentityError()
        return DirectoryIdentity(
            uid=account.uid,
            email=normalize_email(account.email),
            display_name=account.display_name,
        )

    def verify_bearer_token(self, token: str) -> str:
        if not token:
            raise UnauthorizedError()
        return normalize_email(decode_directory_token(token))
