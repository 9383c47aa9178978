"""Passkey credential persistence."""

from __future__ import annotations

from typing import Optional, Protocol

from sqlalchemy import delete, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from passkey_auth.core.logging import get_logger
from passkey_auth.core.time import utcnow
from passkey_auth.db import PasskeyCredential
from passkey_auth.domain import normalize_email
from passkey_auth.domain.exceptions import (
    ConcurrentUpdateError,
    CredentialAlreadyExistsError,
    NoCredentialError,
    RepositoryUnavailableError,
)
from passkey_auth.repositories.base import SQLAlchemyRepository

logger = get_logger(__name__)


class CredentialRepository(Protocol):
    """Operations the ceremony services need from credential storage."""

    def find_by_email(self, email: str) -> Optional[PasskeyCredential]: ...

    def find_by_internal_id(self, internal_id: str) -> Optional[PasskeyCredential]: ...

    def create(self, credential: PasskeyCredential) -> PasskeyCredential: ...

    def update_counter(self, internal_id: str, new_counter: int) -> None: ...

    def delete(self, internal_id: str) -> None: ...


class PasskeyCredentialRepository(SQLAlchemyRepository[PasskeyCredential]):
    """SQLAlchemy-backed credential storage keyed by internal user id."""

    def __init__(self, session: Session) -> None:
        super().__init__(session)

    def find_by_email(self, email: str) -> Optional[PasskeyCredential]:
        try:
            return (
                self.session.query(PasskeyCredential)
                .filter(PasskeyCredential.email == normalize_email(email))
                .first()
            )
        except SQLAlchemyError as exc:
            raise self._unavailable("find_by_email", exc) from exc

    def find_by_internal_id(self, internal_id: str) -> Optional[PasskeyCredential]:
        try:
            return self.session.get(PasskeyCredential, internal_id)
        except SQLAlchemyError as exc:
            raise self._unavailable("find_by_internal_id", exc) from exc

    def create(self, credential: PasskeyCredential) -> PasskeyCredential:
        """Insert a new credential; never overwrites an existing row."""
        credential.email = normalize_email(credential.email)
        try:
            self.add(credential)
            self.commit()
        except IntegrityError as exc:
            self.rollback()
            raise CredentialAlreadyExistsError() from exc
        except SQLAlchemyError as exc:
            raise self._unavailable("create", exc) from exc
        self.session.refresh(credential)
        return credential

    def update_counter(self, internal_id: str, new_counter: int) -> None:
        """Advance the signature counter with a single conditional UPDATE.

        The row is written only if the stored counter is lower than
        ``new_counter``, or both are zero (authenticator without counter
        support), so a stale concurrent write can never roll it back.
        """
        if new_counter == 0:
            guard = PasskeyCredential.sign_count == 0
        else:
            guard = PasskeyCredential.sign_count < new_counter
        statement = (
            update(PasskeyCredential)
            .where(PasskeyCredential.id == internal_id, guard)
            .values(sign_count=new_counter, last_used_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        try:
            result = self.session.execute(statement)
            self.commit()
        except SQLAlchemyError as exc:
            raise self._unavailable("update_counter", exc) from exc

        if result.rowcount == 1:
            return

        self.session.expire_all()
        if self.find_by_internal_id(internal_id) is None:
            raise NoCredentialError()
        logger.warning(
            "Signature counter update lost compare-and-set",
            extra={"user_id": internal_id, "new_counter": new_counter},
        )
        raise ConcurrentUpdateError()

    def delete(self, internal_id: str) -> None:
        try:
            result = self.session.execute(
                delete(PasskeyCredential).where(PasskeyCredential.id == internal_id)
            )
            self.commit()
        except SQLAlchemyError as exc:
            raise self._unavailable("delete", exc) from exc
        if result.rowcount == 0:
            raise NoCredentialError()

    def _unavailable(self, operation: str, exc: SQLAlchemyError) -> RepositoryUnavailableError:
        self.rollback()
        logger.error(
            "Credential store operation failed",
            extra={"operation": operation, "error": str(exc)},
        )
        return RepositoryUnavailableError()
