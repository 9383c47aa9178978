"""Directory account lookups."""

from __future__ import annotations

from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from passkey_auth.db import DirectoryAccount
from passkey_auth.repositories.base import SQLAlchemyRepository


class DirectoryAccountRepository(SQLAlchemyRepository[DirectoryAccount]):
    """Read access to the directory's account table."""

    def __init__(self, session: Session) -> None:
        super().__init__(session)

    def get_by_email(self, email: str) -> Optional[DirectoryAccount]:
        return (
            self.session.query(DirectoryAccount)
            .filter(func.lower(DirectoryAccount.email) == email.lower())
            .first()
        )
