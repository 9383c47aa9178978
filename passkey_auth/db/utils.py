"""Database utility helpers."""

from __future__ import annotations

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from passkey_auth.core import settings
from passkey_auth.core.logging import get_logger
from passkey_auth.db.models import Base, DirectoryAccount
from passkey_auth.db.session import SessionLocal

logger = get_logger(__name__)


def init_database(db_session) -> None:
    """Create tables for the bound engine (idempotent)."""
    bind = db_session.get_bind()
    Base.metadata.create_all(bind=bind)


def seed_directory_account(db_session, uid: str, email: str, display_name: str | None = None) -> None:
    """Insert a directory account for local development, skipping existing emails."""
    if settings.is_production:
        logger.info("Skipping directory seed in production environment")
        return
    try:
        existing = (
            db_session.query(DirectoryAccount)
            .filter(func.lower(DirectoryAccount.email) == email.strip().lower())
            .first()
        )
        if existing:
            return
        db_session.add(DirectoryAccount(uid=uid, email=email, display_name=display_name))
        db_session.commit()
        logger.info("Seeded directory account", extra={"email": email})
    except SQLAlchemyError:
        db_session.rollback()
        raise


def seed_default_data(db_session) -> None:
    """Create tables and the development directory account."""
    if settings.is_production:
        logger.info("Skipping default seed in production environment")
        return
    init_database(db_session)
    seed_directory_account(
        db_session,
        uid=settings.dev_account_uid,
        email=settings.dev_account_email,
        display_name=settings.dev_account_display_name,
    )


def seed_with_new_session() -> None:
    """Helper used by scripts to seed using a fresh session."""
    db = SessionLocal()
    try:
        seed_default_data(db)
    finally:
        db.close()
