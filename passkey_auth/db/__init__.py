"""Database module initialization."""

from .models import Base, DirectoryAccount, PasskeyCredential
from .session import SessionLocal, engine, get_db
from .utils import init_database, seed_default_data, seed_directory_account, seed_with_new_session

__all__ = [
    "Base",
    "DirectoryAccount",
    "PasskeyCredential",
    "SessionLocal",
    "engine",
    "get_db",
    "init_database",
    "seed_default_data",
    "seed_directory_account",
    "seed_with_new_session",
]
