"""Database initialization entrypoint.

Run ``python -m passkey_auth.init_db`` to create the tables, seed the
development directory account and print a bearer token for it.
"""

from passkey_auth.core.config import settings
from passkey_auth.core.security import create_directory_token
from passkey_auth.db.utils import seed_with_new_session


def init_db() -> None:
    """Create tables and seed default data using a fresh session."""
    seed_with_new_session()


def dev_token() -> str:
    """Bearer token for the seeded development account."""
    return create_directory_token(settings.dev_account_email, uid=settings.dev_account_uid)


if __name__ == "__main__":
    init_db()
    if not settings.is_production:
        print(f"Development bearer token for {settings.dev_account_email}:\n{dev_token()}")
