"""Shared FastAPI dependency factories."""

from functools import lru_cache
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from passkey_auth.core import settings
from passkey_auth.db import get_db
from passkey_auth.domain import RelyingParty
from passkey_auth.domain.exceptions import UnauthorizedError
from passkey_auth.repositories import PasskeyCredentialRepository
from passkey_auth.services import (
    ChallengeSessionManager,
    ChallengeStore,
    DatabaseIdentityDirectory,
    InMemoryChallengeStore,
    PasskeyAccountService,
    PasskeyAuthenticationService,
    PasskeyRegistrationService,
    RedisChallengeStore,
)
from passkey_auth.services.ceremony import relying_party_from_settings

bearer_scheme = HTTPBearer(auto_error=False)


def get_session(db: Session = Depends(get_db)) -> Session:
    """Expose the SQLAlchemy session (alias for clarity)."""
    return db


@lru_cache
def get_challenge_store() -> ChallengeStore:
    """Process-wide challenge store selected by ``CHALLENGE_STORE_BACKEND``."""
    if settings.challenge_store_backend == "redis":
        return RedisChallengeStore.from_url(settings.redis_url)
    return InMemoryChallengeStore()


def get_challenge_sessions(
    store: ChallengeStore = Depends(get_challenge_store),
) -> ChallengeSessionManager:
    return ChallengeSessionManager(store, ttl_seconds=settings.challenge_ttl_seconds)


@lru_cache
def get_relying_party() -> RelyingParty:
    return relying_party_from_settings(settings)


def get_identity_directory(session: Session = Depends(get_session)) -> DatabaseIdentityDirectory:
    return DatabaseIdentityDirectory(session)


def get_credential_repository(
    session: Session = Depends(get_session),
) -> PasskeyCredentialRepository:
    return PasskeyCredentialRepository(session)


def get_registration_service(
    credentials: PasskeyCredentialRepository = Depends(get_credential_repository),
    directory: DatabaseIdentityDirectory = Depends(get_identity_directory),
    challenges: ChallengeSessionManager = Depends(get_challenge_sessions),
    relying_party: RelyingParty = Depends(get_relying_party),
) -> PasskeyRegistrationService:
    return PasskeyRegistrationService(credentials, directory, challenges, relying_party)


def get_authentication_service(
    credentials: PasskeyCredentialRepository = Depends(get_credential_repository),
    directory: DatabaseIdentityDirectory = Depends(get_identity_directory),
    challenges: ChallengeSessionManager = Depends(get_challenge_sessions),
    relying_party: RelyingParty = Depends(get_relying_party),
) -> PasskeyAuthenticationService:
    return PasskeyAuthenticationService(credentials, directory, challenges, relying_party)


def get_account_service(
    credentials: PasskeyCredentialRepository = Depends(get_credential_repository),
    directory: DatabaseIdentityDirectory = Depends(get_identity_directory),
) -> PasskeyAccountService:
    return PasskeyAccountService(credentials, directory)


def get_bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> str:
    """Raw directory token from ``Authorization: Bearer``; validated by the service."""
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError("Missing bearer token")
    return credentials.credentials
