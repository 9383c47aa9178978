"""Test configuration and fixtures."""

import os
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ["ENVIRONMENT"] = "development"
os.environ["TESTING"] = "true"  # Disable rate limiting in tests
os.environ["CHALLENGE_STORE_BACKEND"] = "memory"
os.environ["RP_ID"] = "localhost"
os.environ["EXPECTED_ORIGIN"] = "http://localhost:5173"

from passkey_auth.core.security import create_directory_token  # noqa: E402
from passkey_auth.db import Base, get_db, seed_directory_account  # noqa: E402
from passkey_auth.dependencies import get_challenge_sessions, get_relying_party  # noqa: E402
from passkey_auth.domain import RelyingParty  # noqa: E402
from passkey_auth.main import app  # noqa: E402 - must set env vars before importing
from passkey_auth.repositories import PasskeyCredentialRepository  # noqa: E402
from passkey_auth.services import (  # noqa: E402
    ChallengeSessionManager,
    DatabaseIdentityDirectory,
    InMemoryChallengeStore,
    PasskeyAccountService,
    PasskeyAuthenticationService,
    PasskeyRegistrationService,
)
from passkey_auth.tests.helpers.software_authenticator import SoftwareAuthenticator  # noqa: E402

SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

ORIGIN = "http://localhost:5173"
ALICE_EMAIL = "alice@example.com"
ALICE_UID = "dir-alice"


class FakeClock:
    """Controllable wall clock shared by the session manager and the store."""

    def __init__(self) -> None:
        self.now = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def monotonic(self) -> float:
        return self.now.timestamp()

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def db_session():
    """Create a fresh database session for each test."""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def challenge_store(clock):
    return InMemoryChallengeStore(clock=clock.monotonic)


@pytest.fixture
def challenge_sessions(challenge_store, clock):
    return ChallengeSessionManager(challenge_store, ttl_seconds=300, clock=clock)


@pytest.fixture
def relying_party():
    return RelyingParty(rp_id="localhost", rp_name="Passkey Authentication", origin=ORIGIN)


@pytest.fixture
def credential_repository(db_session):
    return PasskeyCredentialRepository(db_session)


@pytest.fixture
def identity_directory(db_session):
    return DatabaseIdentityDirectory(db_session)


@pytest.fixture
def registration_service(credential_repository, identity_directory, challenge_sessions, relying_party):
    return PasskeyRegistrationService(
        credential_repository, identity_directory, challenge_sessions, relying_party
    )


@pytest.fixture
def authentication_service(credential_repository, identity_directory, challenge_sessions, relying_party):
    return PasskeyAuthenticationService(
        credential_repository, identity_directory, challenge_sessions, relying_party
    )


@pytest.fixture
def account_service(credential_repository, identity_directory):
    return PasskeyAccountService(credential_repository, identity_directory)


@pytest.fixture
def directory_account(db_session):
    """A directory identity with no passkey yet."""
    seed_directory_account(db_session, uid=ALICE_UID, email=ALICE_EMAIL, display_name="Alice")
    return ALICE_EMAIL


@pytest.fixture
def authenticator():
    return SoftwareAuthenticator(origin=ORIGIN)


@pytest.fixture
def enrolled(directory_account, registration_service, authenticator):
    """Run a full registration so the identity holds one passkey."""
    start = registration_service.init_registration(directory_account)
    response = authenticator.make_credential(start.options)
    registration_service.verify_registration(response, start.session_token)
    return authenticator


@pytest.fixture
def client(db_session, challenge_sessions, relying_party):
    """Create a test client with overridden database and challenge store."""

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_challenge_sessions] = lambda: challenge_sessions
    app.dependency_overrides[get_relying_party] = lambda: relying_party
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(directory_account):
    """Bearer headers for the seeded directory identity."""
    token = create_directory_token(directory_account, uid=ALICE_UID)
    return {"Authorization": f"Bearer {token}"}
