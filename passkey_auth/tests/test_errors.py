"""Tests for domain error to HTTP translation."""

import pytest

from passkey_auth.api.errors import to_http
from passkey_auth.domain.exceptions import (
    AlreadyEnrolledError,
    ConcurrentUpdateError,
    CredentialAlreadyExistsError,
    InvalidSessionError,
    NoCredentialError,
    ReplayDetectedError,
    RepositoryUnavailableError,
    SessionExpiredError,
    UnauthorizedError,
    UnknownIdentityError,
    VerificationFailedError,
)


@pytest.mark.parametrize(
    "exc,status_code",
    [
        (UnknownIdentityError(), 404),
        (NoCredentialError(), 404),
        (AlreadyEnrolledError(), 409),
        (CredentialAlreadyExistsError(), 409),
        (ReplayDetectedError(), 409),
        (ConcurrentUpdateError(), 409),
        (SessionExpiredError(), 400),
        (InvalidSessionError(), 400),
        (VerificationFailedError("failed"), 400),
        (UnauthorizedError(), 401),
        (RepositoryUnavailableError(), 503),
    ],
)
def test_status_codes(exc, status_code):
    http_exc = to_http(exc)

    assert http_exc.status_code == status_code
    assert http_exc.detail == exc.message


def test_unauthorized_advertises_bearer():
    assert to_http(UnauthorizedError()).headers == {"WWW-Authenticate": "Bearer"}
