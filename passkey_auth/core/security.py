"""Directory bearer token helpers."""

from __future__ import annotations

from datetime import timedelta
from typing import Any, Optional

from jose import JWTError, jwt

from passkey_auth.core.config import settings
from passkey_auth.core.time import utcnow
from passkey_auth.domain.exceptions import UnauthorizedError

DEFAULT_TOKEN_LIFETIME = timedelta(minutes=30)


def create_directory_token(
    email: str,
    uid: Optional[str] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Mint an HS256 token the way the identity directory does.

    Used by tooling and tests; production tokens come from the directory itself.
    """
    to_encode: dict[str, Any] = {
        "sub": uid or email,
        "email": email,
        "exp": utcnow() + (expires_delta or DEFAULT_TOKEN_LIFETIME),
        "type": "access",
    }
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def decode_directory_token(token: str) -> str:
    """Validate a bearer token and return the email it was issued to."""
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError as exc:
        raise UnauthorizedError("Could not validate credentials") from exc

    email = payload.get("email") or payload.get("sub")
    if not isinstance(email, str) or "@" not in email:
        raise UnauthorizedError("Could not validate credentials")
    return email
