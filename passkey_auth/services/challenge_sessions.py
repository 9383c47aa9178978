"""Single-use challenge sessions for WebAuthn ceremonies.

A session is created when options are issued and consumed when the
authenticator response comes back. The caller only ever holds an opaque
token; the challenge and the subject it is bound to stay server-side.
"""

from __future__ import annotations

import secrets
import threading
import time
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Optional, Protocol

import redis
from webauthn.helpers import bytes_to_base64url

from passkey_auth.core.logging import get_logger
from passkey_auth.core.time import utcnow
from passkey_auth.domain import CeremonyPurpose, ChallengeSession, IssuedChallenge
from passkey_auth.domain.exceptions import RepositoryUnavailableError, SessionExpiredError

logger = get_logger(__name__)

CHALLENGE_BYTES = 32
SESSION_TOKEN_BYTES = 32
KEY_PREFIX = "passkey:session"


class ChallengeStore(Protocol):
    """Key/value store with per-key expiry and atomic take."""

    def put(self, key: str, value: str, ttl_seconds: int) -> None: ...

    def take(self, key: str) -> Optional[str]: ...


class InMemoryChallengeStore:
    """Process-local store for development and tests.

    Entries are removed on ``take`` and expired entries are purged lazily.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[str, float]] = {}
        self._lock = threading.Lock()

    def put(self, key: str, value: str, ttl_seconds: int) -> None:
        with self._lock:
            self._purge_expired()
            self._entries[key] = (value, self._clock() + ttl_seconds)

    def take(self, key: str) -> Optional[str]:
        with self._lock:
            entry = self._entries.pop(key, None)
            self._purge_expired()
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            return None
        return value

    def __len__(self) -> int:
        with self._lock:
            self._purge_expired()
            return len(self._entries)

    def _purge_expired(self) -> None:
        now = self._clock()
        for key in [k for k, (_, exp) in self._entries.items() if now >= exp]:
            del self._entries[key]


class RedisChallengeStore:
    """Shared store for multi-worker deployments; relies on SET EX and GETDEL."""

    def __init__(self, client: redis.Redis) -> None:
        self.client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisChallengeStore":
        return cls(redis.from_url(url, encoding="utf-8", decode_responses=True))

    def put(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            self.client.set(key, value, ex=ttl_seconds)
        except redis.RedisError as exc:
            logger.error("Challenge store write failed", extra={"error": str(exc)})
            raise RepositoryUnavailableError() from exc

    def take(self, key: str) -> Optional[str]:
        try:
            value = self.client.getdel(key)
        except redis.RedisError as exc:
            logger.error("Challenge store read failed", extra={"error": str(exc)})
            raise RepositoryUnavailableError() from exc
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value


class ChallengeSessionManager:
    """Issues and redeems challenge sessions on top of a ``ChallengeStore``."""

    def __init__(
        self,
        store: ChallengeStore,
        ttl_seconds: int = 300,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.ttl_seconds = ttl_seconds
        self._clock = clock

    @property
    def ttl(self) -> timedelta:
        return timedelta(seconds=self.ttl_seconds)

    def create(
        self,
        purpose: CeremonyPurpose,
        subject_user_id: str,
        subject_email: str,
        directory_uid: Optional[str] = None,
    ) -> IssuedChallenge:
        challenge = secrets.token_bytes(CHALLENGE_BYTES)
        session_token = secrets.token_urlsafe(SESSION_TOKEN_BYTES)
        session = ChallengeSession(
            purpose=purpose,
            subject_user_id=subject_user_id,
            subject_email=subject_email,
            challenge=bytes_to_base64url(challenge),
            created_at=self._clock(),
            directory_uid=directory_uid,
        )
        self.store.put(_key(purpose, session_token), session.to_json(), self.ttl_seconds)
        logger.debug(
            "Challenge session created",
            extra={"ceremony": purpose.value, "user_id": subject_user_id},
        )
        return IssuedChallenge(challenge=challenge, session_token=session_token)

    def consume(self, session_token: Optional[str], purpose: CeremonyPurpose) -> ChallengeSession:
        """Redeem a session exactly once.

        The stored entry is deleted before anything is checked, so a session
        can never be redeemed twice whatever the verification outcome.
        """
        message = f"{purpose.value.capitalize()} session expired. Please try again."
        if not session_token:
            raise SessionExpiredError(message)

        raw = self.store.take(_key(purpose, session_token))
        if raw is None:
            raise SessionExpiredError(message)

        try:
            session = ChallengeSession.from_json(raw)
        except (ValueError, KeyError, TypeError) as exc:
            logger.warning("Discarding malformed challenge session", extra={"ceremony": purpose.value})
            raise SessionExpiredError(message) from exc

        if session.purpose is not purpose or session.is_expired(self._clock(), self.ttl):
            raise SessionExpiredError(message)
        return session


def _key(purpose: CeremonyPurpose, session_token: str) -> str:
    return f"{KEY_PREFIX}:{purpose.value}:{session_token}"
