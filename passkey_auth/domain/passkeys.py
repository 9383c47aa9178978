"""Value objects shared by the ceremony services."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Optional

from passkey_auth.core.time import parse_utc


def normalize_email(email: str) -> str:
    return email.strip().lower()


class CeremonyPurpose(str, Enum):
    """Which ceremony a challenge session belongs to."""

    REGISTRATION = "registration"
    AUTHENTICATION = "authentication"


@dataclass(frozen=True)
class RelyingParty:
    """Relying-party identity fixed at startup."""

    rp_id: str
    rp_name: str
    origin: str


@dataclass(frozen=True)
class DirectoryIdentity:
    """An account resolved from the identity directory."""

    uid: str
    email: str
    display_name: Optional[str] = None


@dataclass(frozen=True)
class ChallengeSession:
    """Server-side state of one in-flight ceremony.

    ``challenge`` is base64url without padding, exactly as it appears in the
    options sent to the browser.
    """

    purpose: CeremonyPurpose
    subject_user_id: str
    subject_email: str
    challenge: str
    created_at: datetime
    directory_uid: Optional[str] = None

    def is_expired(self, now: datetime, ttl: timedelta) -> bool:
        return now - self.created_at >= ttl

    def to_json(self) -> str:
        data = asdict(self)
        data["purpose"] = self.purpose.value
        data["created_at"] = self.created_at.isoformat()
        return json.dumps(data)

    @classmethod
    def from_json(cls, raw: str) -> "ChallengeSession":
        data: dict[str, Any] = json.loads(raw)
        return cls(
            purpose=CeremonyPurpose(data["purpose"]),
            subject_user_id=data["subject_user_id"],
            subject_email=data["subject_email"],
            challenge=data["challenge"],
            created_at=parse_utc(data["created_at"]),
            directory_uid=data.get("directory_uid"),
        )


@dataclass(frozen=True)
class IssuedChallenge:
    challenge: bytes
    session_token: str


@dataclass(frozen=True)
class CeremonyStart:
    """Options for the browser plus the opaque token that resumes the ceremony."""

    options: dict[str, Any]
    session_token: str


@dataclass(frozen=True)
class RegistrationResult:
    verified: bool
    user_id: str
    email: str


@dataclass(frozen=True)
class AuthenticationResult:
    verified: bool
    user_id: str
    email: str
    directory_uid: Optional[str]
    display_name: str
