"""Helpers shared by the registration and authentication ceremonies."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from webauthn.helpers.structs import AuthenticatorTransport

from passkey_auth.core.config import Settings
from passkey_auth.domain import RelyingParty
from passkey_auth.domain.exceptions import VerificationFailedError

DEFAULT_TRANSPORTS = ["internal"]

# Fragments of py_webauthn messages raised when the UP or UV flag is missing.
_USER_GESTURE_MARKERS = ("not present", "user verification", "not verified")

USER_GESTURE_HINT = (
    "Biometric verification failed. Please try again and make sure to "
    "complete the fingerprint/face recognition."
)
GENERIC_FAILURES = {
    "registration": (
        "Biometric registration failed. Please make sure to complete the biometric verification."
    ),
    "authentication": "Biometric authentication failed",
}


def relying_party_from_settings(settings: Settings) -> RelyingParty:
    return RelyingParty(
        rp_id=settings.rp_id,
        rp_name=settings.rp_name,
        origin=settings.expected_origin,
    )


def verification_failure(ceremony: str, exc: Exception) -> VerificationFailedError:
    """Turn a py_webauthn error into a user-facing failure.

    Only "the user gesture was skipped" is told apart; every other cause
    (bad signature, wrong challenge or origin) gets the same message.
    """
    text = str(exc).lower()
    if any(marker in text for marker in _USER_GESTURE_MARKERS):
        return VerificationFailedError(
            USER_GESTURE_HINT, reason=VerificationFailedError.USER_GESTURE_MISSING
        )
    return VerificationFailedError(
        GENERIC_FAILURES[ceremony], reason=VerificationFailedError.INVALID_RESPONSE
    )


def response_transports(response: dict[str, Any]) -> list[str]:
    """Transport hints reported by the client, or ``["internal"]`` when omitted."""
    reported = (response.get("response") or {}).get("transports") or []
    transports = [t for t in reported if isinstance(t, str)]
    return transports or list(DEFAULT_TRANSPORTS)


def to_authenticator_transports(values: Iterable[str]) -> list[AuthenticatorTransport]:
    """Convert stored transport strings, dropping values this library does not know."""
    known = {t.value: t for t in AuthenticatorTransport}
    return [known[v] for v in values if v in known]
