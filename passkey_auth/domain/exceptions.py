"""Domain-level exception hierarchy.

Every error carries a stable ``code`` so clients can pick a remediation
(sign up, register a passkey, retry the ceremony) without parsing messages.
"""

from __future__ import annotations

from typing import Any


class DomainError(Exception):
    """Base exception for service-layer errors."""

    code = "domain_error"

    def __init__(self, message: str = "Domain error") -> None:
        super().__init__(message)
        self.message = message

    @property
    def extra(self) -> dict[str, Any]:
        """Additional fields rendered next to ``detail`` in error responses."""
        return {}


class NotFoundError(DomainError):
    """Raised when a requested resource cannot be located."""

    code = "not_found"


class ConflictError(DomainError):
    """Raised when a unique constraint or business rule is violated."""

    code = "conflict"


class ForbiddenError(DomainError):
    """Raised when a user attempts an operation they are not allowed to perform."""

    code = "forbidden"


class UnauthorizedError(DomainError):
    """Raised when a bearer token is missing or invalid."""

    code = "unauthorized"

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message)


class UnknownIdentityError(NotFoundError):
    """No directory account exists for the email."""

    code = "unknown_identity"

    def __init__(self, message: str = "No user with this email. Please sign up first.") -> None:
        super().__init__(message)


class AlreadyEnrolledError(ConflictError):
    """The identity already has its one passkey."""

    code = "already_enrolled"

    def __init__(
        self,
        message: str = "User already has biometric credentials. Please use biometric login instead.",
    ) -> None:
        super().__init__(message)


class CredentialAlreadyExistsError(ConflictError):
    """Create-only insert hit an existing key."""

    code = "credential_exists"

    def __init__(self, message: str = "A passkey is already stored for this user.") -> None:
        super().__init__(message)


class NoCredentialError(NotFoundError):
    """The identity has no passkey yet."""

    code = "no_credential"

    def __init__(
        self,
        message: str = (
            "No biometric credentials found for this email. "
            "Please register your biometrics first."
        ),
    ) -> None:
        super().__init__(message)

    @property
    def extra(self) -> dict[str, Any]:
        return {"needs_registration": True}


class SessionExpiredError(DomainError):
    """The challenge session was never issued, has expired, or was already used."""

    code = "session_expired"

    def __init__(self, message: str = "Session expired. Please try again.") -> None:
        super().__init__(message)


class InvalidSessionError(DomainError):
    """The session points at a credential that no longer exists."""

    code = "invalid_session"

    def __init__(self, message: str = "Invalid user session") -> None:
        super().__init__(message)


class VerificationFailedError(DomainError):
    """The authenticator response did not verify; the ceremony must restart."""

    code = "verification_failed"

    USER_GESTURE_MISSING = "user_gesture_missing"
    INVALID_RESPONSE = "invalid_response"

    def __init__(self, message: str, reason: str = INVALID_RESPONSE) -> None:
        super().__init__(message)
        self.reason = reason

    @property
    def extra(self) -> dict[str, Any]:
        return {"reason": self.reason}


class ReplayDetectedError(ForbiddenError):
    """Signature counter did not advance: replayed response or cloned authenticator."""

    code = "replay_detected"

    def __init__(
        self,
        message: str = "Biometric authentication failed. This authenticator may have been cloned.",
    ) -> None:
        super().__init__(message)


class ConcurrentUpdateError(ReplayDetectedError):
    """Lost the compare-and-set race on the signature counter."""

    code = "concurrent_update"

    def __init__(
        self, message: str = "Authentication was completed by another request. Please try again."
    ) -> None:
        super().__init__(message)


class RepositoryUnavailableError(DomainError):
    """A backing store (database, directory, challenge store) could not be reached."""

    code = "repository_unavailable"

    def __init__(self, message: str = "Service temporarily unavailable") -> None:
        super().__init__(message)
