"""Audit logging for passkey ceremonies and credential management.

Audit events capture:
- Who the ceremony was for (email, internal user id)
- What happened (action, outcome, error code)
- Where it originated (IP address, user agent, request id)
"""

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from .logging import get_logger


class AuditAction(str, Enum):
    """Types of auditable actions."""

    REGISTRATION_OPTIONS = "passkey.registration.options"
    REGISTRATION_VERIFY = "passkey.registration.verify"
    AUTHENTICATION_OPTIONS = "passkey.authentication.options"
    AUTHENTICATION_VERIFY = "passkey.authentication.verify"
    CREDENTIAL_STATUS = "passkey.credential.status"
    CREDENTIAL_REVOKE = "passkey.credential.revoke"


class AuditOutcome(str, Enum):
    """Outcome of an audited action."""

    SUCCESS = "success"
    FAILURE = "failure"
    DENIED = "denied"
    ERROR = "error"


@dataclass
class AuditContext:
    """Who and where for an audit event."""

    user_id: Optional[str] = None
    email: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    request_id: Optional[str] = None


@dataclass
class AuditEvent:
    """Represents a single audit log entry."""

    action: AuditAction
    outcome: AuditOutcome
    context: AuditContext
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    details: dict[str, Any] = field(default_factory=dict)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        """Convert event to dictionary for logging/storage."""
        data: dict[str, Any] = {
            "audit": True,
            "timestamp": self.timestamp.isoformat(),
            "action": self.action.value,
            "outcome": self.outcome.value,
            "context": asdict(self.context),
        }
        if self.details:
            data["details"] = mask_sensitive_data(self.details)
        if self.error_code:
            data["error_code"] = self.error_code
        if self.error_message:
            data["error"] = self.error_message
        return data


class AuditLogger:
    """Writes audit events to a dedicated logger so they can be routed separately."""

    def __init__(self, logger_name: str = "audit") -> None:
        self._logger = get_logger(f"passkey_auth.{logger_name}")
        # Audit events are kept even when the root level is WARNING
        self._logger.setLevel(logging.INFO)

    def log(self, event: AuditEvent) -> None:
        log_data = event.to_dict()
        message = f"AUDIT: {event.action.value} - {event.outcome.value}"

        if event.outcome == AuditOutcome.ERROR:
            self._logger.error(message, extra=log_data)
        elif event.outcome in (AuditOutcome.FAILURE, AuditOutcome.DENIED):
            self._logger.warning(message, extra=log_data)
        else:
            self._logger.info(message, extra=log_data)


_audit_logger: Optional[AuditLogger] = None


def get_audit_logger() -> AuditLogger:
    """Get the global audit logger instance."""
    global _audit_logger
    if _audit_logger is None:
        _audit_logger = AuditLogger()
    return _audit_logger


def audit_log(
    action: AuditAction,
    outcome: AuditOutcome,
    *,
    context: Optional[AuditContext] = None,
    user_id: Optional[str] = None,
    email: Optional[str] = None,
    details: Optional[dict[str, Any]] = None,
    error_code: Optional[str] = None,
    error_message: Optional[str] = None,
) -> None:
    """Log an audit event using the global logger.

    ``user_id`` and ``email`` fill in whatever the request context lacks.

    Example:
        >>> audit_log(
        ...     AuditAction.AUTHENTICATION_VERIFY,
        ...     AuditOutcome.SUCCESS,
        ...     email="user@example.com",
        ... )
    """
    ctx = context or AuditContext()
    if user_id is not None:
        ctx.user_id = user_id
    if email is not None:
        ctx.email = email
    get_audit_logger().log(
        AuditEvent(
            action=action,
            outcome=outcome,
            context=ctx,
            details=details or {},
            error_code=error_code,
            error_message=error_message,
        )
    )


def create_audit_context_from_request(request: Any) -> AuditContext:
    """Create an AuditContext from a FastAPI request."""
    ip_address = None
    user_agent = None
    request_id = None
    if hasattr(request, "headers"):
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            ip_address = forwarded_for.split(",")[0].strip()
        elif getattr(request, "client", None):
            ip_address = request.client.host
        user_agent = request.headers.get("user-agent")
        request_id = request.headers.get("x-request-id")

    return AuditContext(ip_address=ip_address, user_agent=user_agent, request_id=request_id)


def mask_sensitive_data(
    data: dict[str, Any], sensitive_keys: set[str] | None = None
) -> dict[str, Any]:
    """Mask sensitive fields in data before logging.

    Args:
        data: Dictionary containing data to mask.
        sensitive_keys: Set of keys to mask. Defaults to ceremony secrets.

    Returns:
        Copy of data with sensitive values masked.
    """
    if sensitive_keys is None:
        sensitive_keys = {
            "token",
            "challenge",
            "public_key",
            "signature",
            "attestation",
            "authorization",
            "secret",
        }

    masked = {}
    for key, value in data.items():
        if any(s in key.lower() for s in sensitive_keys):
            masked[key] = "***MASKED***"
        elif isinstance(value, dict):
            masked[key] = mask_sensitive_data(value, sensitive_keys)
        else:
            masked[key] = value

    return masked
