"""Prometheus metrics for the Passkey Authentication API.

Metrics are exposed at the /metrics endpoint.

Metrics Categories:
- HTTP request metrics (latency, count)
- Ceremony metrics (options issued, verified, failed by error code)
- Challenge session metrics (issued, expired/unknown on redeem)
"""

from prometheus_client import Counter, Gauge, Histogram, Info

# Application info
APP_INFO = Info("passkey_app", "Passkey authentication service information")

# HTTP Request metrics
HTTP_REQUESTS_TOTAL = Counter(
    "passkey_http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

HTTP_REQUEST_DURATION_SECONDS = Histogram(
    "passkey_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)

HTTP_REQUESTS_IN_PROGRESS = Gauge(
    "passkey_http_requests_in_progress",
    "Number of HTTP requests currently in progress",
    ["method", "endpoint"],
)

# Ceremony metrics
CEREMONIES_TOTAL = Counter(
    "passkey_ceremonies_total",
    "Ceremony steps by outcome",
    ["ceremony", "step", "outcome"],  # step: options, verify; outcome: success or error code
)

CREDENTIALS_REVOKED_TOTAL = Counter(
    "passkey_credentials_revoked_total",
    "Total passkey credentials revoked by their owner",
)

REPLAYS_DETECTED_TOTAL = Counter(
    "passkey_replays_detected_total",
    "Assertions rejected because the signature counter did not advance",
)


def set_app_info(version: str, environment: str) -> None:
    """Set application info metric.

    Args:
        version: Application version string.
        environment: Deployment environment (development, staging, production).
    """
    APP_INFO.info({"version": version, "environment": environment})


def record_ceremony(ceremony: str, step: str, outcome: str) -> None:
    """Record one ceremony step.

    Args:
        ceremony: ``registration`` or ``authentication``.
        step: ``options`` or ``verify``.
        outcome: ``success`` or the domain error code.
    """
    CEREMONIES_TOTAL.labels(ceremony=ceremony, step=step, outcome=outcome).inc()
    if outcome in ("replay_detected", "concurrent_update"):
        REPLAYS_DETECTED_TOTAL.inc()


def record_revocation() -> None:
    CREDENTIALS_REVOKED_TOTAL.inc()
