"""Prometheus metrics definitions for the share gateway."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram, Info

# =============================================================================
# Application Info
# =============================================================================

APP_INFO = Info("share_gateway", "Share gateway application information")

# =============================================================================
# HTTP Metrics
# =============================================================================

HTTP_REQUESTS_TOTAL = Counter(
    "http_requests_total",
    "Total number of HTTP requests",
    ["method", "endpoint", "status"],
)

HTTP_REQUEST_DURATION_SECONDS = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.075, 0.1, 0.25, 0.5, 0.75, 1.0, 2.5, 5.0, 7.5, 10.0),
)

HTTP_REQUESTS_IN_PROGRESS = Gauge(
    "http_requests_in_progress",
    "Number of HTTP requests currently being processed",
    ["method", "endpoint"],
)

HTTP_RESPONSE_SIZE_BYTES = Histogram(
    "http_response_size_bytes",
    "HTTP response size in bytes",
    ["method", "endpoint"],
    buckets=(100, 1000, 10000, 100000, 1000000, 10000000, 100000000),
)

# =============================================================================
# Backend Metrics
# =============================================================================

BACKEND_UP = Gauge(
    "backend_up",
    "Result of the last backend liveness probe (1 = reachable, 0 = unreachable)",
)

SHARE_RESOLUTIONS_TOTAL = Counter(
    "share_resolutions_total",
    "Share key resolutions against the backend",
    ["outcome"],  # valid, password_required, expired, invalid, error
)

# =============================================================================
# Share Access Metrics
# =============================================================================

SHARE_UNLOCKS_TOTAL = Counter(
    "share_unlocks_total",
    "Number of credentials stored through the unlock endpoint",
)

CREDENTIAL_RECOVERIES_TOTAL = Counter(
    "credential_recoveries_total",
    "Session credential lookups by the password gate",
    ["outcome"],  # recovered, absent, invalid, expired
)

ASSET_STREAMS_TOTAL = Counter(
    "asset_streams_total",
    "Asset streams started",
    ["media_type", "size"],
)


def init_app_info(version: str = "0.1.0") -> None:
    """Initialize application info metric."""
    APP_INFO.info({"version": version, "service": "share-gateway"})
