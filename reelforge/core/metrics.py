"""Prometheus metrics for the converter service.

Tracks HTTP traffic, uploads, conversions and probe failures.
"""

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    Info,
    generate_latest,
)

# Every metric is exported as reelforge_<name>
NAMESPACE = "reelforge"

# Private registry; /metrics exports only these
REGISTRY = CollectorRegistry()


# ============================================
# Application Info
# ============================================
APP_INFO = Info(
    "app",
    "Application information",
    namespace=NAMESPACE,
    registry=REGISTRY,
)


# ============================================
# HTTP Request Metrics
# ============================================
HTTP_REQUESTS_TOTAL = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
    namespace=NAMESPACE,
    registry=REGISTRY,
)

HTTP_REQUEST_DURATION_SECONDS = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
    namespace=NAMESPACE,
    registry=REGISTRY,
)

HTTP_REQUESTS_IN_PROGRESS = Gauge(
    "http_requests_in_progress",
    "Number of HTTP requests currently in progress",
    ["method", "endpoint"],
    namespace=NAMESPACE,
    registry=REGISTRY,
)


# ============================================
# Project Store Metrics
# ============================================
UPLOADS_TOTAL = Counter(
    "uploads_total",
    "Uploaded source files by outcome",
    ["status"],
    namespace=NAMESPACE,
    registry=REGISTRY,
)

PROBE_FAILURES_TOTAL = Counter(
    "probe_failures_total",
    "ffprobe invocations that produced no summary",
    namespace=NAMESPACE,
    registry=REGISTRY,
)


# ============================================
# Conversion Metrics
# ============================================
CONVERSIONS_TOTAL = Counter(
    "conversions_total",
    "Conversions by target format and status",
    ["format", "status"],
    namespace=NAMESPACE,
    registry=REGISTRY,
)

CONVERSION_DURATION_SECONDS = Histogram(
    "conversion_duration_seconds",
    "Wall time of ffmpeg conversions in seconds",
    ["format"],
    buckets=[1.0, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0, 600.0, 1800.0],
    namespace=NAMESPACE,
    registry=REGISTRY,
)


def get_metrics() -> bytes:
    """Generate latest metrics in Prometheus format."""
    return generate_latest(REGISTRY)


def get_content_type() -> str:
    """Get the content type for Prometheus metrics."""
    return CONTENT_TYPE_LATEST


def set_app_info(version: str, environment: str) -> None:
    """Set application info metrics.

    Args:
        version: Application version
        environment: Deployment environment
    """
    APP_INFO.info({
        "version": version,
        "environment": environment,
    })
