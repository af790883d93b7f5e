"""
Prometheus metrics for Shufflr
"""

from prometheus_client import Counter, Gauge, Histogram, generate_latest, CONTENT_TYPE_LATEST

# Build info
BUILD_INFO = Gauge(
    'shufflr_build_info',
    'Build information',
    ['version']
)

# Request counters
REQUESTS_TOTAL = Counter(
    'shufflr_requests_total',
    'Total number of requests',
    ['status_class', 'path_group']
)

REQUEST_LATENCY = Histogram(
    'shufflr_request_latency_seconds',
    'Request latency in seconds',
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0]
)

# Guard rejections
AUTH_FAILURES_TOTAL = Counter(
    'shufflr_auth_failures_total',
    'Requests rejected by an auth guard',
    ['guard', 'reason']
)

# Images handed out
IMAGES_SERVED_TOTAL = Counter(
    'shufflr_images_served_total',
    'Images returned by the public API',
    ['endpoint']
)


def path_group(path: str) -> str:
    """Collapse a request path to a low-cardinality label"""
    if path.startswith("/api/images/"):
        return "/api/images/{filename}"
    if path.startswith("/admin/images/serve/"):
        return "/admin/images/serve/{filename}"
    if path in ("/api/images", "/health", "/metrics", "/"):
        return path
    if path.startswith("/admin"):
        return "/admin"
    return "other"


def record_request(path: str, status: int, latency_seconds: float) -> None:
    REQUESTS_TOTAL.labels(status_class=f"{status // 100}xx", path_group=path_group(path)).inc()
    REQUEST_LATENCY.observe(latency_seconds)


def record_auth_failure(guard: str, reason: str) -> None:
    AUTH_FAILURES_TOTAL.labels(guard=guard, reason=reason).inc()


def record_images_served(endpoint: str, count: int = 1) -> None:
    IMAGES_SERVED_TOTAL.labels(endpoint=endpoint).inc(count)


def set_build_info(version: str) -> None:
    BUILD_INFO.labels(version=version).set(1)


def get_metrics() -> bytes:
    return generate_latest()


def get_content_type() -> str:
    return CONTENT_TYPE_LATEST
