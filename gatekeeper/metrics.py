from prometheus_client import Counter, Gauge, Histogram
# Prometheus metrics definitions

# Admission decisions by outcome: admitted, rejected, degraded, error
admission_requests_total = Counter(
    "admission_requests_total", "Total admission requests", ["outcome"]
)

# Policy rejections by reason code
admission_reject_total = Counter(
    "admission_reject_total", "Number of rejected admissions", ["reason"]
)

# Admission path is a handful of store round-trips
_admission_latency_buckets = (
    0.005,
    0.01,
    0.025,
    0.05,
    0.1,
    0.25,
    0.5,
    1.0,
)

admission_latency_seconds = Histogram(
    "admission_latency_seconds",
    "Admission decision latency",
    buckets=_admission_latency_buckets,
)

# Store failures by operation name (get, incr, sadd, ...)
store_errors_total = Counter(
    "store_errors_total", "Total failed store calls", ["op"]
)

# Sessions dropped from the online pool by the lazy cleanup in count_live
stale_sessions_purged_total = Counter(
    "stale_sessions_purged_total", "Total stale sessions purged from the pool"
)

# Last live count observed by any request
concurrent_sessions = Gauge(
    "concurrent_sessions", "Live sessions at last count"
)

__all__ = [
    "admission_requests_total",
    "admission_reject_total",
    "admission_latency_seconds",
    "store_errors_total",
    "stale_sessions_purged_total",
    "concurrent_sessions",
]
