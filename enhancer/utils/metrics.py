"""
Prometheus-based metrics for production monitoring.
Provides /metrics endpoint for scraping.
"""
from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi import APIRouter, Response


# Counters
jobs_created_total = Counter(
    "render_jobs_created_total",
    "Total number of render jobs admitted",
    ["renderer"],
)

jobs_completed_total = Counter(
    "render_jobs_completed_total",
    "Total number of render jobs completed",
    ["renderer"],
)

jobs_failed_total = Counter(
    "render_jobs_failed_total",
    "Total number of failed render jobs",
    ["renderer", "error_code"],
)

admission_rejected_total = Counter(
    "render_admission_rejected_total",
    "Total synchronous admission rejections",
    ["reason"],  # insufficient_credit, source_not_found, account_not_found
)

credit_operations_total = Counter(
    "credit_operations_total",
    "Total credit ledger operations",
    ["operation"],  # DEBIT, HOLD, CAPTURE, RELEASE
)

render_polls_total = Counter(
    "render_polls_total",
    "Total render status polls",
    ["renderer", "outcome"],  # pending, done, failed, transport_error
)

render_requests_total = Counter(
    "render_provider_requests_total",
    "Total render provider HTTP requests",
    ["renderer", "method", "status"],
)

circuit_breaker_state = Gauge(
    "circuit_breaker_state",
    "Circuit breaker state (0=closed, 1=open)",
    ["name"],
)

# Histograms
job_duration_seconds = Histogram(
    "render_job_duration_seconds",
    "Render job processing duration (submission to terminal state)",
    ["renderer"],
    buckets=[10, 30, 60, 120, 180, 300, 600],
)

render_request_duration_seconds = Histogram(
    "render_provider_request_duration_seconds",
    "Render provider API request duration",
    ["renderer", "method"],
    buckets=[0.1, 0.5, 1, 2, 5, 10, 30],
)

# Gauges
active_jobs = Gauge(
    "render_jobs_active",
    "Render jobs currently being processed by this worker",
)


# Metrics endpoint router
router = APIRouter()


@router.get("/metrics")
def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint for scraping."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
