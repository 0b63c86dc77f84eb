"""Monitoring configuration for the daily word service."""
from prometheus_client import Counter, Histogram, start_http_server

# Selection metrics
assignments_created = Counter(
    "dailyword_assignments_created_total",
    "Total number of word assignments created",
    ["scope"],
)

cycle_advances = Counter(
    "dailyword_cycle_advances_total",
    "Total number of cycle increments after a pool was exhausted",
    ["scope"],
)

fallback_used = Counter(
    "dailyword_fallback_used_total",
    "Total number of personalized selections served from a fallback band",
    ["requested", "effective"],
)

lost_races = Counter(
    "dailyword_lost_races_total",
    "Total number of assignment inserts that lost to a concurrent writer",
    ["scope"],
)

selection_errors = Counter(
    "dailyword_selection_errors_total",
    "Total number of failed selections",
    ["error_type"],
)

# Delivery metrics
deliveries = Counter(
    "dailyword_deliveries_total",
    "Total number of scheduled deliveries",
    ["status"],  # sent, skipped, failed
)

schedules_processed = Counter(
    "dailyword_schedules_processed_total",
    "Total number of due notification schedules processed",
)

scheduler_run_duration = Histogram(
    "dailyword_scheduler_run_duration_seconds",
    "Duration of a scheduler run in seconds",
    buckets=[0.1, 0.5, 1.0, 5.0, 30.0, 120.0],
)


def start_monitoring(port: int = 9090) -> None:
    """Start the Prometheus metrics server."""
    start_http_server(port)
