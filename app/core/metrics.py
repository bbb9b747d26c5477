"""
Prometheus metrics for the sports tracker.

Metrics exposed:
- Sync cycle counters and duration histogram
- Events appended per type and source
- Feed fetch counters (games fetched, failures)
- Event log version conflicts
- Scheduler and circuit breaker state gauges

HTTP request metrics come from prometheus-fastapi-instrumentator in app.main.
"""
from prometheus_client import Counter, Gauge, Histogram

# Sync cycle metrics
sync_cycles_total = Counter(
    "sync_cycles_total",
    "Total sync cycles run",
    ["outcome"]  # success, partial, failed
)

sync_cycle_duration_seconds = Histogram(
    "sync_cycle_duration_seconds",
    "Duration of a full sync cycle in seconds",
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30)
)

# Event log metrics
game_events_appended_total = Counter(
    "game_events_appended_total",
    "Total events appended to the event log",
    ["event_type", "source"]
)

event_version_conflicts_total = Counter(
    "event_version_conflicts_total",
    "Appends rejected because another writer claimed the version first"
)

# Feed metrics
feed_games_fetched_total = Counter(
    "feed_games_fetched_total",
    "Total normalized games returned by a feed",
    ["source"]
)

feed_fetch_failures_total = Counter(
    "feed_fetch_failures_total",
    "Total failed feed fetches",
    ["source", "error_type"]
)

# Scheduler metrics
scheduler_running = Gauge(
    "scheduler_running",
    "Whether the sync scheduler is running (1=running, 0=stopped)"
)

# Circuit breaker metrics
circuit_breaker_state = Gauge(
    "circuit_breaker_state",
    "Circuit breaker state (0=closed, 1=open, 2=half_open)",
    ["breaker"]
)

_BREAKER_STATE_VALUES = {"closed": 0, "open": 1, "half-open": 2, "half_open": 2}


def update_circuit_breaker_metrics() -> None:
    """Copy the current state of every feed breaker into the gauge."""
    from app.services.sync.circuit_breaker import get_all_breaker_states

    for name, state in get_all_breaker_states().items():
        circuit_breaker_state.labels(breaker=name).set(_BREAKER_STATE_VALUES.get(state, 0))
