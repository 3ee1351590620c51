from prometheus_client import Counter, Histogram, REGISTRY


# we check if they are already registered to avoid errors during hot reloads or test runs
def get_or_create_metric(name, documentation, metric_type, **kwargs):
    try:
        return metric_type(name, documentation, **kwargs)
    except ValueError:
        # If it already exists, retrieve it from the registry
        return REGISTRY._names_to_collectors[name]


REQUESTS_TOTAL = get_or_create_metric(
    "momentum_requests_total",
    "Total requests",
    Counter,
    labelnames=["endpoint", "status"],
)

REQUEST_LATENCY_SECONDS = get_or_create_metric(
    "momentum_request_latency_seconds",
    "Request latency",
    Histogram,
    labelnames=["endpoint"],
)

EVENTS_CREATED_TOTAL = get_or_create_metric(
    "momentum_events_created_total", "Calendar events created", Counter
)

EVENTS_ALREADY_SYNCED_TOTAL = get_or_create_metric(
    "momentum_events_already_synced_total",
    "Inserts skipped because the event already existed",
    Counter,
)

TASK_ERRORS_TOTAL = get_or_create_metric(
    "momentum_task_errors_total",
    "Tasks that failed to sync",
    Counter,
    labelnames=["kind"],
)

SYNC_RUNS_TOTAL = get_or_create_metric(
    "momentum_sync_runs_total",
    "Per-user sync runs by outcome",
    Counter,
    labelnames=["outcome"],
)

USERS_TRIGGERED_TOTAL = get_or_create_metric(
    "momentum_users_triggered_total", "Users triggered by the fan-out", Counter
)
