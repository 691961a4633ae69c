"""Monitoring configuration for the vocabulary trainer."""
from prometheus_client import Counter, Histogram, start_http_server

# Learning metrics
answers_recorded = Counter(
    "vocabmaster_answers_recorded_total",
    "Total number of recall answers recorded",
    ["quality"],
)

sessions_started = Counter(
    "vocabmaster_sessions_started_total",
    "Total number of sessions started",
    ["kind"],
)

empty_sessions = Counter(
    "vocabmaster_empty_sessions_total",
    "Total number of session requests that had nothing to do",
    ["kind"],
)

sessions_completed = Counter(
    "vocabmaster_sessions_completed_total",
    "Total number of sessions played to the end",
    ["kind"],
)

# Catalog metrics
items_added = Counter(
    "vocabmaster_items_added_total",
    "Total number of vocabulary items added to the catalog",
    ["source"],
)

# Lookup metrics
lookup_cache_hits = Counter(
    "vocabmaster_lookup_cache_hits_total",
    "Number of word lookups answered from the cache",
)

lookup_cache_misses = Counter(
    "vocabmaster_lookup_cache_misses_total",
    "Number of word lookups forwarded to the lookup provider",
)

# Database metrics
db_operations = Counter(
    "vocabmaster_db_operations_total",
    "Total number of store operations",
    ["operation_type"],
)

db_errors = Counter(
    "vocabmaster_db_errors_total",
    "Total number of store errors",
    ["error_type"],
)

db_operation_duration = Histogram(
    "vocabmaster_db_operation_duration_seconds",
    "Duration of store operations in seconds",
    ["operation_type"],
    buckets=[0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0],
)


def start_monitoring(port: int = 9090) -> None:
    """Start the Prometheus metrics server."""
    start_http_server(port)
