"""
Process Metrics
===============
Prometheus metrics describing the harness itself (not the pipeline
artifacts, which are rendered separately in perfgate.reporting.exporters).
"""

import functools
import time

from prometheus_client import Counter, Gauge, Histogram

# --- Metrics Definitions ---
# Prober
PROBE_LATENCY = Histogram(
    "perfgate_probe_latency_seconds",
    "Latency of individual probes against the search target",
    ["test_type"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.2, 0.3, 0.5, 1.0, 2.5, 5.0, 10.0),
)
PROBE_COUNT = Counter(
    "perfgate_probes_total",
    "Probes executed",
    ["test_type", "status"],
)

# Monitor
ALERTS_RAISED = Counter(
    "perfgate_alerts_raised_total",
    "Alerts appended to the alert log",
    ["severity", "category"],
)
MONITOR_ACTIVE = Gauge(
    "perfgate_monitor_active",
    "1 while the background monitor loop is running",
)

# Pipeline
PIPELINE_RUNS = Counter(
    "perfgate_pipeline_runs_total",
    "Completed pipeline runs",
    ["outcome"],
)
PIPELINE_DURATION = Histogram(
    "perfgate_pipeline_duration_seconds",
    "Wall-clock duration of a full pipeline run",
)

# API
API_REQUEST_LATENCY = Histogram(
    "perfgate_api_request_latency_seconds",
    "Latency of PerfGate API handlers",
    ["endpoint"],
)


# --- Decorators ---

def track_async_latency(metric: Histogram, labels: dict = None):
    """Decorator to track async function execution time."""
    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            start_time = time.perf_counter()
            try:
                return await func(*args, **kwargs)
            finally:
                duration = time.perf_counter() - start_time
                if labels:
                    metric.labels(**labels).observe(duration)
                else:
                    metric.observe(duration)
        return wrapper
    return decorator
