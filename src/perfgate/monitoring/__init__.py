from perfgate.monitoring.monitor import AlertMonitor
from perfgate.monitoring.trends import compare_consecutive, performance_trend

__all__ = ["AlertMonitor", "compare_consecutive", "performance_trend"]
