"""
Performance budget check, usable without running a pipeline.
"""

from typing import List, Optional

from perfgate.core.config import ThresholdConfig, get_config
from perfgate.core.models import BudgetCheckResult, BudgetMetrics, BudgetViolation


def _violation_percent(overshoot: float, budget: float) -> float:
    # A zero budget has no meaningful ratio; any overshoot counts as 100%.
    if budget == 0:
        return 100.0
    return overshoot / budget * 100.0


def check_budget(metrics: BudgetMetrics, thresholds: Optional[ThresholdConfig] = None) -> BudgetCheckResult:
    """
    Compare current metrics with the configured budgets.

    Latency, error rate and memory are ceilings; throughput is a floor.
    """
    t = thresholds or get_config().thresholds
    violations: List[BudgetViolation] = []

    if metrics.response_time_ms > t.target_response_time_ms:
        violations.append(BudgetViolation(
            metric="response_time_ms",
            budget=t.target_response_time_ms,
            actual=metrics.response_time_ms,
            violation_percent=_violation_percent(
                metrics.response_time_ms - t.target_response_time_ms, t.target_response_time_ms
            ),
        ))

    if metrics.throughput_qps < t.min_throughput_qps:
        violations.append(BudgetViolation(
            metric="throughput_qps",
            budget=t.min_throughput_qps,
            actual=metrics.throughput_qps,
            violation_percent=_violation_percent(
                t.min_throughput_qps - metrics.throughput_qps, t.min_throughput_qps
            ),
        ))

    if metrics.error_rate > t.max_error_rate:
        violations.append(BudgetViolation(
            metric="error_rate",
            budget=t.max_error_rate,
            actual=metrics.error_rate,
            violation_percent=_violation_percent(metrics.error_rate - t.max_error_rate, t.max_error_rate),
        ))

    if metrics.memory_usage_mb > t.memory_budget_mb:
        violations.append(BudgetViolation(
            metric="memory_usage_mb",
            budget=t.memory_budget_mb,
            actual=metrics.memory_usage_mb,
            violation_percent=_violation_percent(
                metrics.memory_usage_mb - t.memory_budget_mb, t.memory_budget_mb
            ),
        ))

    return BudgetCheckResult(passed=not violations, violations=violations)
