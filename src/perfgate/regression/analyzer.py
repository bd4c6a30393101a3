"""
Regression Analyzer
===================
Percentage change of average latency against a stored baseline.

Detection is separate from policy: analyze() only reports whether the
change exceeds the tolerance; whether that fails a run is the caller's
fail_on_regression decision.
"""

from typing import Union

from loguru import logger

from perfgate.core.models import Baseline, Benchmark, RegressionResult


def regression_percent(baseline_avg_ms: float, current_avg_ms: float) -> float:
    """(current - baseline) / baseline * 100, defined as 0 for a zero baseline."""
    if baseline_avg_ms == 0:
        return 0.0
    return (current_avg_ms - baseline_avg_ms) / baseline_avg_ms * 100.0


class RegressionAnalyzer:
    def __init__(self, max_acceptable_regression_percent: float = 10.0):
        self.max_acceptable_regression_percent = max_acceptable_regression_percent

    def analyze(self, baseline: Baseline, current: Union[Benchmark, Baseline]) -> RegressionResult:
        percent = regression_percent(baseline.avg_ms, current.avg_ms)
        detected = abs(percent) > self.max_acceptable_regression_percent

        if detected:
            logger.warning(
                f"Regression vs {baseline.branch}@{baseline.revision}: {percent:+.1f}% "
                f"(tolerance ±{self.max_acceptable_regression_percent:g}%)"
            )
        else:
            logger.info(f"Latency change vs baseline {percent:+.1f}% within tolerance")

        return RegressionResult(
            regression_percent=percent,
            regression_detected=detected,
            tolerance_percent=self.max_acceptable_regression_percent,
        )
