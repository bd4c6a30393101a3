"""
Trend analysis over benchmark history.

"Consecutive" means adjacent by insertion order in the history, never by
timestamp, so two benchmarks recorded in the same instant still compare
in the order they were produced.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence

from perfgate.core.models import Benchmark

TREND_IMPROVING = "improving"
TREND_STABLE = "stable"
TREND_DEGRADING = "degrading"

# Window and band used for the period trend label.
TREND_WINDOW = 3
TREND_BAND_PERCENT = 5.0


@dataclass(frozen=True)
class TrendFinding:
    metric: str
    change_percent: float
    previous_value: float
    current_value: float
    message: str


def _change_percent(previous: float, current: float) -> Optional[float]:
    if previous == 0:
        return None
    return (current - previous) / previous * 100.0


def compare_consecutive(
    previous: Benchmark,
    latest: Benchmark,
    latency_increase_percent: float = 20.0,
    throughput_decrease_percent: float = 10.0,
) -> List[TrendFinding]:
    """
    Findings for a latency increase or throughput drop beyond the limits.

    A zero previous value has no defined percentage change and is skipped.
    Degenerate benchmarks carry sentinel latencies and are not compared.
    """
    if previous.degenerate or latest.degenerate:
        return []

    findings: List[TrendFinding] = []

    latency_change = _change_percent(previous.avg_ms, latest.avg_ms)
    if latency_change is not None and latency_change > latency_increase_percent:
        findings.append(TrendFinding(
            metric="avg_ms",
            change_percent=latency_change,
            previous_value=previous.avg_ms,
            current_value=latest.avg_ms,
            message=f"Response time regression detected: {latency_change:.1f}% increase",
        ))

    throughput_change = _change_percent(previous.throughput_qps, latest.throughput_qps)
    if throughput_change is not None and throughput_change < -throughput_decrease_percent:
        findings.append(TrendFinding(
            metric="throughput_qps",
            change_percent=throughput_change,
            previous_value=previous.throughput_qps,
            current_value=latest.throughput_qps,
            message=f"Throughput regression detected: {abs(throughput_change):.1f}% decrease",
        ))

    return findings


def performance_trend(benchmarks: Sequence[Benchmark]) -> str:
    """Label the last three benchmarks as improving, stable or degrading."""
    recent = [b for b in benchmarks if not b.degenerate][-TREND_WINDOW:]
    if len(recent) < TREND_WINDOW:
        return TREND_STABLE

    split = len(recent) // 2
    first = [b.avg_ms for b in recent[:split]]
    second = [b.avg_ms for b in recent[split:]]
    avg_first = sum(first) / len(first)
    avg_second = sum(second) / len(second)

    change = _change_percent(avg_first, avg_second)
    if change is None:
        return TREND_STABLE
    if change < -TREND_BAND_PERCENT:
        return TREND_IMPROVING
    if change > TREND_BAND_PERCENT:
        return TREND_DEGRADING
    return TREND_STABLE
