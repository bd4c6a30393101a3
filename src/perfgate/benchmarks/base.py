"""
Shared statistics and resource helpers for benchmark and load reductions.
"""

from __future__ import annotations

import sys
import time
from dataclasses import dataclass
from typing import Iterable, Optional

import numpy as np
import psutil

# Reported for every latency statistic when a batch has no successful probe.
MAX_DURATION_MS: float = sys.float_info.max


@dataclass(frozen=True)
class LatencyStats:
    mean: float
    p50: float
    p95: float
    p99: float
    count: int

    @property
    def empty(self) -> bool:
        return self.count == 0


def _index(n: int, percentile: float) -> int:
    return min(max(int(n * percentile), 0), n - 1)


def compute_percentiles(values: Iterable[float]) -> LatencyStats:
    """
    Reduce durations (ms) to mean and floor-indexed p50/p95/p99.

    An empty input yields MAX_DURATION_MS for every statistic rather than
    NaN or a zero that would read as "fast".
    """
    ordered = np.sort(np.asarray(list(values), dtype=float))
    n = int(ordered.size)
    if n == 0:
        return LatencyStats(MAX_DURATION_MS, MAX_DURATION_MS, MAX_DURATION_MS, MAX_DURATION_MS, 0)

    return LatencyStats(
        mean=float(np.mean(ordered)),
        p50=float(ordered[_index(n, 0.50)]),
        p95=float(ordered[_index(n, 0.95)]),
        p99=float(ordered[_index(n, 0.99)]),
        count=n,
    )


def is_unavailable(value_ms: float) -> bool:
    return value_ms >= MAX_DURATION_MS


def format_ms(value_ms: float) -> str:
    """Render a duration for humans; the empty-batch sentinel prints as n/a."""
    if is_unavailable(value_ms):
        return "n/a"
    return f"{value_ms:.1f}ms"


class SystemMetrics:
    """Process resource sampling around probes."""

    def __init__(self):
        self.process = psutil.Process()

    def get_memory_mb(self) -> float:
        """Current resident set size in MB."""
        return self.process.memory_info().rss / 1024 / 1024


class TimedContext:
    """Context manager for timing a block against an injectable clock."""

    def __init__(self, clock=time.perf_counter):
        self._clock = clock
        self.start_time: Optional[float] = None
        self.end_time: Optional[float] = None

    def __enter__(self):
        self.start_time = self._clock()
        return self

    def __exit__(self, *args):
        self.end_time = self._clock()

    @property
    def elapsed_seconds(self) -> float:
        if self.start_time is None:
            return 0.0
        end = self.end_time if self.end_time is not None else self._clock()
        return end - self.start_time
