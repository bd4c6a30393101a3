import dataclasses
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

import pytest


# Ensure local src/ package imports work without editable install.
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from perfgate.core.config import (  # noqa: E402
    LoadSettings,
    PerfGateConfig,
    RegressionConfig,
    ReportConfig,
    reset_config,
)
from perfgate.core.models import Benchmark, LoadTestConfig, LoadTestResult  # noqa: E402


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "slow: mark test as slow-running (real sleeps against the event loop)"
    )


@pytest.fixture(autouse=True)
def _fresh_config(monkeypatch):
    """Keep PERFGATE_* variables from the outer environment out of every test."""
    import os
    for key in list(os.environ):
        if key.startswith("PERFGATE_"):
            monkeypatch.delenv(key, raising=False)
    reset_config()
    yield
    reset_config()


# =============================================================================
# Clocks and targets
# =============================================================================

class FakeClock:
    """Manually advanced clock; targets advance it to fake a probe's duration."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ScriptedTarget:
    """
    Search target whose per-query latency and failures are scripted.

    Latency is applied by advancing the shared FakeClock, so probe
    durations are exact and no real time passes.
    """

    def __init__(
        self,
        clock: FakeClock,
        latency_ms: float = 50.0,
        results: int = 3,
        failing: Optional[Dict[str, Exception]] = None,
        latencies: Optional[List[float]] = None,
    ):
        self.clock = clock
        self.latency_ms = latency_ms
        self.results = results
        self.failing = failing or {}
        self.latencies = list(latencies or [])
        self.calls: List[str] = []

    async def __call__(self, query, routing_context=None):
        self.calls.append(query)
        latency = self.latencies.pop(0) if self.latencies else self.latency_ms
        self.clock.advance(latency / 1000.0)
        if query in self.failing:
            raise self.failing[query]
        return ["doc"] * self.results


class SleepingTarget:
    """
    Real-time target for concurrent runs: each call sleeps on the event loop.

    Tracks how many calls are in flight so tests can see users overlap.
    """

    def __init__(self, latency_ms: float = 10.0, failing: Optional[Dict[str, Exception]] = None):
        self.latency_ms = latency_ms
        self.failing = failing or {}
        self.calls: List[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def __call__(self, query, routing_context=None):
        import asyncio
        self.calls.append(query)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.latency_ms / 1000.0)
        finally:
            self.in_flight -= 1
        if query in self.failing:
            raise self.failing[query]
        return ["doc", "doc"]


async def fast_search(query, routing_context=None):
    """Real-time target for end-to-end runs: about 1ms per query."""
    import asyncio
    await asyncio.sleep(0.001)
    return [f"{query}-1", f"{query}-2"]


async def broken_search(query, routing_context=None):
    raise ConnectionError("search backend unreachable")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def constant_memory():
    return lambda: 256.0


# =============================================================================
# Config and engine
# =============================================================================

@pytest.fixture
def fast_config(tmp_path) -> PerfGateConfig:
    """Defaults with a short load run and a per-test baseline file."""
    return dataclasses.replace(
        PerfGateConfig(),
        load=LoadSettings(
            concurrent_users=2,
            test_duration_seconds=0.2,
            queries_per_user=5,
            ramp_up_seconds=0.0,
            max_think_time_seconds=0.0,
        ),
        regression=RegressionConfig(baseline_path=str(tmp_path / "baseline.json")),
        report=ReportConfig(output_dir=str(tmp_path / "reports"), write_artifacts=False),
    )


@pytest.fixture
async def engine(fast_config, constant_memory):
    from perfgate.pipeline import PerformanceEngine

    async with PerformanceEngine(fast_search, fast_config, memory_sampler=constant_memory) as eng:
        yield eng


class EchoTarget:
    """Class-style target, instantiated by load_target."""

    async def __call__(self, query, routing_context=None):
        return [query]


# =============================================================================
# Record builders
# =============================================================================

def make_benchmark(avg_ms=100.0, throughput=50.0, memory=10.0, success_count=30, **kwargs) -> Benchmark:
    values = dict(
        benchmark_id="benchmark-test",
        timestamp=datetime.now(timezone.utc),
        dataset_label="medium",
        dataset_size=10_000,
        avg_ms=avg_ms,
        median_ms=avg_ms,
        p95_ms=avg_ms * 1.2,
        p99_ms=avg_ms * 1.5,
        throughput_qps=throughput,
        memory_usage_mb=memory,
        cache_hit_ratio=0.8,
        index_efficiency=0.9,
        meets_requirement=avg_ms <= 200,
        probe_count=30,
        success_count=success_count,
    )
    values.update(kwargs)
    return Benchmark(**values)


def make_load(throughput=50.0, error_rate=0.0) -> LoadTestResult:
    return LoadTestResult(
        config=LoadTestConfig.from_settings(LoadSettings()),
        avg_ms=100.0,
        p95_ms=120.0,
        throughput_qps=throughput,
        error_rate=error_rate,
        meets_requirements=True,
        elapsed_seconds=30.0,
    )
