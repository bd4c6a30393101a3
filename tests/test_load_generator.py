"""
Tests for the concurrent load generator.

Users run concurrently against a target that sleeps on the event loop, so
durations and throughput are measured on real time with some tolerance.
"""

import random

import pytest

from conftest import SleepingTarget
from perfgate.benchmarks.base import MAX_DURATION_MS
from perfgate.benchmarks.load import LoadGenerator
from perfgate.benchmarks.queries import COMPLEXITY_TIERS
from perfgate.core.config import ThresholdConfig
from perfgate.core.exceptions import ValidationError
from perfgate.core.history import BoundedHistory
from perfgate.core.models import LoadTestConfig
from perfgate.probing.prober import Prober


def _generator(target, thresholds=None, **kwargs):
    prober = Prober(target, memory_sampler=lambda: 0.0)
    return LoadGenerator(
        prober,
        thresholds or ThresholdConfig(),
        max_think_time_seconds=0.0,
        rng=random.Random(7),
        **kwargs,
    )


def _config(**overrides):
    values = dict(concurrent_users=2, test_duration_seconds=0.3, ramp_up_seconds=0.0, queries_per_user=5)
    values.update(overrides)
    return LoadTestConfig(**values)


def _first_start_offsets(results):
    """Seconds between the earliest probe and each user's first probe, by user index."""
    first = {}
    for r in results:
        user = r.metadata["user_id"]
        if user not in first or r.started_at < first[user]:
            first[user] = r.started_at
    origin = min(first.values())
    return {
        int(user.split("-")[1]): (started - origin).total_seconds()
        for user, started in first.items()
    }


class TestLoadGenerator:
    async def test_healthy_run_meets_requirements(self):
        probes = BoundedHistory(10_000)
        target = SleepingTarget(latency_ms=10.0)
        generator = _generator(target, probe_history=probes)

        result = await generator.run(_config())

        assert result.total > 0
        assert result.failed == 0
        assert result.error_rate == 0.0
        assert 10.0 <= result.avg_ms < 60.0
        assert result.throughput_qps >= 10.0
        assert result.meets_requirements is True
        assert len(probes) == result.total

    async def test_users_run_concurrently(self):
        target = SleepingTarget(latency_ms=20.0)

        result = await _generator(target).run(_config(concurrent_users=4))

        assert target.max_in_flight >= 2
        # Each probe is measured on its own; overlapping users do not inflate it.
        assert all(r.duration_ms < 100.0 for r in result.results)
        assert result.elapsed_seconds < 4 * 0.3

    async def test_every_user_contributes(self):
        result = await _generator(SleepingTarget(latency_ms=10.0)).run(_config(concurrent_users=3))
        users = {r.metadata["user_id"] for r in result.results}
        assert users == {"user-0", "user-1", "user-2"}
        assert all(r.test_type == "load_test" for r in result.results)

    async def test_queries_come_from_complexity_tier(self):
        target = SleepingTarget(latency_ms=10.0)
        await _generator(target).run(_config(query_complexity="complex"))
        assert target.calls
        assert set(target.calls) <= set(COMPLEXITY_TIERS["complex"])

    async def test_failures_raise_error_rate(self):
        failing = COMPLEXITY_TIERS["moderate"][0]
        target = SleepingTarget(latency_ms=10.0, failing={failing: RuntimeError("503")})

        result = await _generator(target).run(_config())

        # Every fifth query of each user's cycle fails.
        assert result.error_rate == pytest.approx(0.2, abs=0.05)
        assert result.meets_requirements is False

    async def test_slow_p95_fails_run(self):
        thresholds = ThresholdConfig(target_response_time_ms=5.0)
        result = await _generator(SleepingTarget(latency_ms=20.0), thresholds).run(_config())
        assert result.p95_ms >= 20.0
        assert result.meets_requirements is False

    async def test_ramp_up_staggers_user_start(self):
        result = await _generator(SleepingTarget(latency_ms=5.0)).run(
            _config(concurrent_users=4, ramp_up_seconds=0.4, test_duration_seconds=0.2)
        )

        offsets = _first_start_offsets(result.results)
        assert sorted(offsets) == [0, 1, 2, 3]
        for user, offset in offsets.items():
            assert offset == pytest.approx(user * 0.1, abs=0.05)

    @pytest.mark.slow
    async def test_ten_users_at_100ms_meet_requirements(self):
        thresholds = ThresholdConfig(target_response_time_ms=200.0, min_throughput_qps=10.0)
        target = SleepingTarget(latency_ms=100.0)

        result = await _generator(target, thresholds).run(
            _config(concurrent_users=10, queries_per_user=5, test_duration_seconds=0.5)
        )

        assert result.error_rate == 0.0
        assert result.failed == 0
        assert target.max_in_flight == 10
        assert result.avg_ms == pytest.approx(100.0, abs=50.0)
        assert result.throughput_qps >= 10.0
        assert result.meets_requirements is True

    def test_empty_run_reduces_safely(self):
        result = LoadGenerator._reduce(_config(), [], 0.0, ThresholdConfig())
        assert result.error_rate == 0.0
        assert result.throughput_qps == 0.0
        assert result.avg_ms == MAX_DURATION_MS
        assert result.meets_requirements is False


class TestLoadTestConfig:
    @pytest.mark.parametrize("field,value", [
        ("concurrent_users", 0),
        ("test_duration_seconds", 0),
        ("queries_per_user", 0),
        ("ramp_up_seconds", -1),
        ("dataset_size", "tiny"),
        ("query_complexity", "hard"),
    ])
    def test_invalid_values_rejected(self, field, value):
        with pytest.raises(ValidationError) as exc_info:
            _config(**{field: value})
        assert exc_info.value.field == field
