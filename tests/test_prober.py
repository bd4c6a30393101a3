"""
Tests for the Prober, result counting and target loading.
"""

import asyncio

import pytest

from conftest import EchoTarget, ScriptedTarget
from perfgate.core.exceptions import ConfigurationError
from perfgate.probing.prober import Prober
from perfgate.probing.targets import (
    StaticStatsProvider,
    count_results,
    load_target,
    read_dataset_stats,
)


class TestProbe:
    async def test_successful_probe(self, clock):
        target = ScriptedTarget(clock, latency_ms=75.0, results=4)
        prober = Prober(target, clock=clock, memory_sampler=lambda: 100.0)

        result = await prober.probe("pricing", {"tenant": "acme"}, metadata={"k": "v"})

        assert result.success is True
        assert result.error_message is None
        assert result.duration_ms == pytest.approx(75.0)
        assert result.result_count == 4
        assert result.test_type == "single_query"
        assert result.memory_delta_mb == 0.0
        assert result.metadata["k"] == "v"
        assert target.calls == ["pricing"]

    async def test_target_exception_becomes_failed_result(self, clock):
        target = ScriptedTarget(clock, latency_ms=20.0, failing={"boom": RuntimeError("index offline")})
        prober = Prober(target, clock=clock, memory_sampler=lambda: 0.0)

        result = await prober.probe("boom")

        assert result.success is False
        assert result.error_message == "index offline"
        assert result.result_count == 0
        assert result.duration_ms == pytest.approx(20.0)
        assert result.metadata["error_type"] == "RuntimeError"

    async def test_empty_exception_message_uses_class_name(self, clock):
        target = ScriptedTarget(clock, failing={"q": KeyError()})
        result = await Prober(target, clock=clock, memory_sampler=lambda: 0.0).probe("q")
        assert result.error_message == "KeyError"

    async def test_timeout_is_a_failed_probe(self):
        async def hangs(query, routing_context=None):
            await asyncio.sleep(10)

        prober = Prober(hangs, timeout_seconds=0.05, memory_sampler=lambda: 0.0)
        result = await prober.probe("slow query")

        assert result.success is False
        assert "timed out" in result.error_message
        assert result.metadata["error_type"] == "timeout"

    async def test_target_raised_timeout_is_an_ordinary_failure(self):
        async def upstream_times_out(query, routing_context=None):
            raise TimeoutError("upstream read timeout")

        prober = Prober(upstream_times_out, timeout_seconds=30, memory_sampler=lambda: 0.0)
        result = await prober.probe("q")

        assert result.success is False
        assert result.error_message == "upstream read timeout"
        assert result.metadata["error_type"] == "TimeoutError"
        assert result.duration_ms < 1000.0

    async def test_memory_delta(self, clock):
        samples = iter([100.0, 112.5])
        prober = Prober(ScriptedTarget(clock), clock=clock, memory_sampler=lambda: next(samples))
        result = await prober.probe("q")
        assert result.memory_delta_mb == pytest.approx(12.5)

    async def test_memory_not_sampled_when_disabled(self, clock):
        def sampler():
            raise AssertionError("sampler must not be called")

        result = await Prober(ScriptedTarget(clock), clock=clock, memory_sampler=sampler).probe(
            "q", measure_memory=False
        )
        assert result.memory_delta_mb is None

    async def test_sync_target_supported(self, clock):
        prober = Prober(lambda q, ctx: 7, clock=clock, memory_sampler=lambda: 0.0)
        result = await prober.probe("q")
        assert result.success and result.result_count == 7

    async def test_bad_return_type_fails_probe(self, clock):
        async def returns_bool(query, routing_context=None):
            return True

        result = await Prober(returns_bool, clock=clock, memory_sampler=lambda: 0.0).probe("q")
        assert result.success is False

    async def test_cancellation_propagates(self):
        started = asyncio.Event()

        async def hangs(query, routing_context=None):
            started.set()
            await asyncio.sleep(10)

        prober = Prober(hangs, timeout_seconds=30, memory_sampler=lambda: 0.0)
        task = asyncio.create_task(prober.probe("q"))
        await started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task


class TestCountResults:
    @pytest.mark.parametrize("value,expected", [(None, 0), (5, 5), ([1, 2], 2), ("abc", 3), ({}, 0)])
    def test_counts(self, value, expected):
        assert count_results(value) == expected

    def test_negative_count_rejected(self):
        with pytest.raises(ValueError):
            count_results(-1)

    def test_bool_rejected(self):
        with pytest.raises(TypeError):
            count_results(False)


class TestLoadTarget:
    def test_loads_function(self):
        target = load_target("conftest:fast_search")
        assert callable(target)

    def test_instantiates_class(self):
        target = load_target("conftest:EchoTarget")
        assert type(target).__name__ == EchoTarget.__name__

    @pytest.mark.parametrize("spec", ["no_colon", "perfgate_missing_module:x", "conftest:missing_attr", ":x"])
    def test_bad_specs(self, spec):
        with pytest.raises(ConfigurationError):
            load_target(spec)


class TestDatasetStats:
    async def test_defaults_without_provider(self):
        assert await read_dataset_stats(None) == (0.8, 0.9)

    async def test_static_provider(self):
        assert await read_dataset_stats(StaticStatsProvider(0.5, 0.7)) == (0.5, 0.7)

    async def test_failing_provider_falls_back_per_value(self):
        class HalfBroken:
            async def cache_hit_ratio(self):
                raise RuntimeError("stats endpoint down")

            async def index_efficiency(self):
                return 0.42

        assert await read_dataset_stats(HalfBroken()) == (0.8, 0.42)
