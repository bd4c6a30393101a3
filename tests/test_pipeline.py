"""
End-to-end tests for PerformanceEngine.run_pipeline against an in-process
search target that answers in about a millisecond.
"""

import dataclasses
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import patch

import pytest

from conftest import broken_search, fast_search, make_benchmark
from perfgate.core.exceptions import BaselineStorageError, ConfigurationError
from perfgate.core.models import AlertCategory, Baseline, BudgetMetrics
from perfgate.pipeline import PerformanceEngine, PipelineOptions, check_budget, run_pipeline
from perfgate.reporting import ARTIFACTS


def _stored_baseline(avg_ms: float, revision: str = "old-rev") -> Baseline:
    return Baseline(
        revision=revision,
        branch="main",
        timestamp=datetime(2026, 1, 1, tzinfo=timezone.utc),
        avg_ms=avg_ms,
        p95_ms=avg_ms,
        p99_ms=avg_ms,
        throughput_qps=100.0,
        error_rate=0.0,
        memory_mb=0.0,
        test_count=10,
    )


class TestPassingRun:
    async def test_primary_branch_run_passes_and_saves_baseline(self, engine):
        result = await engine.run_pipeline("build-1", "abc123", "main")

        assert result.performance_tests_passed is True
        assert result.regression_detected is False
        assert result.baseline_comparison is None
        assert result.blocking_issues == []
        assert [g.gate_id for g in result.gates] == ["response_time", "throughput", "error_rate", "memory_usage"]
        assert [b.dataset_label for b in result.benchmarks] == ["medium"]

        saved = engine.baseline_store.load()
        assert saved is not None
        assert saved.revision == "abc123"
        assert saved.avg_ms == pytest.approx(result.benchmarks[0].avg_ms)

    async def test_snapshot_sources(self, engine):
        result = await engine.run_pipeline("build-1", "abc123", "main")
        current, benchmark = result.current, result.benchmarks[0]

        assert current.avg_ms == benchmark.avg_ms
        assert current.p95_ms == benchmark.p95_ms
        assert current.p99_ms == benchmark.p99_ms
        assert current.memory_mb == benchmark.memory_usage_mb
        assert current.error_rate == 0.0
        assert current.test_count == len(result.detailed_results)
        test_types = {r.test_type for r in result.detailed_results}
        assert test_types == {"single_query", "load_test"}

    async def test_feature_branch_never_saves_baseline(self, engine):
        result = await engine.run_pipeline("build-2", "abc123", "feature/x")
        assert result.performance_tests_passed is True
        assert engine.baseline_store.load() is None

    async def test_second_run_compares_with_first(self, engine):
        await engine.run_pipeline("build-1", "abc123", "main")
        result = await engine.run_pipeline("build-2", "def456", "feature/y")
        assert result.baseline_comparison is not None
        assert result.baseline_comparison.baseline.revision == "abc123"


class TestConfigurationErrors:
    @pytest.mark.parametrize("pipeline_id,revision,branch", [
        ("", "abc", "main"),
        ("build", "  ", "main"),
        ("build", "abc", ""),
    ])
    async def test_missing_identifiers_abort_before_probing(self, engine, pipeline_id, revision, branch):
        with pytest.raises(ConfigurationError):
            await engine.run_pipeline(pipeline_id, revision, branch)
        assert len(engine.probe_results) == 0

    async def test_invalid_option_aborts(self, engine):
        with pytest.raises(ConfigurationError):
            await engine.run_pipeline("b", "r", "main", PipelineOptions(target_response_time_ms=-1))
        with pytest.raises(ConfigurationError):
            await engine.run_pipeline("b", "r", "main", PipelineOptions(concurrent_users=0))
        assert len(engine.probe_results) == 0


class TestRegression:
    async def test_regression_blocks_and_keeps_old_baseline(self, engine):
        engine.baseline_store.save(_stored_baseline(0.0001))

        result = await engine.run_pipeline("build-3", "new-rev", "main")

        assert result.regression_detected is True
        assert result.performance_tests_passed is False
        assert any("regression" in issue for issue in result.blocking_issues)
        assert result.baseline_comparison.regression_percent > 10
        assert any(r.startswith("Significant performance regression detected") for r in result.recommendations)
        assert engine.baseline_store.load().revision == "old-rev"

    async def test_regression_is_a_warning_when_not_failing(self, engine):
        engine.baseline_store.save(_stored_baseline(0.0001))

        result = await engine.run_pipeline(
            "build-4", "new-rev", "main", PipelineOptions(fail_on_regression=False)
        )

        assert result.regression_detected is True
        assert result.performance_tests_passed is True
        assert any("regression" in w for w in result.warnings)
        assert engine.baseline_store.load().revision == "new-rev"

    async def test_comparison_can_be_disabled(self, engine):
        engine.baseline_store.save(_stored_baseline(0.0001))
        result = await engine.run_pipeline(
            "build-5", "new-rev", "main", PipelineOptions(baseline_comparison_enabled=False)
        )
        assert result.baseline_comparison is None
        assert result.regression_detected is False

    async def test_corrupt_baseline_is_treated_as_absent(self, engine):
        Path(engine.baseline_store.path).write_text("{ definitely not json")
        result = await engine.run_pipeline("build-6", "abc", "main")
        assert result.baseline_comparison is None
        assert result.performance_tests_passed is True


class TestDegradedRuns:
    async def test_broken_target_fails_without_raising(self, fast_config, constant_memory):
        async with PerformanceEngine(broken_search, fast_config, memory_sampler=constant_memory) as engine:
            result = await engine.run_pipeline("build-7", "abc", "main")

        assert result.performance_tests_passed is False
        assert result.benchmarks[0].degenerate
        assert any("produced no successful probes" in issue for issue in result.blocking_issues)
        assert result.failed_tests == result.total_tests > 0
        assert result.current.error_rate == 1.0
        assert engine.baseline_store.load() is None

    async def test_baseline_save_failure_becomes_warning(self, engine):
        with patch.object(engine.baseline_store, "save", side_effect=BaselineStorageError("b.json", "read-only")):
            result = await engine.run_pipeline("build-8", "abc", "main")
        assert result.performance_tests_passed is True
        assert any(w.startswith("Baseline could not be saved") for w in result.warnings)

    async def test_artifact_failure_is_logged_not_raised(self, engine):
        with patch.object(engine.artifact_writer, "write", side_effect=OSError("disk full")) as write:
            result = await engine.run_pipeline("build-9", "abc", "main", PipelineOptions(write_artifacts=True))
        write.assert_called_once()
        assert result.performance_tests_passed is True

    async def test_strict_latency_target_fails_gate(self, engine):
        result = await engine.run_pipeline(
            "build-10", "abc", "main", PipelineOptions(target_response_time_ms=0.0001)
        )
        assert result.performance_tests_passed is False
        assert result.blocking_issues[0].startswith("Average response time")
        assert engine.baseline_store.load() is None


class TestArtifactsAndAlerts:
    async def test_artifacts_written_when_enabled(self, engine):
        await engine.run_pipeline("build-11", "abc", "main", PipelineOptions(write_artifacts=True))
        out = Path(engine.artifact_writer.output_dir)
        assert sorted(p.name for p in out.iterdir()) == sorted(ARTIFACTS)

    async def test_trend_alerts_raised_during_run_are_reported(self, engine):
        await engine.benchmarks.append(make_benchmark(avg_ms=0.0001, throughput=1e9))
        result = await engine.run_pipeline("build-12", "abc", "main")
        assert result.alerts
        assert all(a.category is AlertCategory.REGRESSION for a in result.alerts)

    async def test_earlier_alerts_are_not_repeated(self, engine):
        await engine.benchmarks.append(make_benchmark(avg_ms=0.0001, throughput=1e9))
        await engine.run_pipeline("build-13", "abc", "feature/a")
        before = len(engine.alerts)
        result = await engine.run_pipeline("build-14", "abc", "feature/a")
        new_ids = {a.alert_id for a in engine.alerts.snapshot()[before:]}
        assert {a.alert_id for a in result.alerts} == new_ids


class TestEngineOperations:
    async def test_report_covers_pipeline_probes(self, engine):
        await engine.run_pipeline("build-15", "abc", "main")
        report = engine.generate_report(period_days=1)
        assert report.total_queries == len(engine.probe_results)
        assert report.benchmarks

    async def test_close_stops_monitoring(self, engine):
        await engine.start_monitoring(60)
        assert engine.monitor.is_running
        await engine.close()
        assert not engine.monitor.is_running

    def test_engine_check_budget_uses_engine_thresholds(self, fast_config):
        config = dataclasses.replace(
            fast_config, thresholds=dataclasses.replace(fast_config.thresholds, target_response_time_ms=50.0)
        )
        engine = PerformanceEngine(fast_search, config)
        result = engine.check_budget(BudgetMetrics(80.0, 20.0, 0.0, 10.0))
        assert [v.metric for v in result.violations] == ["response_time_ms"]


async def test_module_level_run_pipeline(fast_config, constant_memory):
    result = await run_pipeline(
        fast_search, "build-16", "abc", "release", config=fast_config, memory_sampler=constant_memory
    )
    assert result.performance_tests_passed is True


def test_module_level_check_budget():
    assert check_budget(BudgetMetrics(100.0, 20.0, 0.0, 10.0)).passed is True
