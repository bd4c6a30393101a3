"""
PerfGate Engine
===============
Owns every shared structure (probe history, benchmark history, alert log)
and the components that read and write them, and composes them into a
deployment-gating pipeline run.

Usage:
    async with PerformanceEngine(my_search) as engine:
        result = await engine.run_pipeline("build-42", "3f2c9e1", "main")

Only a configuration error (missing pipeline_id, revision or branch) can
make run_pipeline() raise before probing starts. Everything after that
degrades into the returned PipelineResult: failed probes, degenerate
benchmarks, an unreadable baseline, an unwritable baseline or artifact.
"""

from __future__ import annotations

import dataclasses
import random
import time
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Sequence

from loguru import logger

from perfgate.benchmarks.load import LoadGenerator
from perfgate.benchmarks.runner import BenchmarkRunner
from perfgate.core.config import PerfGateConfig, ThresholdConfig, get_config
from perfgate.core.exceptions import BaselineStorageError, ConfigurationError, ValidationError
from perfgate.core.history import AlertLog, BoundedHistory
from perfgate.core.metrics import PIPELINE_DURATION, PIPELINE_RUNS
from perfgate.core.models import (
    Baseline,
    BaselineComparison,
    Benchmark,
    BudgetCheckResult,
    BudgetMetrics,
    LoadTestConfig,
    LoadTestResult,
    PerformanceReport,
    PipelineResult,
    ProbeResult,
    ValidationResult,
    utcnow,
)
from perfgate.gates.budget import check_budget as _check_budget
from perfgate.gates.evaluator import GateEvaluator, advisory_failures, blocking_failures
from perfgate.monitoring.monitor import AlertMonitor
from perfgate.probing.prober import Prober
from perfgate.probing.targets import DatasetStatsProvider, SearchTarget
from perfgate.probing.validation import SearchValidator
from perfgate.regression.analyzer import RegressionAnalyzer
from perfgate.regression.baseline_store import BaselineStore
from perfgate.reporting.artifacts import ArtifactWriter
from perfgate.reporting.period_report import generate_performance_report

PIPELINE_DATASETS = ("medium",)


@dataclass(frozen=True)
class PipelineOptions:
    """Per-run gating policy. Unset fields fall back to the loaded config."""

    target_response_time_ms: Optional[float] = None
    max_acceptable_regression_percent: Optional[float] = None
    min_throughput_qps: Optional[float] = None
    max_error_rate_percent: Optional[float] = None
    test_duration_seconds: Optional[float] = None
    concurrent_users: Optional[int] = None
    baseline_comparison_enabled: Optional[bool] = None
    fail_on_regression: Optional[bool] = None
    write_artifacts: Optional[bool] = None


@dataclass(frozen=True)
class _ResolvedOptions:
    thresholds: ThresholdConfig
    load: LoadTestConfig
    max_acceptable_regression_percent: float
    baseline_comparison_enabled: bool
    fail_on_regression: bool
    write_artifacts: bool


def _pick(value, default):
    return default if value is None else value


class PerformanceEngine:
    def __init__(
        self,
        target: SearchTarget,
        config: Optional[PerfGateConfig] = None,
        *,
        routing_context: Any = None,
        stats_provider: Optional[DatasetStatsProvider] = None,
        baseline_store: Optional[BaselineStore] = None,
        artifact_writer: Optional[ArtifactWriter] = None,
        benchmark_vocabulary: Optional[Sequence[str]] = None,
        clock: Callable[[], float] = time.perf_counter,
        memory_sampler: Optional[Callable[[], float]] = None,
        rng: Optional[random.Random] = None,
    ):
        self.config = config or get_config()
        self.routing_context = routing_context
        cfg = self.config

        self.probe_results: BoundedHistory[ProbeResult] = BoundedHistory(
            cfg.benchmark.probe_history_limit, name="probe_results"
        )
        self.benchmarks: BoundedHistory[Benchmark] = BoundedHistory(cfg.benchmark.history_limit, name="benchmarks")
        self.alerts = AlertLog(cfg.monitor.alert_limit)

        self.prober = Prober(
            target, cfg.probe.timeout_seconds, clock=clock, memory_sampler=memory_sampler
        )
        self.validator = SearchValidator(self.prober, cfg.thresholds, self.probe_results)
        self.monitor = AlertMonitor(
            self.prober,
            self.alerts,
            self.benchmarks,
            cfg.thresholds,
            cfg.monitor,
            probe_history=self.probe_results,
            routing_context=routing_context,
        )
        runner_kwargs = {}
        if benchmark_vocabulary is not None:
            runner_kwargs["vocabulary"] = benchmark_vocabulary
        self.benchmark_runner = BenchmarkRunner(
            self.prober,
            self.benchmarks,
            cfg.thresholds,
            stats_provider=stats_provider,
            probe_history=self.probe_results,
            on_benchmark=self.monitor.check_trend,
            clock=clock,
            **runner_kwargs,
        )
        self.load_generator = LoadGenerator(
            self.prober,
            cfg.thresholds,
            max_think_time_seconds=cfg.load.max_think_time_seconds,
            probe_history=self.probe_results,
            rng=rng,
        )
        self.baseline_store = baseline_store or BaselineStore(cfg.regression.baseline_path)
        self.artifact_writer = artifact_writer or ArtifactWriter(cfg.report.output_dir)

    # ---- Lifecycle ----------------------------------------------- #

    async def __aenter__(self) -> "PerformanceEngine":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    async def close(self) -> None:
        await self.monitor.stop()

    # ---- Individual operations ----------------------------------- #

    async def validate(self, queries: Optional[Sequence[str]] = None) -> ValidationResult:
        return await self.validator.validate(queries, self.routing_context)

    async def run_benchmark(
        self,
        dataset_sizes: Optional[Sequence[str]] = None,
        include_memory_profiling: Optional[bool] = None,
    ) -> List[Benchmark]:
        return await self.benchmark_runner.run(
            dataset_sizes or self.config.benchmark.dataset_sizes,
            _pick(include_memory_profiling, self.config.benchmark.include_memory_profiling),
            self.routing_context,
        )

    async def run_load_test(self, config: Optional[LoadTestConfig] = None) -> LoadTestResult:
        config = config or LoadTestConfig.from_settings(self.config.load)
        return await self.load_generator.run(config, self.routing_context)

    async def start_monitoring(self, interval_seconds: Optional[float] = None) -> None:
        await self.monitor.start(interval_seconds)

    async def stop_monitoring(self) -> None:
        await self.monitor.stop()

    def check_budget(self, metrics: BudgetMetrics) -> BudgetCheckResult:
        return _check_budget(metrics, self.config.thresholds)

    def generate_report(self, period_days: float = 7, include_recommendations: bool = True) -> PerformanceReport:
        return generate_performance_report(
            self.probe_results.snapshot(),
            self.benchmarks.snapshot(),
            self.alerts.snapshot(),
            self.config.thresholds,
            period_days=period_days,
            include_recommendations=include_recommendations,
        )

    # ---- Pipeline ------------------------------------------------ #

    def _resolve(self, options: Optional[PipelineOptions]) -> _ResolvedOptions:
        o = options or PipelineOptions()
        cfg = self.config
        thresholds = dataclasses.replace(
            cfg.thresholds,
            target_response_time_ms=_pick(o.target_response_time_ms, cfg.thresholds.target_response_time_ms),
            min_throughput_qps=_pick(o.min_throughput_qps, cfg.thresholds.min_throughput_qps),
            max_error_rate_percent=_pick(o.max_error_rate_percent, cfg.thresholds.max_error_rate_percent),
        )
        if thresholds.target_response_time_ms <= 0:
            raise ConfigurationError("target_response_time_ms", "must be positive")
        tolerance = _pick(o.max_acceptable_regression_percent, cfg.regression.max_acceptable_regression_percent)
        if tolerance < 0:
            raise ConfigurationError("max_acceptable_regression_percent", "must not be negative")

        try:
            load = LoadTestConfig.from_settings(
                cfg.load,
                concurrent_users=o.concurrent_users,
                test_duration_seconds=o.test_duration_seconds,
                dataset_size="medium",
                query_complexity="moderate",
            )
        except ValidationError as e:
            raise ConfigurationError(f"load.{e.field}", e.reason)

        return _ResolvedOptions(
            thresholds=thresholds,
            load=load,
            max_acceptable_regression_percent=tolerance,
            baseline_comparison_enabled=_pick(o.baseline_comparison_enabled, cfg.regression.baseline_comparison_enabled),
            fail_on_regression=_pick(o.fail_on_regression, cfg.regression.fail_on_regression),
            write_artifacts=_pick(o.write_artifacts, cfg.report.write_artifacts),
        )

    async def run_pipeline(
        self,
        pipeline_id: str,
        revision: str,
        branch: str,
        options: Optional[PipelineOptions] = None,
    ) -> PipelineResult:
        """
        Run validation, load test and benchmark, then gate the results.

        Raises:
            ConfigurationError: If an identifier is missing or an option is
                out of range. Nothing is probed in that case.
        """
        for key, value in (("pipeline_id", pipeline_id), ("revision", revision), ("branch", branch)):
            if not value or not str(value).strip():
                raise ConfigurationError(config_key=key, reason="is required")
        opts = self._resolve(options)

        started = time.perf_counter()
        alerts_before = {a.alert_id for a in self.alerts.snapshot()}
        logger.info(f"Pipeline {pipeline_id} started for {branch}@{revision}")

        validation = await self.validator.validate(None, self.routing_context, opts.thresholds)
        load = await self.load_generator.run(opts.load, self.routing_context, opts.thresholds)
        benchmarks = await self.benchmark_runner.run(
            PIPELINE_DATASETS,
            self.config.benchmark.include_memory_profiling,
            self.routing_context,
            opts.thresholds,
        )
        benchmark = benchmarks[0]

        current = Baseline(
            revision=revision,
            branch=branch,
            timestamp=utcnow(),
            avg_ms=benchmark.avg_ms,
            p95_ms=benchmark.p95_ms,
            p99_ms=benchmark.p99_ms,
            throughput_qps=load.throughput_qps,
            error_rate=load.error_rate,
            memory_mb=benchmark.memory_usage_mb,
            test_count=len(validation.results) + len(load.results),
        )

        blocking: List[str] = []
        warnings: List[str] = []

        comparison: Optional[BaselineComparison] = None
        regression_detected = False
        if opts.baseline_comparison_enabled and not benchmark.degenerate:
            previous = self.baseline_store.load()
            if previous is not None:
                analysis = RegressionAnalyzer(opts.max_acceptable_regression_percent).analyze(previous, current)
                regression_detected = analysis.regression_detected
                comparison = BaselineComparison(
                    baseline=previous,
                    current=current,
                    regression_percent=analysis.regression_percent,
                    tolerance_percent=analysis.tolerance_percent,
                )

        gates = GateEvaluator(opts.thresholds).evaluate(benchmark, load)
        blocking.extend(blocking_failures(gates))
        warnings.extend(advisory_failures(gates))

        degenerate = [b for b in benchmarks if b.degenerate]
        for b in degenerate:
            blocking.append(f"Benchmark '{b.dataset_label}' produced no successful probes ({b.probe_count} attempted)")
        if not validation.overall_compliance:
            warnings.append(
                f"Quick validation compliance {validation.compliance_rate:.0%} is below "
                f"{opts.thresholds.validation_compliance_ratio:.0%}"
            )
        if not load.meets_requirements:
            warnings.append("Load test did not meet latency, throughput or error-rate requirements")
        if regression_detected and comparison is not None:
            message = (
                f"Performance regression of {comparison.regression_percent:+.1f}% exceeds "
                f"±{comparison.tolerance_percent:g}% tolerance"
            )
            (blocking if opts.fail_on_regression else warnings).append(message)

        passed = (
            validation.overall_compliance
            and load.meets_requirements
            and not degenerate
            and not blocking_failures(gates)
            and (not opts.fail_on_regression or not regression_detected)
        )

        recommendations = list(validation.recommendations) + self._recommendations(current, comparison, opts)

        if passed and branch == self.config.regression.primary_branch:
            try:
                self.baseline_store.save(current)
            except BaselineStorageError as e:
                logger.error(f"Baseline not saved: {e}")
                warnings.append(f"Baseline could not be saved: {e.message}")

        result = PipelineResult(
            pipeline_id=pipeline_id,
            revision=revision,
            branch=branch,
            timestamp=utcnow(),
            performance_tests_passed=passed,
            regression_detected=regression_detected,
            current=current,
            baseline_comparison=comparison,
            detailed_results=list(validation.results) + list(load.results),
            benchmarks=benchmarks,
            gates=gates,
            alerts=[a for a in self.alerts.snapshot() if a.alert_id not in alerts_before],
            blocking_issues=blocking,
            warnings=warnings,
            recommendations=recommendations,
            duration_seconds=time.perf_counter() - started,
        )

        if opts.write_artifacts:
            try:
                self.artifact_writer.write(result)
            except OSError as e:
                logger.error(f"Failed to write performance artifacts: {e}")

        PIPELINE_RUNS.labels(outcome="passed" if passed else "failed").inc()
        PIPELINE_DURATION.observe(result.duration_seconds)
        logger.info(
            f"Pipeline {pipeline_id} {'PASSED' if passed else 'FAILED'}: "
            f"{len(blocking)} blocking issues, {len(warnings)} warnings, regression={regression_detected}"
        )
        return result

    @staticmethod
    def _recommendations(
        current: Baseline,
        comparison: Optional[BaselineComparison],
        opts: _ResolvedOptions,
    ) -> List[str]:
        t = opts.thresholds
        recommendations: List[str] = []
        if current.avg_ms > t.target_response_time_ms:
            recommendations.append("Response time exceeds target - consider index optimization")
        if current.throughput_qps < t.min_throughput_qps:
            recommendations.append("Throughput below minimum - optimize query efficiency")
        if current.error_rate > t.max_error_rate:
            recommendations.append("Error rate too high - investigate and fix query failures")
        if comparison is not None and abs(comparison.regression_percent) > opts.max_acceptable_regression_percent:
            recommendations.append(
                f"Significant performance regression detected ({comparison.regression_percent:.1f}%)"
            )
        return recommendations


async def run_pipeline(
    target: SearchTarget,
    pipeline_id: str,
    revision: str,
    branch: str,
    options: Optional[PipelineOptions] = None,
    config: Optional[PerfGateConfig] = None,
    **engine_kwargs,
) -> PipelineResult:
    """One-shot pipeline run with a throwaway engine."""
    async with PerformanceEngine(target, config, **engine_kwargs) as engine:
        return await engine.run_pipeline(pipeline_id, revision, branch, options)


def check_budget(metrics: BudgetMetrics, thresholds: Optional[ThresholdConfig] = None) -> BudgetCheckResult:
    return _check_budget(metrics, thresholds)
