"""
Benchmark Runner
================
Drives a fixed, sequential probe batch per dataset size and reduces it
into a Benchmark.

Probes inside one batch are issued strictly one after another so sibling
probes never contend with the one being measured. Failed probes are left
out of the latency statistics but still count as attempts. A batch with
no successful probe yields a degenerate Benchmark (sentinel latencies,
zero throughput, meets_requirement=False) instead of raising.
"""

from __future__ import annotations

import time
from typing import Any, Awaitable, Callable, List, Optional, Sequence

from loguru import logger

from perfgate.benchmarks.base import TimedContext, compute_percentiles
from perfgate.benchmarks.queries import BENCHMARK_VOCABULARY, DATASET_SIZES, benchmark_queries
from perfgate.core.config import ThresholdConfig
from perfgate.core.exceptions import ValidationError
from perfgate.core.history import BoundedHistory
from perfgate.core.models import Benchmark, ProbeResult, new_id, utcnow
from perfgate.probing.prober import Prober
from perfgate.probing.targets import DatasetStatsProvider, read_dataset_stats

BenchmarkCallback = Callable[[Benchmark], Awaitable[Any]]


class BenchmarkRunner:
    def __init__(
        self,
        prober: Prober,
        history: BoundedHistory[Benchmark],
        thresholds: ThresholdConfig,
        *,
        stats_provider: Optional[DatasetStatsProvider] = None,
        vocabulary: Sequence[str] = BENCHMARK_VOCABULARY,
        probe_history: Optional[BoundedHistory[ProbeResult]] = None,
        on_benchmark: Optional[BenchmarkCallback] = None,
        clock: Callable[[], float] = time.perf_counter,
    ):
        self.prober = prober
        self.history = history
        self.thresholds = thresholds
        self.stats_provider = stats_provider
        self.vocabulary = tuple(vocabulary)
        self.probe_history = probe_history
        self.on_benchmark = on_benchmark
        self._clock = clock

    async def run(
        self,
        dataset_sizes: Sequence[str] = ("small", "medium", "large"),
        include_memory_profiling: bool = True,
        routing_context: Any = None,
        thresholds: Optional[ThresholdConfig] = None,
    ) -> List[Benchmark]:
        """Benchmark each dataset size in order, appending each result to the history."""
        logger.info(f"Benchmark run started: sizes={list(dataset_sizes)}, memory_profiling={include_memory_profiling}")
        unknown = [s for s in dataset_sizes if s not in DATASET_SIZES]
        if unknown:
            raise ValidationError("dataset_sizes", f"unknown dataset size(s) {unknown}", list(dataset_sizes))

        benchmarks: List[Benchmark] = []
        for size in dataset_sizes:
            benchmark = await self.run_dataset(size, include_memory_profiling, routing_context, thresholds)
            benchmarks.append(benchmark)
        return benchmarks

    async def run_dataset(
        self,
        dataset_size: str,
        include_memory_profiling: bool = True,
        routing_context: Any = None,
        thresholds: Optional[ThresholdConfig] = None,
    ) -> Benchmark:
        thresholds = thresholds or self.thresholds
        queries = benchmark_queries(dataset_size, self.vocabulary)
        cache_hit_ratio, index_efficiency = await read_dataset_stats(self.stats_provider)

        results: List[ProbeResult] = []
        with TimedContext(self._clock) as timer:
            for query in queries:
                result = await self.prober.probe(
                    query,
                    routing_context,
                    test_type="benchmark",
                    metadata={"dataset_size": dataset_size},
                    measure_memory=include_memory_profiling,
                )
                results.append(result)

        benchmark = self._reduce(
            dataset_size, results, timer.elapsed_seconds,
            include_memory_profiling, cache_hit_ratio, index_efficiency, thresholds,
        )

        if self.probe_history is not None:
            await self.probe_history.extend(results)
        await self.history.append(benchmark)

        if benchmark.degenerate:
            logger.warning(
                f"Benchmark '{dataset_size}' produced no successful probes ({benchmark.probe_count} attempted)"
            )
        else:
            logger.info(
                f"Benchmark '{dataset_size}': avg={benchmark.avg_ms:.1f}ms p95={benchmark.p95_ms:.1f}ms "
                f"p99={benchmark.p99_ms:.1f}ms throughput={benchmark.throughput_qps:.1f} qps "
                f"meets_requirement={benchmark.meets_requirement}"
            )

        if self.on_benchmark is not None:
            await self.on_benchmark(benchmark)
        return benchmark

    @staticmethod
    def _reduce(
        dataset_size: str,
        results: List[ProbeResult],
        elapsed_seconds: float,
        include_memory_profiling: bool,
        cache_hit_ratio: float,
        index_efficiency: float,
        thresholds: ThresholdConfig,
    ) -> Benchmark:
        successes = [r for r in results if r.success]
        stats = compute_percentiles(r.duration_ms for r in successes)

        throughput = len(successes) / elapsed_seconds if successes and elapsed_seconds > 0 else 0.0

        memory_usage = 0.0
        if include_memory_profiling and results:
            memory_usage = sum(r.memory_delta_mb or 0.0 for r in results) / len(results)

        return Benchmark(
            benchmark_id=new_id("benchmark"),
            timestamp=utcnow(),
            dataset_label=dataset_size,
            dataset_size=DATASET_SIZES[dataset_size],
            avg_ms=stats.mean,
            median_ms=stats.p50,
            p95_ms=stats.p95,
            p99_ms=stats.p99,
            throughput_qps=throughput,
            memory_usage_mb=memory_usage,
            cache_hit_ratio=cache_hit_ratio,
            index_efficiency=index_efficiency,
            meets_requirement=not stats.empty and stats.mean <= thresholds.target_response_time_ms,
            probe_count=len(results),
            success_count=len(successes),
        )
