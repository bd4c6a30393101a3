"""
Load Generator
==============
Simulates concurrent callers with a linear ramp-up.

Each simulated user is an independent task with its own result buffer.
Buffers are merged only after asyncio.gather() has joined every task,
so no mutable state is shared between users while they run.
"""

from __future__ import annotations

import asyncio
import random
import time
from typing import Any, Callable, List, Optional

from loguru import logger

from perfgate.benchmarks.base import compute_percentiles
from perfgate.benchmarks.queries import load_queries
from perfgate.core.config import ThresholdConfig
from perfgate.core.history import BoundedHistory
from perfgate.core.models import LoadTestConfig, LoadTestResult, ProbeResult
from perfgate.probing.prober import Prober

# p95 may exceed the latency target by this factor before the run fails.
P95_TOLERANCE_FACTOR = 1.5


class LoadGenerator:
    def __init__(
        self,
        prober: Prober,
        thresholds: ThresholdConfig,
        *,
        max_think_time_seconds: float = 1.0,
        probe_history: Optional[BoundedHistory[ProbeResult]] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.prober = prober
        self.thresholds = thresholds
        self.max_think_time_seconds = max_think_time_seconds
        self.probe_history = probe_history
        self._rng = rng or random.Random()
        self._clock = clock

    async def run(
        self,
        config: LoadTestConfig,
        routing_context: Any = None,
        thresholds: Optional[ThresholdConfig] = None,
    ) -> LoadTestResult:
        thresholds = thresholds or self.thresholds
        queries = load_queries(config.query_complexity, config.queries_per_user)
        logger.info(
            f"Load test started: {config.concurrent_users} users, {config.test_duration_seconds:g}s, "
            f"ramp-up {config.ramp_up_seconds:g}s, complexity={config.query_complexity}"
        )

        start = self._clock()
        tasks = [
            asyncio.create_task(
                self._simulate_user(user, queries, config, routing_context),
                name=f"load-user-{user}",
            )
            for user in range(config.concurrent_users)
        ]
        per_user = await asyncio.gather(*tasks)
        elapsed = self._clock() - start

        results: List[ProbeResult] = [r for user_results in per_user for r in user_results]
        if self.probe_history is not None:
            await self.probe_history.extend(results)

        load_result = self._reduce(config, results, elapsed, thresholds)
        logger.info(
            f"Load test finished: {load_result.total} probes, avg={load_result.avg_ms:.1f}ms "
            f"p95={load_result.p95_ms:.1f}ms throughput={load_result.throughput_qps:.1f} qps "
            f"error_rate={load_result.error_rate:.2%} meets_requirements={load_result.meets_requirements}"
        )
        return load_result

    async def _simulate_user(
        self,
        user: int,
        queries: List[str],
        config: LoadTestConfig,
        routing_context: Any,
    ) -> List[ProbeResult]:
        delay = (user / config.concurrent_users) * config.ramp_up_seconds
        if delay > 0:
            await asyncio.sleep(delay)

        user_id = f"user-{user}"
        results: List[ProbeResult] = []
        deadline = self._clock() + config.test_duration_seconds
        index = 0
        while self._clock() < deadline:
            query = queries[index % len(queries)]
            result = await self.prober.probe(
                query,
                routing_context,
                test_type="load_test",
                metadata={"user_id": user_id},
            )
            results.append(result)
            index += 1

            pause = self._rng.uniform(0.0, self.max_think_time_seconds) if self.max_think_time_seconds > 0 else 0.0
            if pause > 0:
                await asyncio.sleep(pause)

        logger.debug(f"{user_id} finished after {len(results)} probes")
        return results

    @staticmethod
    def _reduce(
        config: LoadTestConfig,
        results: List[ProbeResult],
        elapsed_seconds: float,
        thresholds: ThresholdConfig,
    ) -> LoadTestResult:
        successes = [r for r in results if r.success]
        stats = compute_percentiles(r.duration_ms for r in successes)

        throughput = len(successes) / elapsed_seconds if elapsed_seconds > 0 else 0.0
        error_rate = (len(results) - len(successes)) / len(results) if results else 0.0

        target = thresholds.target_response_time_ms
        meets = (
            not stats.empty
            and stats.mean <= target
            and stats.p95 <= target * P95_TOLERANCE_FACTOR
            and throughput >= thresholds.min_throughput_qps
            and error_rate <= thresholds.max_error_rate
        )

        return LoadTestResult(
            config=config,
            avg_ms=stats.mean,
            p95_ms=stats.p95,
            throughput_qps=throughput,
            error_rate=error_rate,
            meets_requirements=meets,
            elapsed_seconds=elapsed_seconds,
            results=results,
        )
