"""
Prober
======
One timed invocation of the search target, folded into a ProbeResult.

probe() never raises for target failures: exceptions and timeouts become
success=False records with a non-empty error_message, so batch callers
can reduce results without per-item exception handling. Cancellation of
the calling task is not a target failure and propagates normally.
"""

from __future__ import annotations

import asyncio
import inspect
import time
from typing import Any, Callable, Dict, Optional

from loguru import logger

from perfgate.benchmarks.base import SystemMetrics
from perfgate.core.exceptions import ProbeTimeoutError
from perfgate.core.metrics import PROBE_COUNT, PROBE_LATENCY
from perfgate.core.models import ProbeResult, new_id, utcnow
from perfgate.probing.targets import SearchTarget, count_results


class _TargetTimeout(Exception):
    """A timeout the target raised itself, kept apart from the probe deadline."""

    def __init__(self, original: BaseException):
        super().__init__(str(original))
        self.original = original


class Prober:
    def __init__(
        self,
        target: SearchTarget,
        timeout_seconds: float = 10.0,
        *,
        clock: Callable[[], float] = time.perf_counter,
        memory_sampler: Optional[Callable[[], float]] = None,
    ):
        self.target = target
        self.timeout_seconds = timeout_seconds
        self._clock = clock
        if memory_sampler is None:
            memory_sampler = SystemMetrics().get_memory_mb
        self._memory_sampler = memory_sampler

    async def _invoke(self, query: str, routing_context: Any) -> int:
        try:
            value = self.target(query, routing_context)
            if inspect.isawaitable(value):
                value = await value
        except (asyncio.TimeoutError, TimeoutError) as e:
            raise _TargetTimeout(e) from e
        return count_results(value)

    async def probe(
        self,
        query: str,
        routing_context: Any = None,
        *,
        test_type: str = "single_query",
        metadata: Optional[Dict[str, Any]] = None,
        measure_memory: bool = True,
    ) -> ProbeResult:
        """Run the target once with the per-probe timeout and record the outcome."""
        meta: Dict[str, Any] = dict(metadata or {})
        started_at = utcnow()
        memory_before = self._memory_sampler() if measure_memory else None
        start = self._clock()

        error_message: Optional[str] = None
        result_count = 0
        try:
            result_count = await asyncio.wait_for(
                self._invoke(query, routing_context), timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError:
            error_message = ProbeTimeoutError(query, self.timeout_seconds).message
            meta["error_type"] = "timeout"
        except Exception as e:
            if isinstance(e, _TargetTimeout):
                e = e.original
            error_message = str(e) or e.__class__.__name__
            meta["error_type"] = e.__class__.__name__

        duration_ms = (self._clock() - start) * 1000.0
        success = error_message is None

        memory_delta_mb = None
        if memory_before is not None:
            memory_after = self._memory_sampler()
            memory_delta_mb = memory_after - memory_before
            meta.setdefault("rss_mb", memory_after)

        PROBE_LATENCY.labels(test_type=test_type).observe(duration_ms / 1000.0)
        PROBE_COUNT.labels(test_type=test_type, status="success" if success else "failure").inc()

        if success:
            logger.debug(f"Probe '{query}' ok in {duration_ms:.1f}ms ({result_count} results)")
        else:
            logger.debug(f"Probe '{query}' failed after {duration_ms:.1f}ms: {error_message}")

        return ProbeResult(
            probe_id=new_id("probe"),
            test_type=test_type,
            query=query,
            started_at=started_at,
            duration_ms=duration_ms,
            success=success,
            error_message=error_message,
            result_count=result_count if success else 0,
            memory_delta_mb=memory_delta_mb,
            metadata=meta,
        )
