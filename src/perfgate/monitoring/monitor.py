"""
Alert & Trend Monitor
=====================
Background health checks and benchmark trend alerts.

Lifecycle: stopped -> running -> stopped. start() while running raises
MonitorStateError; stop() while stopped does nothing. stop() cancels the
loop task and awaits it, so once it returns no further check can run.

Alerts are only ever appended. Resolving them is up to the operator
(AlertLog.resolve).
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional

from loguru import logger

from perfgate.core.config import MonitorConfig, ThresholdConfig
from perfgate.core.exceptions import MonitorStateError, ValidationError
from perfgate.core.history import AlertLog, BoundedHistory
from perfgate.core.metrics import ALERTS_RAISED, MONITOR_ACTIVE
from perfgate.core.models import (
    Alert,
    AlertCategory,
    AlertSeverity,
    Benchmark,
    ProbeResult,
    new_id,
)
from perfgate.monitoring.trends import compare_consecutive
from perfgate.probing.prober import Prober


def _caller_cancelled() -> bool:
    """True when the task running this code has itself been asked to cancel (3.11+)."""
    current = asyncio.current_task()
    cancelling = getattr(current, "cancelling", None)
    return bool(cancelling and cancelling())


class AlertMonitor:
    def __init__(
        self,
        prober: Prober,
        alerts: AlertLog,
        benchmarks: BoundedHistory[Benchmark],
        thresholds: ThresholdConfig,
        config: Optional[MonitorConfig] = None,
        *,
        probe_history: Optional[BoundedHistory[ProbeResult]] = None,
        routing_context: Any = None,
    ):
        self.prober = prober
        self.alerts = alerts
        self.benchmarks = benchmarks
        self.thresholds = thresholds
        self.cfg = config or MonitorConfig()
        self.probe_history = probe_history
        self.routing_context = routing_context
        self.interval_seconds = self.cfg.interval_seconds
        self.checks_run = 0
        self._task: Optional[asyncio.Task] = None
        self._running = False

    # ---- Lifecycle ----------------------------------------------- #

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self, interval_seconds: Optional[float] = None) -> None:
        """Launch the periodic health-check loop."""
        if self._running:
            raise MonitorStateError(state="running", action="start")
        if interval_seconds is not None:
            if interval_seconds <= 0:
                raise ValidationError("interval_seconds", "must be positive", interval_seconds)
            self.interval_seconds = interval_seconds

        self._running = True
        self._task = asyncio.create_task(self._loop(), name="perfgate_monitor")
        MONITOR_ACTIVE.set(1)
        logger.info(f"Performance monitor started, interval {self.interval_seconds:g}s")

    async def stop(self) -> None:
        """Stop the loop and wait for it to finish."""
        if not self._running and self._task is None:
            return
        self._running = False
        task, self._task = self._task, None
        try:
            if task and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
                # The loop absorbs cancellation, including one aimed at our caller.
                if _caller_cancelled():
                    raise asyncio.CancelledError()
        finally:
            MONITOR_ACTIVE.set(0)
        logger.info("Performance monitor stopped.")

    async def _loop(self) -> None:
        while self._running:
            try:
                await asyncio.sleep(self.interval_seconds)
                if self._running:
                    await self.check_once()
            except asyncio.CancelledError:
                break
            except Exception as exc:
                logger.error(f"Performance monitor loop error: {exc}", exc_info=True)

    # ---- Checks -------------------------------------------------- #

    async def check_once(self) -> List[Alert]:
        """One lightweight health probe; returns the alerts it raised."""
        self.checks_run += 1
        raised: List[Alert] = []
        try:
            result = await self.prober.probe(
                self.cfg.health_query,
                self.routing_context,
                test_type="monitoring",
            )
            if self.probe_history is not None:
                await self.probe_history.append(result)

            target = self.thresholds.target_response_time_ms
            if result.duration_ms > target:
                critical = result.duration_ms > self.thresholds.critical_response_time_ms
                raised.append(await self.raise_alert(
                    severity=AlertSeverity.CRITICAL if critical else AlertSeverity.WARNING,
                    category=AlertCategory.RESPONSE_TIME,
                    message=f"Response time exceeded threshold: {result.duration_ms:.1f}ms",
                    current_value=result.duration_ms,
                    threshold_value=target,
                    metadata={"probe_id": result.probe_id},
                ))

            if not result.success:
                raised.append(await self.raise_alert(
                    severity=AlertSeverity.CRITICAL,
                    category=AlertCategory.ERROR_RATE,
                    message=f"Query failed: {result.error_message}",
                    current_value=1,
                    threshold_value=0,
                    metadata={"probe_id": result.probe_id, "error": result.error_message},
                ))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Monitoring check failed: {e}")
            raised.append(await self.raise_alert(
                severity=AlertSeverity.CRITICAL,
                category=AlertCategory.ERROR_RATE,
                message=f"Monitoring check failed: {e}",
                current_value=1,
                threshold_value=0,
                metadata={"error": str(e)},
            ))
        return raised

    async def check_trend(self, benchmark: Optional[Benchmark] = None) -> List[Alert]:
        """
        Compare the two most recent benchmarks in history.

        The `benchmark` argument lets this serve as the runner's
        on_benchmark callback; the comparison always reads the history.
        """
        recent = self.benchmarks.last(2)
        if len(recent) < 2:
            return []
        previous, latest = recent

        raised: List[Alert] = []
        findings = compare_consecutive(
            previous,
            latest,
            latency_increase_percent=self.cfg.trend_latency_increase_percent,
            throughput_decrease_percent=self.cfg.trend_throughput_decrease_percent,
        )
        for finding in findings:
            raised.append(await self.raise_alert(
                severity=AlertSeverity.WARNING,
                category=AlertCategory.REGRESSION,
                message=finding.message,
                current_value=finding.current_value,
                threshold_value=finding.previous_value,
                metadata={
                    "benchmark_comparison": True,
                    "metric": finding.metric,
                    "change_percent": finding.change_percent,
                    "previous_benchmark": previous.benchmark_id,
                    "latest_benchmark": latest.benchmark_id,
                },
            ))
        return raised

    async def raise_alert(
        self,
        severity: AlertSeverity,
        category: AlertCategory,
        message: str,
        current_value: float,
        threshold_value: float,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Alert:
        alert = Alert(
            alert_id=new_id("alert"),
            severity=severity,
            category=category,
            message=message,
            current_value=float(current_value),
            threshold_value=float(threshold_value),
            metadata=metadata or {},
        )
        await self.alerts.append(alert)
        ALERTS_RAISED.labels(severity=severity.value, category=category.value).inc()

        log = logger.error if severity is AlertSeverity.CRITICAL else logger.warning
        log(f"[{severity.value}] {category.value}: {message}")
        return alert

    def status(self) -> Dict[str, Any]:
        return {
            "monitoring_active": self._running,
            "interval_seconds": self.interval_seconds,
            "checks_run": self.checks_run,
            "active_alerts": len(self.alerts.active()),
            "total_alerts": len(self.alerts),
        }
