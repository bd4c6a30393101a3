"""
Performance Routes
==================
Validation, load test, CI/CD pipeline, monitoring and budget endpoints.

Every POST response is wrapped as
``{success, <kind>, timestamp, duration_ms, data}``; failures are turned
into JSON error bodies by the app-level PerfGateError handler.
"""

import time
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends, Query
from loguru import logger

from perfgate.api.models import BudgetRequest, MonitorRequest, ValidateRequest
from perfgate.api.routes.health import get_engine
from perfgate.benchmarks.queries import VALIDATION_QUERIES
from perfgate.core.metrics import API_REQUEST_LATENCY, track_async_latency
from perfgate.core.models import BudgetMetrics, LoadTestConfig
from perfgate.pipeline import PerformanceEngine, PipelineOptions
from perfgate.reporting import export_json, export_junit_xml, export_prometheus, render_summary

router = APIRouter(prefix="/performance", tags=["Performance"])

QUICK_QUERY_COUNT = 3
COMPREHENSIVE_DATASETS = ("small", "medium")
HEALTH_CHECK_QUERY = "health check query"
RECENT_BENCHMARKS = 10


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _envelope(kind: str, value: str, started: float, data: Any) -> Dict[str, Any]:
    return {
        "success": True,
        kind: value,
        "timestamp": _now(),
        "duration_ms": (time.perf_counter() - started) * 1000,
        "data": data,
    }


@router.post("/validate")
@track_async_latency(API_REQUEST_LATENCY, {"endpoint": "validate"})
async def validate(req: ValidateRequest, engine: PerformanceEngine = Depends(get_engine)):
    started = time.perf_counter()
    queries = req.queries

    if req.test_type == "quick":
        validation = await engine.validate((queries or list(VALIDATION_QUERIES))[:QUICK_QUERY_COUNT])
        data = validation.to_dict()

    elif req.test_type == "comprehensive":
        validation = await engine.validate(queries)
        benchmarks = await engine.run_benchmark(COMPREHENSIVE_DATASETS)
        data = {
            "validation": validation.to_dict(),
            "benchmarks": [b.to_dict() for b in benchmarks],
            "performance_report": engine.generate_report(period_days=1).to_dict(),
        }

    elif req.test_type == "load_test":
        overrides = req.load_test_config.model_dump() if req.load_test_config else {}
        config = LoadTestConfig.from_settings(engine.config.load, **overrides)
        data = (await engine.run_load_test(config)).to_dict()

    else:
        cfg = req.ci_cd_config
        pipeline_id = (cfg.pipeline_id if cfg else None) or f"manual-{int(time.time() * 1000)}"
        revision = cfg.revision if cfg else "unknown"
        branch = cfg.branch if cfg else "main"
        options = PipelineOptions(
            **cfg.model_dump(exclude={"pipeline_id", "revision", "branch"})
        ) if cfg else None

        result = await engine.run_pipeline(pipeline_id, revision, branch, options)
        data = {
            "ci_cd_result": result.to_dict(),
            "summary": render_summary(result),
            "junit_xml": export_junit_xml(result),
            "performance_json": export_json(result),
            "prometheus_metrics": export_prometheus(result),
        }

    logger.info(f"Performance validation '{req.test_type}' served")
    return _envelope("test_type", req.test_type, started, data)


@router.get("/validate")
@track_async_latency(API_REQUEST_LATENCY, {"endpoint": "report"})
async def report(
    days: float = Query(default=7, gt=0, le=365),
    include_optimization: bool = False,
    engine: PerformanceEngine = Depends(get_engine),
):
    performance_report = engine.generate_report(period_days=days, include_recommendations=include_optimization)
    return {"success": True, "timestamp": _now(), "data": performance_report.to_dict()}


@router.post("/monitor")
@track_async_latency(API_REQUEST_LATENCY, {"endpoint": "monitor"})
async def monitor(req: MonitorRequest, engine: PerformanceEngine = Depends(get_engine)):
    started = time.perf_counter()

    if req.action == "start":
        await engine.start_monitoring(req.interval_seconds)
        data = {
            "monitoring_active": True,
            "interval_seconds": engine.monitor.interval_seconds,
            "started_at": _now(),
            "message": "Performance monitoring started successfully",
        }

    elif req.action == "stop":
        await engine.stop_monitoring()
        data = {
            "monitoring_active": False,
            "stopped_at": _now(),
            "message": "Performance monitoring stopped successfully",
        }

    elif req.action == "status":
        data = engine.monitor.status()

    else:
        validation = await engine.validate([HEALTH_CHECK_QUERY])
        data = {
            "health_status": "healthy" if validation.overall_compliance else "degraded",
            "avg_response_time_ms": validation.avg_ms,
            "meets_requirement": validation.overall_compliance,
            "timestamp": _now(),
            "recommendations": validation.recommendations,
        }

    return _envelope("action", req.action, started, data)


@router.get("/monitor")
async def monitor_status(
    include_metrics: bool = False,
    limit: int = Query(default=100, ge=1, le=10_000),
    engine: PerformanceEngine = Depends(get_engine),
):
    data: Dict[str, Any] = {"status": engine.monitor.status()}
    if include_metrics:
        day = engine.generate_report(period_days=1)
        data["metrics"] = {
            "total_queries": day.total_queries,
            "avg_response_time_ms": day.avg_response_time_ms,
            "compliance_rate": day.compliance_rate,
            "critical_issues": day.critical_issues,
            "performance_trend": day.performance_trend,
            "recent_alerts": [a.to_dict() for a in day.alerts[-limit:]],
            "recent_benchmarks": [b.to_dict() for b in day.benchmarks[-RECENT_BENCHMARKS:]],
        }
    return {"success": True, "timestamp": _now(), "data": data}


@router.post("/budget")
async def budget(req: BudgetRequest, engine: PerformanceEngine = Depends(get_engine)):
    result = engine.check_budget(BudgetMetrics(**req.model_dump()))
    return {"success": True, "timestamp": _now(), "data": result.to_dict()}
