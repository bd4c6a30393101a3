"""
Health Routes
=============
Liveness and monitor status of the running engine.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request

from perfgate import __version__
from perfgate.pipeline import PerformanceEngine

router = APIRouter(tags=["Health"])


def get_engine(request: Request) -> PerformanceEngine:
    return request.app.state.engine


@router.get("/")
async def root():
    return {
        "status": "ok",
        "service": "PerfGate",
        "version": __version__,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/health")
async def health(engine: PerformanceEngine = Depends(get_engine)):
    return {
        "status": "healthy",
        "engine_ready": engine is not None,
        "monitor": engine.monitor.status(),
        "probe_results": len(engine.probe_results),
        "benchmarks": len(engine.benchmarks),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
