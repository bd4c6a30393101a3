"""
PerfGate REST API
=================
FastAPI app exposing a single PerformanceEngine.

The app does not build its own engine: the caller supplies one (so the
search target and config stay in the caller's hands) and the lifespan
closes it on shutdown, which stops any running monitor loop. With
close_target the target (an HttpSearchTarget session) is closed as well.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger
from prometheus_client import make_asgi_app

from perfgate import __version__
from perfgate.api.routes import alerts_router, health_router, performance_router
from perfgate.core.exceptions import (
    ConfigurationError,
    MonitorStateError,
    NotFoundError,
    PerfGateError,
    RecoverableError,
    ValidationError,
    is_debug_mode,
)
from perfgate.pipeline import PerformanceEngine


def create_app(engine: PerformanceEngine, *, close_target: bool = False) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("PerfGate API started")
        yield
        logger.info("Closing PerformanceEngine...")
        await app.state.engine.close()
        if close_target and hasattr(engine.prober.target, "close"):
            await engine.prober.target.close()

    app = FastAPI(
        title="PerfGate API",
        description="Performance validation, regression gating and monitoring for async search",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.engine = engine

    @app.exception_handler(PerfGateError)
    async def perfgate_exception_handler(request: Request, exc: PerfGateError):
        """Map PerfGate errors to JSON bodies; tracebacks only in DEBUG mode."""
        if exc.recoverable:
            logger.warning(f"Recoverable error: {exc}")
        else:
            logger.error(f"Irrecoverable error: {exc}")

        if isinstance(exc, NotFoundError):
            status_code = 404
        elif isinstance(exc, (ValidationError, ConfigurationError)):
            status_code = 400
        elif isinstance(exc, MonitorStateError):
            status_code = 409
        elif isinstance(exc, RecoverableError):
            status_code = 503
        else:
            status_code = 500

        return JSONResponse(
            status_code=status_code,
            content={"success": False, **exc.to_dict(include_traceback=is_debug_mode())},
        )

    app.include_router(health_router)
    app.include_router(performance_router)
    app.include_router(alerts_router)
    app.mount("/metrics", make_asgi_app())
    return app
