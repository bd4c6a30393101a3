from perfgate.api.routes.alerts import router as alerts_router
from perfgate.api.routes.health import router as health_router
from perfgate.api.routes.performance import router as performance_router

__all__ = ["alerts_router", "health_router", "performance_router"]
