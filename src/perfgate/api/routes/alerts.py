"""
Alert Routes
============
Read the alert log and acknowledge alerts once their condition clears.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query

from perfgate.api.routes.health import get_engine
from perfgate.core.exceptions import AlertNotFoundError
from perfgate.pipeline import PerformanceEngine

router = APIRouter(prefix="/alerts", tags=["Alerts"])


@router.get("")
async def list_alerts(
    active_only: bool = False,
    limit: int = Query(default=100, ge=1, le=10_000),
    engine: PerformanceEngine = Depends(get_engine),
):
    alerts = engine.alerts.active() if active_only else engine.alerts.snapshot()
    return {
        "success": True,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "data": [a.to_dict() for a in alerts[-limit:]],
    }


@router.post("/{alert_id}/resolve")
async def resolve_alert(alert_id: str, engine: PerformanceEngine = Depends(get_engine)):
    alert = engine.alerts.resolve(alert_id)
    if alert is None:
        raise AlertNotFoundError(alert_id)
    return {"success": True, "data": alert.to_dict()}
