"""Drift monitoring endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends

from ..services.auth import JWTBearer
from ..services.drift import DriftMonitor

router = APIRouter(prefix="/api/drift", tags=["drift"])


@router.get("/alerts")
async def list_alerts(
    model: Optional[str] = None,
    prompt_version: Optional[str] = None,
    unacknowledged_only: bool = False,
    current_user: dict = Depends(JWTBearer()),
):
    alerts = await DriftMonitor().list_alerts(current_user["id"], model, prompt_version, unacknowledged_only)
    return [a.model_dump(mode="json") for a in alerts]


@router.post("/alerts/{alert_id}/acknowledge")
async def acknowledge_alert(
    alert_id: str,
    current_user: dict = Depends(JWTBearer()),
):
    """Acknowledge an alert; the drift class stops applying once none are open."""
    alert = await DriftMonitor().acknowledge(alert_id, current_user["id"])
    return alert.model_dump(mode="json")


@router.get("/stats")
async def get_stats(
    model: str,
    prompt_version: str,
    current_user: dict = Depends(JWTBearer()),
):
    """Rolling mean and variance over the current window."""
    stats = await DriftMonitor().stats(current_user["id"], model, prompt_version)
    return stats.model_dump(mode="json")
