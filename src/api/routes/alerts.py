"""Alert endpoints."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends

from src.alerting import AlertEngine
from src.api.dependencies import get_alert_engine
from src.api.models import AcknowledgeRequest, ListResponse
from src.api_errors import ConflictError

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/alerts", tags=["Alerts"])


@router.get("/active", response_model=ListResponse)
async def active_alerts(engine: AlertEngine = Depends(get_alert_engine)):
    alerts = engine.get_active_alerts()
    return ListResponse(data=[a.to_dict() for a in alerts], total=len(alerts))


@router.post("/{alert_id}/acknowledge")
async def acknowledge_alert(
    alert_id: str,
    body: Optional[AcknowledgeRequest] = None,
    engine: AlertEngine = Depends(get_alert_engine),
):
    by = body.acknowledged_by if body else "operator"
    if not engine.acknowledge(alert_id, by=by):
        alert = engine.get_alert(alert_id)
        raise ConflictError(f"Alert {alert_id} is {alert.status.value} and cannot be acknowledged")
    return engine.get_alert(alert_id).to_dict()
