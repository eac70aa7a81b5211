"""Monitoring endpoints: monitor lifecycle, system status and metrics."""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query

from src.api.dependencies import get_monitor
from src.api.models import ListResponse, MonitoringStartRequest, MonitoringStateResponse
from src.api_errors import ValidationError
from src.infra_monitoring import InfrastructureMonitor

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Monitoring"])


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    # naive query timestamps are taken as UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _state(monitor: InfrastructureMonitor) -> MonitoringStateResponse:
    return MonitoringStateResponse(
        running=monitor.is_running,
        interval_seconds=monitor.config.interval_seconds,
        tick_count=monitor.tick_count,
    )


@router.post("/monitoring/start", response_model=MonitoringStateResponse)
async def start_monitoring(
    body: Optional[MonitoringStartRequest] = None,
    monitor: InfrastructureMonitor = Depends(get_monitor),
):
    interval = body.interval_seconds if body else None
    await monitor.start(interval_seconds=interval)
    return _state(monitor)


@router.post("/monitoring/stop", response_model=MonitoringStateResponse)
async def stop_monitoring(monitor: InfrastructureMonitor = Depends(get_monitor)):
    await monitor.stop()
    return _state(monitor)


@router.get("/status")
async def system_status(
    refresh: bool = False,
    monitor: InfrastructureMonitor = Depends(get_monitor),
):
    status = await monitor.get_system_status(refresh=refresh)
    body = status.to_dict()
    body["monitoring"] = monitor.is_running
    return body


@router.get("/metrics", response_model=ListResponse)
async def get_metrics(
    start: Optional[datetime] = Query(default=None),
    end: Optional[datetime] = Query(default=None),
    monitor: InfrastructureMonitor = Depends(get_monitor),
):
    start, end = _aware(start), _aware(end)
    if start is not None and end is not None and start > end:
        raise ValidationError("start must not be after end", field="start")
    snapshots = monitor.get_metrics(start, end)
    return ListResponse(data=[m.to_dict() for m in snapshots], total=len(snapshots))
