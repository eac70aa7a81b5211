"""Deployment endpoints.

Deployments run in the background; POST returns 202 with the admitted
record and clients poll GET /deployments/{id} for progress.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from src.api.dependencies import get_orchestrator
from src.api.models import CancelRequest, DeploymentRequest, ListResponse, RollbackRequest
from src.api_errors import ErrorCode, NotFoundError
from src.deployment import DeploymentOrchestrator, DeploymentStatus

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/deployments", tags=["Deployments"])


def _require(orchestrator: DeploymentOrchestrator, deployment_id: str):
    record = orchestrator.get_deployment(deployment_id)
    if record is None:
        raise NotFoundError(
            f"Deployment {deployment_id} not found",
            ErrorCode.DEPLOYMENT_NOT_FOUND,
            resource_type="deployment",
            resource_id=deployment_id,
        )
    return record


@router.post("", status_code=202)
async def create_deployment(
    body: DeploymentRequest,
    orchestrator: DeploymentOrchestrator = Depends(get_orchestrator),
):
    record = orchestrator.start_deployment(body.to_config(), body.version)
    logger.info("Deployment %s accepted via API", record.deployment_id)
    return record.to_dict()


@router.get("", response_model=ListResponse)
async def list_deployments(
    status: Optional[DeploymentStatus] = None,
    environment: Optional[str] = None,
    limit: int = Query(default=20, ge=1, le=200),
    orchestrator: DeploymentOrchestrator = Depends(get_orchestrator),
):
    records = orchestrator.list_deployments(status=status, environment=environment, limit=limit)
    return ListResponse(data=[r.to_dict() for r in records], total=len(records))


@router.get("/{deployment_id}")
async def get_deployment(
    deployment_id: str,
    orchestrator: DeploymentOrchestrator = Depends(get_orchestrator),
):
    record = _require(orchestrator, deployment_id)
    body = record.to_dict()
    plan = orchestrator.get_rollback_plan(deployment_id)
    body["rollback_plan"] = plan.to_dict() if plan else None
    return body


@router.post("/{deployment_id}/rollback")
async def rollback_deployment(
    deployment_id: str,
    body: Optional[RollbackRequest] = None,
    orchestrator: DeploymentOrchestrator = Depends(get_orchestrator),
):
    reason = body.reason if body else "Manual rollback"
    result = await orchestrator.execute_rollback(deployment_id, reason=reason)
    return result.to_dict()


@router.post("/{deployment_id}/cancel", status_code=202)
async def cancel_deployment(
    deployment_id: str,
    body: Optional[CancelRequest] = None,
    orchestrator: DeploymentOrchestrator = Depends(get_orchestrator),
):
    reason = body.reason if body else "Cancelled by operator"
    record = orchestrator.cancel_deployment(deployment_id, reason=reason)
    return record.to_dict()
