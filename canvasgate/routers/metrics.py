from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query

from canvasgate.gateway import Gateway
from canvasgate.middleware.auth import get_gateway, require_subject
from canvasgate.types import AnomalyResetRequest, ThresholdsUpdateRequest

router = APIRouter(prefix="/v1", tags=["metrics"])


@router.get("/metrics/requests")
async def request_metrics(
    limit: int = Query(default=100, ge=1, le=1000),
    subject_id: str = Depends(require_subject),
    gateway: Gateway = Depends(get_gateway),
) -> dict[str, Any]:
    return {"data": await gateway.monitoring.get_request_metrics(subject_id, limit)}


@router.get("/metrics/activity")
async def user_activity(
    subject_id: str = Depends(require_subject),
    gateway: Gateway = Depends(get_gateway),
) -> dict[str, Any]:
    return await gateway.monitoring.get_user_activity(subject_id)


@router.get("/anomaly/me")
async def anomaly_metrics(
    subject_id: str = Depends(require_subject),
    gateway: Gateway = Depends(get_gateway),
) -> dict[str, Any]:
    return await gateway.monitoring.get_anomaly_metrics(subject_id)


@router.post("/anomaly/reset")
async def reset_anomaly_metrics(
    payload: AnomalyResetRequest | None = None,
    subject_id: str = Depends(require_subject),
    gateway: Gateway = Depends(get_gateway),
) -> dict[str, str]:
    await gateway.monitoring.reset_anomaly_metrics(subject_id, payload.target_subject_id if payload else None)
    return {"status": "reset"}


@router.get("/operator/metrics")
async def system_metrics(
    subject_id: str = Depends(require_subject),
    gateway: Gateway = Depends(get_gateway),
) -> dict[str, Any]:
    return await gateway.monitoring.get_system_metrics(subject_id)


@router.put("/operator/thresholds")
async def update_thresholds(
    payload: ThresholdsUpdateRequest,
    subject_id: str = Depends(require_subject),
    gateway: Gateway = Depends(get_gateway),
) -> dict[str, Any]:
    return await gateway.monitoring.update_thresholds(subject_id, **payload.changes())


@router.post("/operator/cleanup")
async def cleanup(
    subject_id: str = Depends(require_subject),
    gateway: Gateway = Depends(get_gateway),
) -> dict[str, int]:
    return await gateway.monitoring.cleanup(subject_id)
