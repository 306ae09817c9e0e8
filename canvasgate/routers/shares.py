from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from canvasgate.gateway import Gateway
from canvasgate.middleware.auth import get_gateway, require_subject
from canvasgate.types import ShareCreateRequest

router = APIRouter(prefix="/v1", tags=["shares"])


@router.post("/boards/{board_id}/shares", status_code=201)
async def create_share_link(
    board_id: str,
    payload: ShareCreateRequest,
    subject_id: str = Depends(require_subject),
    gateway: Gateway = Depends(get_gateway),
) -> dict[str, Any]:
    grant = await gateway.shares.create_share_link(
        subject_id,
        board_id,
        access=payload.access,
        expires_in_hours=payload.expires_in_hours,
        max_accesses=payload.max_accesses,
        grantee_id=payload.grantee_id,
    )
    return {
        "id": grant.id,
        "token": grant.token,
        "access": grant.access,
        "expires_at": grant.expires_at.isoformat(),
        "max_accesses": grant.max_accesses,
    }


@router.get("/shared/{token}")
async def open_shared_board(token: str, gateway: Gateway = Depends(get_gateway)) -> dict[str, Any]:
    return await gateway.shares.open_shared_board(token)


@router.delete("/shares/{grant_id}")
async def revoke_share_link(
    grant_id: str,
    subject_id: str = Depends(require_subject),
    gateway: Gateway = Depends(get_gateway),
) -> dict[str, str]:
    await gateway.shares.revoke_share_link(subject_id, grant_id)
    return {"id": grant_id, "status": "revoked"}
