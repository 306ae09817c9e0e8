from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from canvasgate.gateway import Gateway
from canvasgate.middleware.auth import get_gateway, require_subject
from canvasgate.types import BoardDefaultCredentialRequest, CredentialCreateRequest

router = APIRouter(prefix="/v1", tags=["credentials"])


@router.get("/credentials")
async def list_credentials(
    subject_id: str = Depends(require_subject),
    gateway: Gateway = Depends(get_gateway),
) -> dict[str, Any]:
    return {"data": await gateway.vault.list_credentials(subject_id)}


@router.post("/credentials", status_code=201)
async def add_credential(
    payload: CredentialCreateRequest,
    subject_id: str = Depends(require_subject),
    gateway: Gateway = Depends(get_gateway),
) -> dict[str, Any]:
    credential = await gateway.vault.add_credential(subject_id, payload.provider, payload.api_key, payload.nickname)
    return credential.public_view()


@router.delete("/credentials/{credential_id}")
async def revoke_credential(
    credential_id: str,
    subject_id: str = Depends(require_subject),
    gateway: Gateway = Depends(get_gateway),
) -> dict[str, str]:
    await gateway.vault.revoke_credential(subject_id, credential_id)
    return {"id": credential_id, "status": "revoked"}


@router.put("/boards/{board_id}/default-credential")
async def set_board_default_credential(
    board_id: str,
    payload: BoardDefaultCredentialRequest,
    subject_id: str = Depends(require_subject),
    gateway: Gateway = Depends(get_gateway),
) -> dict[str, str | None]:
    await gateway.vault.set_board_default_credential(subject_id, board_id, payload.credential_id)
    return {"board_id": board_id, "default_credential_id": payload.credential_id}
