from __future__ import annotations

from fastapi import APIRouter, Request

from canvasgate import __version__

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(request: Request) -> dict[str, object]:
    gateway = request.app.state.gateway
    return {
        "status": "healthy",
        "version": __version__,
        "providers": sorted(gateway.providers),
    }
