from canvasgate.routers.completions import router as completions_router
from canvasgate.routers.credentials import router as credentials_router
from canvasgate.routers.health import router as health_router
from canvasgate.routers.metrics import router as metrics_router
from canvasgate.routers.shares import router as shares_router

__all__ = [
    "completions_router",
    "credentials_router",
    "health_router",
    "metrics_router",
    "shares_router",
]
