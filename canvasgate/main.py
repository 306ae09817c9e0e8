from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from canvasgate import __version__
from canvasgate.config import GatewaySettings, get_settings
from canvasgate.gateway import Gateway
from canvasgate.middleware.errors import register_exception_handlers
from canvasgate.observability import configure_logging, generate_request_id, get_logger, log_context
from canvasgate.routers import (
    completions_router,
    credentials_router,
    health_router,
    metrics_router,
    shares_router,
)

logger = get_logger(__name__)


def create_app(settings: GatewaySettings | None = None, gateway: Gateway | None = None) -> FastAPI:
    """Create the FastAPI application.

    Args:
        settings: Gateway settings; read from the environment when omitted
        gateway: Prebuilt service container, used by tests

    Returns:
        FastAPI application
    """
    settings = settings or (gateway.settings if gateway else get_settings())
    configure_logging(settings.log_level, settings.log_json)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        owned = app.state.gateway is None
        if owned:
            app.state.gateway = Gateway.build(settings)
        logger.info("application_startup_complete", app_name=settings.app_name)
        try:
            yield
        finally:
            if owned:
                await app.state.gateway.aclose()

    app = FastAPI(title="Canvasgate", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.gateway = gateway

    register_exception_handlers(app)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def _request_id_middleware(request: Request, call_next):
        request_id = request.headers.get("x-request-id") or ""
        if not request_id or len(request_id) > 64:
            request_id = generate_request_id()
        request.state.request_id = request_id
        with log_context(http_request_id=request_id):
            response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    app.include_router(health_router)
    app.include_router(completions_router)
    app.include_router(credentials_router)
    app.include_router(shares_router)
    app.include_router(metrics_router)
    return app


def run() -> None:
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "canvasgate.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        log_config=None,
    )
