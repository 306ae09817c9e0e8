from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from canvasgate.exceptions import GatewayError, RateLimitExceeded, ValidationError
from canvasgate.observability import get_logger

logger = get_logger(__name__)


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


def _serialize_error(exc: GatewayError, request_id: str | None) -> dict[str, object]:
    return {"error": exc.to_dict(request_id)}


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
        headers = {}
        if isinstance(exc, RateLimitExceeded) and exc.retry_after:
            headers["Retry-After"] = str(exc.retry_after)
        if exc.status_code >= 500:
            logger.warning("request_failed", error=str(exc), status_code=exc.status_code)
        return JSONResponse(
            status_code=exc.status_code,
            content=_serialize_error(exc, _request_id(request)),
            headers=headers,
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = exc.errors()
        field = None
        if errors:
            loc = [str(part) for part in errors[0].get("loc", ()) if part != "body"]
            field = ".".join(loc) or None
        error = ValidationError("Request body is invalid", field=field)
        return JSONResponse(status_code=error.status_code, content=_serialize_error(error, _request_id(request)))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("unhandled_exception", error_type=type(exc).__name__)
        error = GatewayError()
        return JSONResponse(status_code=error.status_code, content=_serialize_error(error, _request_id(request)))
