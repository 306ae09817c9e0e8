from __future__ import annotations

from typing import Any

import jwt
from fastapi import Header, Request
from jwt.exceptions import InvalidTokenError

from canvasgate.anomaly import ActivityType
from canvasgate.exceptions import AuthenticationRequired
from canvasgate.gateway import Gateway
from canvasgate.observability import get_logger

logger = get_logger(__name__)


def get_gateway(request: Request) -> Gateway:
    return request.app.state.gateway


async def require_subject(
    request: Request,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> str:
    """Resolve the bearer token to a subject id."""
    if not authorization or not authorization.lower().startswith("bearer "):
        raise AuthenticationRequired("Missing bearer token")

    token = authorization.split(" ", 1)[1].strip()
    if not token:
        raise AuthenticationRequired("Missing bearer token")

    gateway = get_gateway(request)
    settings = gateway.settings
    if not settings.jwt_secret:
        # No secret means no token can be verified.
        logger.warning("jwt_secret_not_configured")
        raise AuthenticationRequired("Token verification is not configured")
    try:
        claims = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except InvalidTokenError as exc:
        await _track_auth_failure(gateway, token)
        raise AuthenticationRequired(f"Invalid token: {type(exc).__name__}") from exc

    subject_id = claims.get("sub")
    if not isinstance(subject_id, str) or not subject_id:
        raise AuthenticationRequired("Token has no subject")

    request.state.subject_id = subject_id
    return subject_id


def _unverified_subject(token: str) -> str | None:
    try:
        claims: dict[str, Any] = jwt.decode(token, options={"verify_signature": False})
    except InvalidTokenError:
        return None
    subject_id = claims.get("sub")
    return subject_id if isinstance(subject_id, str) and subject_id else None


async def _track_auth_failure(gateway: Gateway, token: str) -> None:
    subject_id = _unverified_subject(token)
    if subject_id is None:
        return
    try:
        await gateway.detector.track_activity(subject_id, ActivityType.AUTH_FAILURE)
    except Exception:
        logger.exception("auth_failure_tracking_failed")
