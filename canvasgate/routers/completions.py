from __future__ import annotations

import json
from contextlib import aclosing
from typing import Any, AsyncIterator

from fastapi import APIRouter, Depends
from sse_starlette.sse import EventSourceResponse

from canvasgate.exceptions import GatewayError
from canvasgate.gateway import Gateway
from canvasgate.middleware.auth import get_gateway, require_subject
from canvasgate.observability import get_logger
from canvasgate.types import CompletionRequest, StreamChunk

router = APIRouter(prefix="/v1", tags=["completions"])
logger = get_logger(__name__)


@router.post("/completions")
async def create_completion(
    payload: CompletionRequest,
    subject_id: str = Depends(require_subject),
    gateway: Gateway = Depends(get_gateway),
) -> dict[str, Any]:
    result = await gateway.orchestrator.complete(
        subject_id,
        payload.board_id,
        payload.messages,
        payload.options(),
        response_node_id=payload.response_node_id,
    )
    return result.model_dump(mode="json")


@router.post("/completions/stream")
async def stream_completion(
    payload: CompletionRequest,
    subject_id: str = Depends(require_subject),
    gateway: Gateway = Depends(get_gateway),
) -> EventSourceResponse:
    stream = gateway.orchestrator.complete_stream(
        subject_id,
        payload.board_id,
        payload.messages,
        payload.options(),
        response_node_id=payload.response_node_id,
    )
    # Pull the first chunk here so pre-flight and connect errors keep their HTTP status.
    try:
        first: StreamChunk | None = await stream.__anext__()
    except StopAsyncIteration:
        first = None

    async def generate() -> AsyncIterator[dict[str, str]]:
        async with aclosing(stream):
            try:
                if first is not None:
                    yield {"data": first.model_dump_json(exclude_none=True)}
                async for chunk in stream:
                    yield {"data": chunk.model_dump_json(exclude_none=True)}
            except GatewayError as exc:
                logger.warning("stream_failed", error=str(exc))
                yield {"event": "error", "data": _error_json(exc)}
                return
        yield {"data": "[DONE]"}

    return EventSourceResponse(generate(), media_type="text/event-stream")


def _error_json(exc: GatewayError) -> str:
    return json.dumps({"error": exc.to_dict()})
