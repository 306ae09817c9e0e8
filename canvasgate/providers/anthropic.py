"""Anthropic provider adapter."""

from typing import Any, Optional

from canvasgate.types import PreparedRequest, StreamChunk, TokenUsage

from .base import WEB_SEARCH_INSTRUCTION, BaseProvider, ProviderResponse
from .registry import register_provider

ANTHROPIC_VERSION = "2023-06-01"


@register_provider("anthropic")
class AnthropicProvider(BaseProvider):
    """Anthropic Messages API adapter.

    System messages are lifted into the top-level ``system`` field and the
    temperature is capped at 1.0, the Messages API maximum.
    """

    name = "anthropic"
    default_api_base = "https://api.anthropic.com/v1"

    def get_headers(self, api_key: str) -> dict[str, str]:
        return {
            "x-api-key": api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "Content-Type": "application/json",
        }

    def endpoint(self, request: PreparedRequest, stream: bool) -> str:
        return "/messages"

    def build_payload(self, request: PreparedRequest, stream: bool = False) -> dict[str, Any]:
        system_parts = [m.content for m in request.messages if m.role == "system"]
        if request.web_search:
            system_parts.insert(0, WEB_SEARCH_INSTRUCTION)

        payload: dict[str, Any] = {
            "model": request.model,
            "messages": [
                {"role": m.role, "content": m.content}
                for m in request.messages
                if m.role != "system"
            ],
            "max_tokens": request.max_tokens,
            "temperature": min(request.temperature, 1.0),
        }
        if system_parts:
            payload["system"] = "\n\n".join(system_parts)
        if request.web_search:
            payload["tools"] = [{"type": "web_search_20250305", "name": "web_search"}]
        if stream:
            payload["stream"] = True
        return payload

    def parse_response(self, data: dict[str, Any]) -> ProviderResponse:
        text = "".join(
            block.get("text", "")
            for block in data["content"]
            if block.get("type") == "text"
        )
        usage = data.get("usage") or {}
        return ProviderResponse(
            text=text,
            usage=TokenUsage(
                input_tokens=usage.get("input_tokens") or 0,
                output_tokens=usage.get("output_tokens") or 0,
            ),
        )

    def parse_stream_event(self, data: dict[str, Any]) -> Optional[StreamChunk]:
        event_type = data.get("type")

        if event_type == "error":
            error = data.get("error")
            raise self._stream_error(error.get("type") if isinstance(error, dict) else None)
        if event_type == "message_start":
            usage = (data.get("message") or {}).get("usage") or {}
            return StreamChunk(
                usage=TokenUsage(
                    input_tokens=usage.get("input_tokens") or 0,
                    output_tokens=usage.get("output_tokens") or 0,
                )
            )
        if event_type == "content_block_delta":
            delta = data.get("delta") or {}
            if delta.get("type") == "text_delta" and delta.get("text"):
                return StreamChunk(delta=delta["text"])
            return None
        if event_type == "message_delta":
            usage = data.get("usage") or {}
            return StreamChunk(usage=TokenUsage(output_tokens=usage.get("output_tokens") or 0))
        return None
