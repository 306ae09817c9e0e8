"""Google Gemini provider adapter."""

from typing import Any, Optional

from canvasgate.types import PreparedRequest, StreamChunk, TokenUsage

from .base import WEB_SEARCH_INSTRUCTION, BaseProvider, ProviderResponse
from .registry import register_provider


@register_provider("google")
class GoogleProvider(BaseProvider):
    """Gemini ``generateContent`` adapter."""

    name = "google"
    default_api_base = "https://generativelanguage.googleapis.com/v1beta"

    def get_headers(self, api_key: str) -> dict[str, str]:
        return {
            "x-goog-api-key": api_key,
            "Content-Type": "application/json",
        }

    def endpoint(self, request: PreparedRequest, stream: bool) -> str:
        if stream:
            return f"/models/{request.model}:streamGenerateContent?alt=sse"
        return f"/models/{request.model}:generateContent"

    def build_payload(self, request: PreparedRequest, stream: bool = False) -> dict[str, Any]:
        system_parts = [m.content for m in request.messages if m.role == "system"]
        if request.web_search:
            system_parts.insert(0, WEB_SEARCH_INSTRUCTION)

        payload: dict[str, Any] = {
            "contents": [
                {
                    "role": "model" if m.role == "assistant" else "user",
                    "parts": [{"text": m.content}],
                }
                for m in request.messages
                if m.role != "system"
            ],
            "generationConfig": {
                "temperature": request.temperature,
                "maxOutputTokens": request.max_tokens,
            },
        }
        if system_parts:
            payload["systemInstruction"] = {"parts": [{"text": text} for text in system_parts]}
        if request.web_search:
            payload["tools"] = [{"google_search": {}}]
        return payload

    @staticmethod
    def _text(data: dict[str, Any]) -> str:
        candidates = data.get("candidates") or []
        if not candidates:
            return ""
        parts = (candidates[0].get("content") or {}).get("parts") or []
        return "".join(part.get("text", "") for part in parts)

    @staticmethod
    def _usage(data: dict[str, Any]) -> Optional[TokenUsage]:
        usage = data.get("usageMetadata")
        if not usage:
            return None
        return TokenUsage(
            input_tokens=usage.get("promptTokenCount") or 0,
            output_tokens=usage.get("candidatesTokenCount") or 0,
        )

    def parse_response(self, data: dict[str, Any]) -> ProviderResponse:
        if "candidates" not in data:
            raise KeyError("candidates")
        return ProviderResponse(text=self._text(data), usage=self._usage(data) or TokenUsage())

    def parse_stream_event(self, data: dict[str, Any]) -> Optional[StreamChunk]:
        error = data.get("error")
        if error:
            raise self._stream_error(error.get("status") or error.get("code") if isinstance(error, dict) else None)
        text = self._text(data)
        usage = self._usage(data)
        if not text and usage is None:
            return None
        return StreamChunk(delta=text, usage=usage)
