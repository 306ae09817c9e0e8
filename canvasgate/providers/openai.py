"""OpenAI provider adapter."""

from typing import Any, Optional

from canvasgate.types import PreparedRequest, StreamChunk, TokenUsage

from .base import WEB_SEARCH_INSTRUCTION, BaseProvider, ProviderResponse
from .registry import register_provider


@register_provider("openai")
class OpenAIProvider(BaseProvider):
    """OpenAI chat completions adapter."""

    name = "openai"
    default_api_base = "https://api.openai.com/v1"
    supports_fallback = True

    def get_headers(self, api_key: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    def endpoint(self, request: PreparedRequest, stream: bool) -> str:
        return "/chat/completions"

    def verify_credential(self, secret: str) -> bool:
        return secret.startswith("sk-") and len(secret) > 20

    def build_payload(self, request: PreparedRequest, stream: bool = False) -> dict[str, Any]:
        messages = [message.model_dump() for message in request.messages]
        if request.web_search:
            messages.insert(0, {"role": "system", "content": WEB_SEARCH_INSTRUCTION})

        payload: dict[str, Any] = {
            "model": request.model,
            "messages": messages,
            "temperature": request.temperature,
            "max_tokens": request.max_tokens,
        }
        if request.web_search:
            payload["tools"] = [{"type": "web_search"}]
        if stream:
            payload["stream"] = True
            payload["stream_options"] = {"include_usage": True}
        return payload

    @staticmethod
    def _usage(data: dict[str, Any]) -> Optional[TokenUsage]:
        usage = data.get("usage")
        if not usage:
            return None
        return TokenUsage(
            input_tokens=usage.get("prompt_tokens") or 0,
            output_tokens=usage.get("completion_tokens") or 0,
        )

    def parse_response(self, data: dict[str, Any]) -> ProviderResponse:
        content = data["choices"][0]["message"].get("content") or ""
        return ProviderResponse(text=content, usage=self._usage(data) or TokenUsage())

    def parse_stream_event(self, data: dict[str, Any]) -> Optional[StreamChunk]:
        error = data.get("error")
        if error:
            raise self._stream_error(error.get("type") or error.get("code") if isinstance(error, dict) else None)
        choices = data.get("choices") or []
        delta = (choices[0].get("delta") or {}) if choices else {}
        content = delta.get("content") or ""
        usage = self._usage(data)
        if not content and usage is None:
            return None
        return StreamChunk(delta=content, usage=usage)
