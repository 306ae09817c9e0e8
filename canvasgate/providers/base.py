"""Base provider interface.

Each upstream vendor is one ``BaseProvider`` subclass. The shared HTTP
plumbing (client construction, error mapping, SSE line handling) lives here;
subclasses describe the wire format through ``build_payload``,
``parse_response`` and ``parse_stream_event``.
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, AsyncIterator, Optional

import httpx

from canvasgate.exceptions import StreamInterrupted, UpstreamProviderError, map_upstream_status
from canvasgate.types import PreparedRequest, StreamChunk, TokenUsage

WEB_SEARCH_INSTRUCTION = (
    "You have access to a web search function. Use it whenever you need current "
    "information, recent news, or any data that might be newer than your training "
    "data. Do not say you cannot browse the internet - you can search the web using "
    "the web_search function."
)


@dataclass
class ProviderResponse:
    """Text and usage returned by a non-streaming call."""

    text: str
    usage: TokenUsage


class BaseProvider(ABC):
    """Abstract base class for provider adapters."""

    name: str = "base"
    default_api_base: str = ""
    supports_fallback: bool = False

    def __init__(
        self,
        api_base: Optional[str] = None,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Initialize the provider.

        Args:
            api_base: Override for the vendor base URL
            timeout: Request timeout in seconds
            transport: Optional httpx transport, used by tests
        """
        self.api_base = api_base or self.default_api_base
        self.timeout = timeout
        self.transport = transport

    @abstractmethod
    def get_headers(self, api_key: str) -> dict[str, str]:
        """Authentication and content headers for a request."""

    @abstractmethod
    def endpoint(self, request: PreparedRequest, stream: bool) -> str:
        """Path (relative to ``api_base``) for the request."""

    @abstractmethod
    def build_payload(self, request: PreparedRequest, stream: bool = False) -> dict[str, Any]:
        """Build the vendor request body."""

    @abstractmethod
    def parse_response(self, data: dict[str, Any]) -> ProviderResponse:
        """Extract text and usage from a non-streaming response body."""

    @abstractmethod
    def parse_stream_event(self, data: dict[str, Any]) -> Optional[StreamChunk]:
        """Convert one decoded SSE ``data:`` payload into a chunk, or None to skip."""

    def verify_credential(self, secret: str) -> bool:
        """Structural sanity check run before a credential is stored."""
        return bool(secret and secret.strip())

    def _get_client(self, api_key: str) -> httpx.AsyncClient:
        if not api_key:
            raise UpstreamProviderError(f"{self.name} API key is required", provider=self.name)
        return httpx.AsyncClient(
            base_url=self.api_base,
            headers=self.get_headers(api_key),
            timeout=self.timeout,
            transport=self.transport,
        )

    def _handle_error(self, response: httpx.Response) -> UpstreamProviderError:
        """Map a non-2xx response using only its status line.

        The body may echo user content, so it never reaches the error or logs.
        """
        status_code = response.status_code
        retry_after = None
        if status_code == 429:
            header = response.headers.get("retry-after")
            retry_after = int(header) if header and header.isdigit() else None

        return map_upstream_status(self.name, status_code, response.reason_phrase, retry_after)

    def _stream_error(self, error_type: Any) -> StreamInterrupted:
        """Error reported inside an already-open stream.

        Only the vendor's error type is kept, never its message.
        """
        kind = str(error_type)[:50] if isinstance(error_type, (str, int)) else "unknown"
        return StreamInterrupted(
            f"{self.name} stream reported an error: {kind}",
            provider=self.name,
            code="upstream_stream_error",
        )

    async def complete(self, request: PreparedRequest, api_key: str) -> ProviderResponse:
        """Execute a non-streaming completion."""
        client = self._get_client(api_key)
        try:
            response = await client.post(
                self.endpoint(request, stream=False),
                json=self.build_payload(request, stream=False),
            )
            if response.status_code >= 400:
                raise self._handle_error(response)
            try:
                data = response.json()
                return self.parse_response(data)
            except (ValueError, KeyError, IndexError, TypeError) as exc:
                raise UpstreamProviderError(
                    f"{self.name} returned a malformed response",
                    provider=self.name,
                    code="upstream_malformed",
                ) from exc
        except httpx.TimeoutException as exc:
            raise UpstreamProviderError(
                f"{self.name} request timed out", provider=self.name, code="upstream_timeout"
            ) from exc
        except httpx.TransportError as exc:
            raise UpstreamProviderError(
                f"{self.name} connection failed: {type(exc).__name__}",
                provider=self.name,
                code="upstream_connection",
            ) from exc
        finally:
            await client.aclose()

    async def complete_stream(self, request: PreparedRequest, api_key: str) -> AsyncIterator[StreamChunk]:
        """Execute a streaming completion, yielding chunks in arrival order."""
        client = self._get_client(api_key)
        started = False
        try:
            async with client.stream(
                "POST",
                self.endpoint(request, stream=True),
                json=self.build_payload(request, stream=True),
            ) as response:
                if response.status_code >= 400:
                    await response.aread()
                    raise self._handle_error(response)
                started = True

                async for line in response.aiter_lines():
                    line = line.strip()
                    if not line.startswith("data:"):
                        continue
                    data = line[5:].strip()
                    if data == "[DONE]":
                        break
                    try:
                        event = json.loads(data)
                    except json.JSONDecodeError:
                        continue
                    chunk = self.parse_stream_event(event)
                    if chunk is not None:
                        yield chunk
        except httpx.TimeoutException as exc:
            error_cls = StreamInterrupted if started else UpstreamProviderError
            raise error_cls(f"{self.name} stream timed out", provider=self.name, code="upstream_timeout") from exc
        except httpx.TransportError as exc:
            if started:
                raise StreamInterrupted(
                    f"{self.name} stream interrupted: {type(exc).__name__}", provider=self.name
                ) from exc
            raise UpstreamProviderError(
                f"{self.name} connection failed: {type(exc).__name__}",
                provider=self.name,
                code="upstream_connection",
            ) from exc
        finally:
            await client.aclose()
