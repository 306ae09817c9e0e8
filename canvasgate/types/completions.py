"""Completion request and response types."""

from typing import Optional

from pydantic import BaseModel, Field

from .messages import Message


class CompletionOptions(BaseModel):
    """Caller-supplied options. Unset fields fall back to gateway defaults."""

    provider: Optional[str] = None
    model: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None


class TokenUsage(BaseModel):
    """Token counts reported by the provider."""

    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


class PreparedRequest(BaseModel):
    """Validated, normalized request handed to a provider."""

    provider: str
    model: str
    temperature: float
    max_tokens: int
    messages: list[Message]
    web_search: bool = False


class CompletionResult(BaseModel):
    """Result of a non-streaming completion."""

    request_id: str
    text: str
    provider: str
    model: str
    usage: TokenUsage = Field(default_factory=TokenUsage)
    cost_estimate: float = 0.0
    web_search: bool = False


class StreamChunk(BaseModel):
    """One increment of a streamed completion.

    Providers emit chunks with ``delta`` text and, usually on the last event,
    a ``usage`` block. The orchestrator re-emits them to the caller with the
    accumulated ``text`` filled in and ``finished`` set on the final chunk.
    """

    delta: str = ""
    text: str = ""
    usage: Optional[TokenUsage] = None
    finished: bool = False
