"""Type definitions for canvasgate."""

from .messages import Message, MessageRole
from .completions import (
    CompletionOptions,
    CompletionResult,
    PreparedRequest,
    StreamChunk,
    TokenUsage,
)
from .requests import (
    AnomalyResetRequest,
    BoardDefaultCredentialRequest,
    CompletionRequest,
    CredentialCreateRequest,
    ShareCreateRequest,
    ThresholdsUpdateRequest,
)

__all__ = [
    "Message",
    "MessageRole",
    "CompletionOptions",
    "CompletionResult",
    "PreparedRequest",
    "StreamChunk",
    "TokenUsage",
    "AnomalyResetRequest",
    "BoardDefaultCredentialRequest",
    "CompletionRequest",
    "CredentialCreateRequest",
    "ShareCreateRequest",
    "ThresholdsUpdateRequest",
]
