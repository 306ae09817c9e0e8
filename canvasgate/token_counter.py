"""Token estimates for calls whose provider did not report usage."""

from functools import lru_cache
from typing import Any, Optional, Sequence

import tiktoken

from canvasgate.observability.logging import get_logger
from canvasgate.types import Message, TokenUsage

logger = get_logger(__name__)

FALLBACK_ENCODING = "cl100k_base"

# Used only when no encoding can be loaded (e.g. offline without a cache)
CHARS_PER_TOKEN = {
    "default": 4,
    "claude": 3.5,
    "gemini": 4,
    "gpt": 4,
}

# <|start|>{role}\n{content}<|end|>\n
TOKENS_PER_MESSAGE = 4
# <|start|>assistant<|message|>
REPLY_PRIMING_TOKENS = 2


@lru_cache(maxsize=32)
def _get_encoder(model: str) -> Optional[Any]:
    try:
        try:
            return tiktoken.encoding_for_model(model)
        except KeyError:
            return tiktoken.get_encoding(FALLBACK_ENCODING)
    except Exception as exc:
        logger.warning("token_encoding_unavailable", model=model, error=type(exc).__name__)
        return None


def _estimate_by_chars(text: str, model: str) -> int:
    family = model.split("-")[0].lower()
    chars_per_token = CHARS_PER_TOKEN.get(family, CHARS_PER_TOKEN["default"])
    return int(len(text) / chars_per_token) + 1


def count_tokens(text: str, model: str) -> int:
    """Count tokens in a plain string. Empty text is zero tokens."""
    if not text:
        return 0
    encoder = _get_encoder(model)
    if encoder is None:
        return _estimate_by_chars(text, model)
    return len(encoder.encode(text))


def count_message_tokens(messages: Sequence[Message], model: str) -> int:
    """Count prompt tokens including the chat formatting overhead."""
    if not messages:
        return 0
    tokens = REPLY_PRIMING_TOKENS
    for message in messages:
        tokens += TOKENS_PER_MESSAGE + count_tokens(message.role, model) + count_tokens(message.content, model)
    return tokens


def usage_or_estimate(reported: TokenUsage, messages: Sequence[Message], text: str, model: str) -> TokenUsage:
    """Fill in whichever side of ``reported`` the provider left at zero."""
    return TokenUsage(
        input_tokens=reported.input_tokens or count_message_tokens(messages, model),
        output_tokens=reported.output_tokens or count_tokens(text, model),
    )
