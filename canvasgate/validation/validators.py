"""Input validation for every scalar that crosses the gateway boundary.

All functions are pure: they either return a normalized value or raise
:class:`~canvasgate.exceptions.ValidationError` naming the violated
constraint. Oversized input is rejected, never truncated.
"""

import math
import re
from typing import Any, Iterable, Optional, Pattern

from canvasgate.exceptions import ValidationError
from canvasgate.types import Message

MAX_CONTENT_LENGTH = 50_000
MAX_TITLE_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 1_000
MAX_NICKNAME_LENGTH = 100
MAX_EMAIL_LENGTH = 254
SHARE_TOKEN_LENGTH = 32
MAX_MODEL_NAME_LENGTH = 100
MAX_PROVIDER_NAME_LENGTH = 50
MAX_RESOURCE_ID_LENGTH = 128
MAX_COORDINATE = 1_000_000

DEFAULT_TEMPERATURE = 0.7
MIN_TEMPERATURE = 0.0
MAX_TEMPERATURE = 2.0
DEFAULT_MAX_TOKENS = 4000
MIN_MAX_TOKENS = 1
MAX_MAX_TOKENS = 100_000

SUPPORTED_PROVIDERS = ("openai", "anthropic", "google")

DANGEROUS_PATTERNS: list[Pattern[str]] = [
    re.compile(r"<\s*(script|iframe|object|embed|form|input|textarea|select|button)\b", re.IGNORECASE),
    re.compile(r"javascript\s*:", re.IGNORECASE),
    re.compile(r"data:text/html", re.IGNORECASE),
    re.compile(r"vbscript\s*:", re.IGNORECASE),
    re.compile(r"\bon(load|error|click|mouseover|focus|blur|change|submit)\s*=", re.IGNORECASE),
]

_MODEL_NAME_RE = re.compile(r"^[a-zA-Z0-9._-]+$")
_PROVIDER_NAME_RE = re.compile(r"^[a-z0-9]+$")
_SHARE_TOKEN_RE = re.compile(r"^[a-zA-Z0-9]+$")
_RESOURCE_ID_RE = re.compile(r"^[a-zA-Z0-9_-]+$")
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def contains_dangerous_pattern(content: str) -> bool:
    return any(pattern.search(content) for pattern in DANGEROUS_PATTERNS)


def validate_text(content: Any, max_length: int = MAX_CONTENT_LENGTH, *, field: str = "content") -> str:
    """Check type, length and dangerous signatures, returning the trimmed text."""
    if not isinstance(content, str):
        raise ValidationError(f"{field} must be a string", field=field)
    if len(content) > max_length:
        raise ValidationError(
            f"{field} exceeds maximum length of {max_length} characters",
            field=field,
        )
    if contains_dangerous_pattern(content):
        raise ValidationError(f"{field} contains potentially dangerous patterns", field=field)
    return content.strip()


def validate_content(content: Any) -> str:
    return validate_text(content, MAX_CONTENT_LENGTH, field="content")


def validate_title(title: Any) -> str:
    sanitized = validate_text(title, MAX_TITLE_LENGTH, field="title")
    if not sanitized:
        raise ValidationError("title cannot be empty", field="title")
    return sanitized


def validate_description(description: Any) -> Optional[str]:
    if description is None:
        return None
    return validate_text(description, MAX_DESCRIPTION_LENGTH, field="description")


def validate_nickname(nickname: Any) -> str:
    sanitized = validate_text(nickname, MAX_NICKNAME_LENGTH, field="nickname")
    if not sanitized:
        raise ValidationError("nickname cannot be empty", field="nickname")
    return sanitized


def validate_email(email: Any) -> str:
    value = validate_text(email, MAX_EMAIL_LENGTH, field="email").lower()
    if not _EMAIL_RE.match(value):
        raise ValidationError("email is not a valid address", field="email")
    return value


def validate_model_name(model: Any) -> str:
    if not isinstance(model, str):
        raise ValidationError("model must be a string", field="model")
    if not _MODEL_NAME_RE.match(model):
        raise ValidationError("model contains invalid characters", field="model")
    if len(model) > MAX_MODEL_NAME_LENGTH:
        raise ValidationError("model name too long", field="model")
    return model


def validate_provider_name(provider: Any, allowed: Iterable[str] = SUPPORTED_PROVIDERS) -> str:
    if not isinstance(provider, str):
        raise ValidationError("provider must be a string", field="provider")
    if not _PROVIDER_NAME_RE.match(provider):
        raise ValidationError("provider contains invalid characters", field="provider")
    if len(provider) > MAX_PROVIDER_NAME_LENGTH:
        raise ValidationError("provider name too long", field="provider")
    if provider not in tuple(allowed):
        raise ValidationError(f"unsupported provider: {provider}", field="provider")
    return provider


def _require_number(value: Any, field: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{field} must be a number", field=field)
    if not math.isfinite(value):
        raise ValidationError(f"{field} must be a finite number", field=field)
    return float(value)


def validate_temperature(temperature: Any = None) -> float:
    """Clamp to the supported range and round to two decimals.

    Non-numeric and non-finite values are still rejected.
    """
    if temperature is None:
        return DEFAULT_TEMPERATURE
    value = _require_number(temperature, "temperature")
    return round(min(max(value, MIN_TEMPERATURE), MAX_TEMPERATURE), 2)


def validate_max_tokens(max_tokens: Any = None) -> int:
    if max_tokens is None:
        return DEFAULT_MAX_TOKENS
    value = _require_number(max_tokens, "max_tokens")
    if value < MIN_MAX_TOKENS or value > MAX_MAX_TOKENS:
        raise ValidationError("max_tokens must be between 1 and 100,000", field="max_tokens")
    return int(round(value))


def clamp_max_tokens(max_tokens: Any, ceiling: int) -> int:
    """Round a token ceiling and clamp it to ``ceiling`` instead of rejecting it."""
    value = _require_number(max_tokens, "max_tokens")
    if value < MIN_MAX_TOKENS:
        raise ValidationError("max_tokens must be at least 1", field="max_tokens")
    return min(int(round(value)), ceiling)


def validate_share_token(token: Any) -> str:
    if not isinstance(token, str):
        raise ValidationError("share token must be a string", field="token")
    if len(token) != SHARE_TOKEN_LENGTH:
        raise ValidationError("invalid share token format", field="token")
    if not _SHARE_TOKEN_RE.match(token):
        raise ValidationError("share token contains invalid characters", field="token")
    return token


def validate_position(x: Any, y: Any) -> tuple[int, int]:
    coords = []
    for axis, value in (("x", x), ("y", y)):
        number = _require_number(value, axis)
        if number < -MAX_COORDINATE or number > MAX_COORDINATE:
            raise ValidationError(f"{axis} coordinate out of valid range", field=axis)
        coords.append(int(round(number)))
    return coords[0], coords[1]


def validate_resource_id(resource_id: Any, *, field: str = "id") -> str:
    if not isinstance(resource_id, str) or not resource_id:
        raise ValidationError(f"{field} must be a non-empty string", field=field)
    if len(resource_id) > MAX_RESOURCE_ID_LENGTH or not _RESOURCE_ID_RE.match(resource_id):
        raise ValidationError(f"{field} is not a valid identifier", field=field)
    return resource_id


def validate_messages(messages: Any) -> list[Message]:
    """Validate every message in a history, preserving order."""
    if not isinstance(messages, (list, tuple)) or not messages:
        raise ValidationError("messages must be a non-empty list", field="messages")

    validated = []
    for index, raw in enumerate(messages):
        if isinstance(raw, Message):
            role, content = raw.role, raw.content
        elif isinstance(raw, dict):
            role, content = raw.get("role"), raw.get("content")
        else:
            raise ValidationError(f"messages[{index}] must be an object", field="messages")
        if role not in ("system", "user", "assistant"):
            raise ValidationError(f"messages[{index}] has an invalid role", field="messages")
        text = validate_text(content, MAX_CONTENT_LENGTH, field=f"messages[{index}].content")
        validated.append(Message(role=role, content=text))
    return validated
