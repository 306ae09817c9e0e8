"""Input validation and sanitization."""

from .sanitization import sanitize_html, sanitize_text
from .validators import (
    DANGEROUS_PATTERNS,
    MAX_CONTENT_LENGTH,
    SHARE_TOKEN_LENGTH,
    SUPPORTED_PROVIDERS,
    contains_dangerous_pattern,
    clamp_max_tokens,
    validate_content,
    validate_description,
    validate_email,
    validate_max_tokens,
    validate_messages,
    validate_model_name,
    validate_nickname,
    validate_position,
    validate_provider_name,
    validate_resource_id,
    validate_share_token,
    validate_temperature,
    validate_text,
    validate_title,
)

__all__ = [
    "DANGEROUS_PATTERNS",
    "MAX_CONTENT_LENGTH",
    "SHARE_TOKEN_LENGTH",
    "SUPPORTED_PROVIDERS",
    "clamp_max_tokens",
    "contains_dangerous_pattern",
    "sanitize_html",
    "sanitize_text",
    "validate_content",
    "validate_description",
    "validate_email",
    "validate_max_tokens",
    "validate_messages",
    "validate_model_name",
    "validate_nickname",
    "validate_position",
    "validate_provider_name",
    "validate_resource_id",
    "validate_share_token",
    "validate_temperature",
    "validate_text",
    "validate_title",
]
