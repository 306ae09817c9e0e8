"""Upstream provider adapters.

Importing this package registers every built-in provider.
"""

from .base import WEB_SEARCH_INSTRUCTION, BaseProvider, ProviderResponse
from .registry import ProviderRegistry, register_provider
from .openai import OpenAIProvider
from .anthropic import AnthropicProvider
from .google import GoogleProvider

__all__ = [
    "AnthropicProvider",
    "BaseProvider",
    "GoogleProvider",
    "OpenAIProvider",
    "ProviderRegistry",
    "ProviderResponse",
    "WEB_SEARCH_INSTRUCTION",
    "register_provider",
]
