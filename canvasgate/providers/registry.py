"""Provider registry for managing provider adapters."""

from typing import Callable, Optional, Type

from canvasgate.exceptions import ValidationError

from .base import BaseProvider


class ProviderRegistry:
    """Registry of provider adapter classes keyed by provider name."""

    _providers: dict[str, Type[BaseProvider]] = {}

    @classmethod
    def register(cls, provider_name: str, provider_class: Type[BaseProvider]) -> None:
        """Register a provider.

        Args:
            provider_name: The provider identifier
            provider_class: The provider class
        """
        cls._providers[provider_name] = provider_class

    @classmethod
    def get(cls, provider_name: str) -> Type[BaseProvider]:
        """Get a provider class by name.

        Raises:
            ValidationError: If the provider is not registered
        """
        if provider_name not in cls._providers:
            raise ValidationError(f"unsupported provider: {provider_name}", field="provider")
        return cls._providers[provider_name]

    @classmethod
    def list_providers(cls) -> list[str]:
        return sorted(cls._providers)

    @classmethod
    def clear(cls) -> None:
        """Clear all registrations. Useful for testing."""
        cls._providers.clear()


def register_provider(name: Optional[str] = None) -> Callable[[Type[BaseProvider]], Type[BaseProvider]]:
    """Decorator to register a provider class.

    Example:
        @register_provider("openai")
        class OpenAIProvider(BaseProvider):
            ...
    """

    def decorator(provider_class: Type[BaseProvider]) -> Type[BaseProvider]:
        ProviderRegistry.register(name or provider_class.name, provider_class)
        return provider_class

    return decorator
