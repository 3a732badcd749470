"""
Client implementations for completion providers.

This package provides a unified interface to chat-completion providers
through the BaseClient abstraction.
"""

from ..core.errors import ProviderError
from .base import (
    AuthenticationError,
    BaseClient,
    ProviderTimeoutError,
    QuotaExceededError,
    RateLimitError,
)
from .openai import OpenAIClient

__all__ = [
    "BaseClient",
    "ProviderError",
    "AuthenticationError",
    "QuotaExceededError",
    "RateLimitError",
    "ProviderTimeoutError",
    "OpenAIClient",
    "create_client",
    "get_supported_providers",
]


def create_client(provider: str, **kwargs) -> BaseClient:
    """
    Create a client for the specified provider.

    Args:
        provider: Provider name (e.g., "openai")
        **kwargs: Provider-specific configuration

    Returns:
        Configured client instance

    Raises:
        ValueError: If provider is not supported

    Example:
        >>> client = create_client("openai", api_key="sk-...")
        >>> response = await client.complete(request)
    """
    provider = provider.lower().strip()

    if provider == "openai":
        if "api_key" not in kwargs:
            raise ValueError("OpenAI API key is required but not provided")
        api_key = kwargs.pop("api_key")
        return OpenAIClient(api_key=api_key, **kwargs)
    else:
        raise ValueError(f"Unsupported provider: {provider}")


def get_supported_providers() -> list[str]:
    """Get list of supported provider names."""
    return ["openai"]
