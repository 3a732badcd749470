"""
Client factory utilities for creating configured provider clients.

This module provides convenience functions for creating clients from
application configuration with proper validation and error handling.
"""

import logging
from typing import Any

from ..clients import BaseClient, create_client, get_supported_providers
from ..config.settings import AppSettings, get_settings

logger = logging.getLogger(__name__)


class ClientFactoryError(Exception):
    """Error creating client from configuration."""
    pass


def create_client_from_config(
    provider: str | None = None,
    config_overrides: dict[str, Any] | None = None,
) -> BaseClient:
    """
    Create a client using application configuration.

    Args:
        provider: Provider name (defaults to the configured provider)
        config_overrides: Optional configuration overrides

    Returns:
        Configured client instance

    Raises:
        ClientFactoryError: If client creation fails

    Example:
        >>> client = create_client_from_config()
        >>> response = await client.complete(request)
    """
    settings = get_settings()
    provider = provider or settings.provider.name

    try:
        # Validate provider is supported
        if provider not in get_supported_providers():
            raise ClientFactoryError(f"Unsupported provider: {provider}")

        # Get provider-specific configuration
        client_config = _get_provider_config(provider, settings)

        # Apply any overrides
        if config_overrides:
            client_config.update(config_overrides)

        client = create_client(provider, **client_config)

        logger.info(f"Created {provider} client successfully")
        return client

    except ClientFactoryError:
        logger.error(f"Failed to create {provider} client: configuration invalid")
        raise
    except Exception as e:
        logger.error(f"Failed to create {provider} client: {e}")
        raise ClientFactoryError(f"Failed to create {provider} client: {e}") from e


def _get_provider_config(provider: str, settings: AppSettings) -> dict[str, Any]:
    """Get configuration for a specific provider."""
    if provider == "openai":
        if not settings.has_api_key():
            raise ClientFactoryError(
                "OpenAI API key not configured. "
                "Set OPENAI_API_KEY environment variable."
            )

        return {
            "api_key": settings.openai_api_key,
            "base_url": settings.provider.base_url,
            "timeout": settings.provider.timeout,
        }

    else:
        raise ClientFactoryError(f"Unknown provider configuration: {provider}")
