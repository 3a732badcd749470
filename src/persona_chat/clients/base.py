"""
Abstract base client interface for completion providers.

This module defines the standard interface that all provider clients must
implement, along with the provider error hierarchy. Clients are stateless
with respect to conversations: they turn one ModelRequest into one
ModelResponse and never retry.
"""

import logging
import re
from abc import ABC, abstractmethod
from typing import Any

from ..core.errors import ProviderError
from ..core.models import NO_RESPONSE_FALLBACK, Message, ModelRequest, ModelResponse

logger = logging.getLogger(__name__)

# Chat providers only accept [A-Za-z0-9_-]{1,64} in the message "name" field
_SPEAKER_NAME_INVALID = re.compile(r"[^A-Za-z0-9_-]+")
_SPEAKER_NAME_MAX_LENGTH = 64


class AuthenticationError(ProviderError):
    """Authentication failed with provider."""

    kind = "provider_auth"


class QuotaExceededError(ProviderError):
    """Provider account has no remaining quota or credits."""

    kind = "provider_quota"


class RateLimitError(ProviderError):
    """Rate limit exceeded."""

    kind = "provider_rate_limit"

    def __init__(
        self, message: str, provider: str, retry_after: int | None = None, **kwargs: Any
    ) -> None:
        super().__init__(message, provider, **kwargs)
        self.retry_after = retry_after


class ProviderTimeoutError(ProviderError):
    """Provider did not answer within the configured timeout."""

    kind = "provider_timeout"
    http_status = 504


class BaseClient(ABC):
    """
    Abstract base client for all completion providers.

    This defines the standard interface that all provider-specific clients
    must implement to ensure consistent behavior across the application.
    """

    def __init__(
        self, provider_name: str, api_key: str | None = None, **kwargs: Any
    ) -> None:
        self.provider_name = provider_name
        self.api_key = api_key

        # Configuration from kwargs
        self.timeout = kwargs.get("timeout", 30)

        logger.info(f"Initialized {self.provider_name} client")

    @abstractmethod
    async def complete(self, request: ModelRequest) -> ModelResponse:
        """
        Execute one completion call.

        Args:
            request: Standardized model request

        Returns:
            Standardized model response; content is the first choice's text
            or NO_RESPONSE_FALLBACK when the provider returned no choice

        Raises:
            ProviderError: Transport, authentication or quota failures
        """
        pass

    def _message_payload(self, message: Message) -> dict[str, Any]:
        """Convert a message to the provider's wire format."""
        payload: dict[str, Any] = {
            "role": message.role.value,
            "content": message.content,
        }
        name = self._speaker_name(message.speaker_label)
        if name:
            payload["name"] = name
        return payload

    @staticmethod
    def _speaker_name(label: str | None) -> str | None:
        """Reduce a speaker label to the provider's allowed name alphabet."""
        if not label:
            return None
        name = _SPEAKER_NAME_INVALID.sub("_", label.strip()).strip("_")
        return name[:_SPEAKER_NAME_MAX_LENGTH] or None

    @staticmethod
    def _first_choice_text(choices: list[dict[str, Any]] | None) -> str:
        """Text of the first choice, or the fallback when there is none."""
        if not choices:
            return NO_RESPONSE_FALLBACK
        message = choices[0].get("message") or {}
        return message.get("content") or NO_RESPONSE_FALLBACK

    async def __aenter__(self) -> "BaseClient":
        """Async context manager entry."""
        return self

    @abstractmethod
    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(provider='{self.provider_name}')"
