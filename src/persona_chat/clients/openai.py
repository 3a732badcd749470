"""
OpenAI chat-completions client implementation.

This module provides a concrete implementation of the BaseClient interface
for OpenAI's chat completions API and compatible servers.
"""

import logging
from typing import Any

import httpx

from ..core.errors import ProviderError
from ..core.models import ModelRequest, ModelResponse, TokenUsage
from .base import (
    AuthenticationError,
    BaseClient,
    ProviderTimeoutError,
    QuotaExceededError,
    RateLimitError,
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com/v1"


class OpenAIClient(BaseClient):
    """
    OpenAI client implementing the BaseClient interface.

    Works against any server exposing ``POST /chat/completions`` in the
    OpenAI format.
    """

    def __init__(
        self, api_key: str, base_url: str = DEFAULT_BASE_URL, **kwargs: Any
    ) -> None:
        super().__init__("openai", api_key, **kwargs)

        if not api_key:
            raise ValueError("OpenAI API key is required")

        # Validate API key format
        if not api_key.startswith("sk-"):
            logger.warning("OpenAI API key should start with 'sk-'")

        self.base_url = base_url.rstrip("/")

        # HTTP client configuration
        self._http_client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            timeout=httpx.Timeout(self.timeout),
            limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
        )

        logger.info(f"Initialized OpenAI client for {self.base_url}")

    async def complete(self, request: ModelRequest) -> ModelResponse:
        """
        Execute one chat completion via the OpenAI API.

        Args:
            request: Standardized model request

        Returns:
            Standardized model response

        Raises:
            ProviderError: API, transport or parsing errors
        """
        openai_request = self._prepare_request(request)

        try:
            response = await self._http_client.post(
                "/chat/completions", json=openai_request
            )
        except httpx.TimeoutException as e:
            logger.error(f"OpenAI completion timed out after {self.timeout}s: {e}")
            raise ProviderTimeoutError(
                f"Request timed out after {self.timeout}s",
                provider=self.provider_name,
                model=request.model,
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"OpenAI completion failed: {e}")
            raise ProviderError(
                f"Transport error: {e}",
                provider=self.provider_name,
                model=request.model,
                details={"error_type": type(e).__name__},
            ) from e

        if response.status_code != 200:
            self._handle_http_error(response, request)

        return self._parse_response(response, request)

    def _prepare_request(self, request: ModelRequest) -> dict[str, Any]:
        """Prepare OpenAI API request from standardized request."""
        return {
            "model": request.model,
            "messages": [self._message_payload(msg) for msg in request.messages],
            "top_p": request.top_p,
            "frequency_penalty": request.frequency_penalty,
            "max_tokens": request.max_tokens,
            "stop": list(request.stop),
        }

    def _handle_http_error(self, response: httpx.Response, request: ModelRequest) -> None:
        """Map HTTP errors from the OpenAI API to provider errors."""
        try:
            error_info = response.json().get("error", {}) or {}
            error_message = error_info.get("message", f"HTTP {response.status_code}")
            error_code = error_info.get("code") or error_info.get("type")
        except Exception:
            error_message = f"HTTP {response.status_code}: {response.text[:200]}"
            error_code = None

        details = {"status_code": response.status_code, "code": error_code}
        logger.error(
            f"OpenAI API error {response.status_code} ({error_code}): {error_message}"
        )

        if response.status_code == 401:
            raise AuthenticationError(
                f"Authentication failed: {error_message}",
                provider=self.provider_name,
                model=request.model,
                details=details,
            )
        elif response.status_code == 402 or error_code == "insufficient_quota":
            raise QuotaExceededError(
                f"Quota exceeded: {error_message}",
                provider=self.provider_name,
                model=request.model,
                details=details,
            )
        elif response.status_code == 429:
            retry_after = None
            if "retry-after" in response.headers:
                try:
                    retry_after = int(response.headers["retry-after"])
                except ValueError:
                    pass

            raise RateLimitError(
                f"Rate limit exceeded: {error_message}",
                provider=self.provider_name,
                retry_after=retry_after,
                model=request.model,
                details=details,
            )
        else:
            raise ProviderError(
                f"API error: {error_message}",
                provider=self.provider_name,
                model=request.model,
                details=details,
            )

    def _parse_response(self, response: httpx.Response, request: ModelRequest) -> ModelResponse:
        """Parse OpenAI response into standardized format."""
        try:
            data = response.json()

            choices = data.get("choices") or []
            content = self._first_choice_text(choices)
            if not choices:
                logger.warning(f"No choices in response for model {request.model}")

            usage = None
            usage_data = data.get("usage")
            if usage_data:
                input_tokens = usage_data.get("prompt_tokens", 0)
                output_tokens = usage_data.get("completion_tokens", 0)
                usage = TokenUsage(
                    input_tokens=input_tokens,
                    output_tokens=output_tokens,
                    total_tokens=input_tokens + output_tokens,
                )

            return ModelResponse(
                content=content,
                model=data.get("model") or request.model,
                provider=self.provider_name,
                usage=usage,
                finish_reason=choices[0].get("finish_reason") if choices else None,
                metadata={"openai_id": data.get("id")},
            )

        except Exception as e:
            logger.error(f"Failed to parse OpenAI response: {e}")
            raise ProviderError(
                f"Failed to parse response: {e}",
                provider=self.provider_name,
                model=request.model,
                details={"error_type": type(e).__name__},
            ) from e

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._http_client.aclose()

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Clean up HTTP client on exit."""
        await self.aclose()
