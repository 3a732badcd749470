"""
Tests for the OpenAI chat-completions client.
"""

from unittest.mock import MagicMock

import httpx
import pytest

from persona_chat.clients import create_client, get_supported_providers
from persona_chat.clients.base import (
    AuthenticationError,
    ProviderTimeoutError,
    QuotaExceededError,
    RateLimitError,
)
from persona_chat.clients.openai import OpenAIClient
from persona_chat.core.errors import ProviderError
from persona_chat.core.models import NO_RESPONSE_FALLBACK, Message, ModelRequest, Role


@pytest.fixture
def client(mock_http_client):
    """OpenAI client whose HTTP transport is mocked."""
    client = OpenAIClient(api_key="sk-test-key")
    client._http_client = mock_http_client
    return client


@pytest.fixture
def request_with_history():
    return ModelRequest(
        model="gpt-3.5-turbo",
        messages=[
            Message(role=Role.USER, content="Hi\n\nResponse:", speaker_label="alice"),
            Message(role=Role.ASSISTANT, content="Hello"),
            Message(role=Role.SYSTEM, content="Be a composer"),
            Message(role=Role.USER, content="Again\n\nResponse:"),
        ],
        top_p=0.6,
        frequency_penalty=0.7,
    )


def _error_response(status_code, message="boom", code=None, headers=None):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = {"error": {"message": message, "code": code}}
    response.headers = headers or {}
    return response


class TestOpenAIClientInit:
    @pytest.mark.asyncio
    async def test_initialization(self):
        client = OpenAIClient(api_key="sk-test-key", base_url="http://localhost:1234/v1/")
        try:
            assert client.provider_name == "openai"
            assert client.base_url == "http://localhost:1234/v1"
            assert client._http_client.headers["Authorization"] == "Bearer sk-test-key"
        finally:
            await client.aclose()

    def test_requires_api_key(self):
        with pytest.raises(ValueError, match="OpenAI API key is required"):
            OpenAIClient(api_key="")

    @pytest.mark.asyncio
    async def test_warns_on_unexpected_key_format(self, caplog):
        client = OpenAIClient(api_key="not-a-key")
        try:
            assert "should start with 'sk-'" in caplog.text
        finally:
            await client.aclose()


class TestComplete:
    @pytest.mark.asyncio
    async def test_request_payload(self, client, mock_http_client, request_with_history):
        await client.complete(request_with_history)

        mock_http_client.post.assert_called_once()
        path = mock_http_client.post.call_args.args[0]
        payload = mock_http_client.post.call_args.kwargs["json"]

        assert path == "/chat/completions"
        assert payload["model"] == "gpt-3.5-turbo"
        assert payload["top_p"] == 0.6
        assert payload["frequency_penalty"] == 0.7
        assert payload["max_tokens"] == 20
        assert payload["stop"] == ["\n"]
        assert payload["messages"] == [
            {"role": "user", "content": "Hi\n\nResponse:", "name": "alice"},
            {"role": "assistant", "content": "Hello"},
            {"role": "system", "content": "Be a composer"},
            {"role": "user", "content": "Again\n\nResponse:"},
        ]

    @pytest.mark.asyncio
    async def test_successful_response(self, client, request_with_history):
        response = await client.complete(request_with_history)

        assert response.content == "Test response"
        assert response.provider == "openai"
        assert response.model == "gpt-3.5-turbo"
        assert response.finish_reason == "stop"
        assert response.usage.total_tokens == 15
        assert response.metadata["openai_id"] == "chatcmpl-test"

    @pytest.mark.asyncio
    async def test_no_choices_fallback(self, client, mock_http_client, request_with_history):
        mock_http_client.post.return_value.json.return_value = {"choices": []}

        response = await client.complete(request_with_history)

        assert response.content == NO_RESPONSE_FALLBACK
        assert response.usage is None
        assert response.finish_reason is None

    @pytest.mark.asyncio
    async def test_only_first_choice_used(self, client, mock_http_client, request_with_history):
        mock_http_client.post.return_value.json.return_value = {
            "choices": [
                {"message": {"content": "first"}, "finish_reason": "stop"},
                {"message": {"content": "second"}, "finish_reason": "stop"},
            ]
        }

        response = await client.complete(request_with_history)

        assert response.content == "first"

    @pytest.mark.asyncio
    async def test_malformed_body(self, client, mock_http_client, request_with_history):
        mock_http_client.post.return_value.json.side_effect = ValueError("not json")

        with pytest.raises(ProviderError, match="Failed to parse response"):
            await client.complete(request_with_history)


class TestErrorMapping:
    @pytest.mark.asyncio
    async def test_authentication_error(self, client, mock_http_client, request_with_history):
        mock_http_client.post.return_value = _error_response(401, "Invalid API key")

        with pytest.raises(AuthenticationError, match="Invalid API key") as exc_info:
            await client.complete(request_with_history)

        assert exc_info.value.details["status_code"] == 401

    @pytest.mark.asyncio
    async def test_quota_error_by_code(self, client, mock_http_client, request_with_history):
        mock_http_client.post.return_value = _error_response(
            429, "You exceeded your quota", code="insufficient_quota"
        )

        with pytest.raises(QuotaExceededError):
            await client.complete(request_with_history)

    @pytest.mark.asyncio
    async def test_quota_error_by_status(self, client, mock_http_client, request_with_history):
        mock_http_client.post.return_value = _error_response(402, "Payment required")

        with pytest.raises(QuotaExceededError):
            await client.complete(request_with_history)

    @pytest.mark.asyncio
    async def test_rate_limit(self, client, mock_http_client, request_with_history):
        mock_http_client.post.return_value = _error_response(
            429, "Too many requests", headers={"retry-after": "12"}
        )

        with pytest.raises(RateLimitError) as exc_info:
            await client.complete(request_with_history)

        assert exc_info.value.retry_after == 12

    @pytest.mark.asyncio
    async def test_server_error(self, client, mock_http_client, request_with_history):
        mock_http_client.post.return_value = _error_response(500, "Server exploded")

        with pytest.raises(ProviderError, match="API error: Server exploded") as exc_info:
            await client.complete(request_with_history)

        assert type(exc_info.value) is ProviderError

    @pytest.mark.asyncio
    async def test_non_json_error_body(self, client, mock_http_client, request_with_history):
        response = MagicMock()
        response.status_code = 503
        response.json.side_effect = ValueError("not json")
        response.text = "Service Unavailable"
        response.headers = {}
        mock_http_client.post.return_value = response

        with pytest.raises(ProviderError, match="HTTP 503: Service Unavailable"):
            await client.complete(request_with_history)

    @pytest.mark.asyncio
    async def test_timeout(self, client, mock_http_client, request_with_history):
        mock_http_client.post.side_effect = httpx.ReadTimeout("timed out")

        with pytest.raises(ProviderTimeoutError):
            await client.complete(request_with_history)

    @pytest.mark.asyncio
    async def test_transport_error(self, client, mock_http_client, request_with_history):
        mock_http_client.post.side_effect = httpx.ConnectError("connection refused")

        with pytest.raises(ProviderError, match="Transport error"):
            await client.complete(request_with_history)


class TestClientLifecycle:
    @pytest.mark.asyncio
    async def test_aexit_closes_http_client(self, client, mock_http_client):
        async with client:
            pass
        mock_http_client.aclose.assert_awaited_once()


class TestCreateClient:
    @pytest.mark.asyncio
    async def test_create_openai(self):
        client = create_client("OpenAI", api_key="sk-test-key", timeout=10)
        try:
            assert isinstance(client, OpenAIClient)
            assert client.timeout == 10
        finally:
            await client.aclose()

    def test_requires_api_key(self):
        with pytest.raises(ValueError, match="API key is required"):
            create_client("openai")

    def test_unsupported_provider(self):
        with pytest.raises(ValueError, match="Unsupported provider"):
            create_client("anthropic")

    def test_supported_providers(self):
        assert get_supported_providers() == ["openai"]

