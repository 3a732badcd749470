"""
Shared test fixtures and configuration for Persona Chat tests.

This file provides global state management, environment isolation and common
test doubles (a scripted provider client and a mock HTTP client) so that no
test ever reaches a real provider.
"""

import logging
import os
import warnings
from unittest.mock import AsyncMock, MagicMock

import pytest

from persona_chat.clients.base import BaseClient
from persona_chat.config.settings import AppSettings, config_manager
from persona_chat.core.models import ModelRequest, ModelResponse
from persona_chat.orchestration import SessionOrchestrator, reset_session_orchestrator
from persona_chat.storage import ConversationStore, reset_conversation_store

# Suppress specific warnings that can slow down tests
warnings.filterwarnings("ignore", category=DeprecationWarning)
warnings.filterwarnings("ignore", category=UserWarning, module="pydantic")

# Configure logging for tests
logging.getLogger("httpx").setLevel(logging.WARNING)

# Environment variables that could leak host configuration into settings
SENSITIVE_ENV_PREFIXES = (
    "OPENAI_",
    "LOG_LEVEL",
    "ENVIRONMENT",
    "APP_",
    "PROVIDER__",
    "CONVERSATION__",
)


def _clear_sensitive_env() -> dict[str, str]:
    removed = {}
    for key in list(os.environ.keys()):
        if key.upper().startswith(SENSITIVE_ENV_PREFIXES):
            removed[key] = os.environ.pop(key)
    return removed


@pytest.fixture(autouse=True, scope="function")
def isolated_environment(tmp_path):
    """
    Isolate environment variables for each test to prevent test pollution.

    This ensures that configuration tests don't inherit environment variables
    from the host system, .env files, or other tests.
    """
    original_env = _clear_sensitive_env()

    # Change working directory to temp path to avoid loading .env files
    original_cwd = os.getcwd()
    os.chdir(tmp_path)

    yield

    # Restore original environment and working directory
    os.chdir(original_cwd)
    _clear_sensitive_env()
    os.environ.update(original_env)


@pytest.fixture(autouse=True, scope="function")
def reset_global_state():
    """
    Reset all global state between tests to ensure isolation.

    Resets the configuration manager, the global conversation store and
    the global session orchestrator before and after each test.
    """
    _reset_all_global_state()

    yield

    _reset_all_global_state()


def _reset_all_global_state():
    config_manager.reset()
    reset_conversation_store()
    reset_session_orchestrator()


class MockClient(BaseClient):
    """Scripted provider client recording every request it receives."""

    def __init__(self, content: str = "Hello!", **kwargs):
        super().__init__("mock-provider", **kwargs)
        self.content = content
        self.requests: list[ModelRequest] = []
        self.closed = False
        self.complete_mock = AsyncMock(side_effect=self._respond)

    async def _respond(self, request: ModelRequest) -> ModelResponse:
        return make_model_response(self.content, model=request.model)

    async def complete(self, request: ModelRequest) -> ModelResponse:
        self.requests.append(request)
        return await self.complete_mock(request)

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.closed = True


def make_model_response(content: str, model: str = "gpt-3.5-turbo") -> ModelResponse:
    return ModelResponse(content=content, model=model, provider="mock-provider")


@pytest.fixture
def mock_client():
    """Provide a scripted provider client."""
    return MockClient()


@pytest.fixture
def test_settings():
    """Settings with safe test defaults."""
    return AppSettings(openai_api_key="sk-test-key-for-testing")


@pytest.fixture
def store():
    """Provide a fresh, unbounded conversation store."""
    return ConversationStore()


@pytest.fixture
def orchestrator(mock_client, store, test_settings):
    """Orchestrator wired to the scripted client and a fresh store."""
    return SessionOrchestrator(client=mock_client, store=store, settings=test_settings)


@pytest.fixture
def mock_http_client():
    """
    Provide a mock HTTP client for testing.

    This prevents tests from making real network calls and
    ensures consistent, fast test execution.
    """
    mock_client = AsyncMock()

    # Default successful response
    mock_response = MagicMock()
    mock_response.status_code = 200
    mock_response.json.return_value = {
        "id": "chatcmpl-test",
        "model": "gpt-3.5-turbo",
        "choices": [
            {"message": {"role": "assistant", "content": "Test response"}, "finish_reason": "stop"}
        ],
        "usage": {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15},
    }
    mock_response.headers = {}

    mock_client.post.return_value = mock_response
    mock_client.aclose.return_value = None

    return mock_client
