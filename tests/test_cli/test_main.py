"""
Tests for CLI main functionality.
"""

import json
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from persona_chat.cli.main import (
    EXIT_CLIENT_ERROR,
    EXIT_SERVER_ERROR,
    CLIError,
    _flatten,
    app,
    build_request,
    to_cli_error,
)
from persona_chat.core.errors import (
    ConversationNotFoundError,
    MissingFieldError,
    ProviderError,
)
from persona_chat.core.models import ModelResponse
from persona_chat.orchestration import SessionOrchestrator
from persona_chat.prompts.personas import Persona
from persona_chat.storage import get_conversation_store


# Test fixtures
@pytest.fixture
def cli_runner():
    """CLI test runner."""
    return CliRunner()


@pytest.fixture(autouse=True)
def no_logging_setup():
    """Keep the CLI callback from reconfiguring root logging during tests."""
    with patch("persona_chat.cli.main.configure_logging") as mock_configure:
        yield mock_configure


@pytest.fixture
def cli_orchestrator(mock_client, test_settings):
    """Orchestrator on the global store, so /history can read it."""
    orchestrator = SessionOrchestrator(
        client=mock_client, store=get_conversation_store(), settings=test_settings
    )
    with patch(
        "persona_chat.cli.main.get_session_orchestrator", return_value=orchestrator
    ):
        yield orchestrator


class TestBuildRequest:
    def test_minimal(self):
        assert build_request("Hi", "alice") == {"prompt": "Hi", "pseudo": "alice"}

    def test_all_options(self):
        raw = build_request(
            "Hi",
            "alice",
            conversation_id="abc-alice",
            new_conversation=True,
            randomness=0.0,
            richness=-1.0,
            personality="assistant",
        )
        assert raw == {
            "prompt": "Hi",
            "pseudo": "alice",
            "isNewConversation": True,
            "conversationId": "abc-alice",
            "randomness": 0.0,
            "richness": -1.0,
            "aiPersonality": Persona.ASSISTANT.value,
        }

    def test_free_text_personality(self):
        raw = build_request("Hi", "alice", personality="Answer in haiku")
        assert raw["aiPersonality"] == "Answer in haiku"


class TestToCliError:
    def test_client_error_keeps_message(self):
        error = to_cli_error(MissingFieldError("Pseudo is required", field="pseudo"))
        assert isinstance(error, CLIError)
        assert error.message == "Pseudo is required"
        assert error.exit_code == EXIT_CLIENT_ERROR

    def test_not_found_is_client_error(self):
        error = to_cli_error(ConversationNotFoundError("abc-alice"))
        assert error.exit_code == EXIT_CLIENT_ERROR

    def test_server_error_hides_details(self):
        error = to_cli_error(ProviderError("API error: secret", provider="openai"))
        assert error.exit_code == EXIT_SERVER_ERROR
        assert "secret" not in error.message
        assert "provider_error" in error.message


class TestGenerateCommand:
    def test_generate(self, cli_runner, cli_orchestrator, mock_client):
        result = cli_runner.invoke(app, ["generate", "Hi", "--pseudo", "alice"])

        assert result.exit_code == 0
        assert "Hello!" in result.output
        assert mock_client.requests[0].messages[-1].content == "Hi\n\nResponse:"
        assert mock_client.closed is True

    def test_generate_json(self, cli_runner, cli_orchestrator):
        result = cli_runner.invoke(app, ["generate", "Hi", "-p", "alice", "--json"])

        assert result.exit_code == 0
        payload = json.loads(result.output)
        assert payload["response"] == "Hello!"
        assert payload["conversationId"].endswith("-alice")

    def test_generate_options(self, cli_runner, cli_orchestrator, mock_client):
        result = cli_runner.invoke(
            app,
            [
                "generate",
                "Hi",
                "-p",
                "alice",
                "-r",
                "0",
                "--richness",
                "1.5",
                "--personality",
                "assistant",
            ],
        )

        assert result.exit_code == 0
        request = mock_client.requests[0]
        assert request.top_p == 0.0
        assert request.frequency_penalty == 1.5
        assert request.messages[0].content == Persona.ASSISTANT.value

    def test_generate_validation_error(self, cli_runner, cli_orchestrator, mock_client):
        result = cli_runner.invoke(app, ["generate", "Hi", "-p", "alice", "-r", "5"])

        assert result.exit_code == EXIT_CLIENT_ERROR
        assert "Randomness must be between 0 and 1" in result.output
        mock_client.complete_mock.assert_not_called()

    def test_generate_provider_error(self, cli_runner, cli_orchestrator, mock_client):
        mock_client.complete_mock.side_effect = ProviderError(
            "API error: upstream detail", provider="openai"
        )

        result = cli_runner.invoke(app, ["generate", "Hi", "-p", "alice"])

        assert result.exit_code == EXIT_SERVER_ERROR
        assert "Request failed (provider_error)" in result.output
        assert "upstream detail" not in result.output
        assert mock_client.closed is True

    def test_generate_requires_pseudo(self, cli_runner, cli_orchestrator):
        result = cli_runner.invoke(app, ["generate", "Hi"])
        assert result.exit_code != 0

    def test_generate_without_api_key(self, cli_runner):
        """Test that a missing API key is reported instead of crashing."""
        result = cli_runner.invoke(app, ["generate", "Hi", "--pseudo", "alice"])

        assert result.exit_code == EXIT_SERVER_ERROR
        assert "Error:" in result.output
        assert "OpenAI API key not configured" in result.output
        assert len(get_conversation_store()) == 0

    def test_generate_unexpected_error(self, cli_runner):
        with patch(
            "persona_chat.cli.main.get_session_orchestrator",
            side_effect=RuntimeError("kaboom"),
        ):
            result = cli_runner.invoke(app, ["generate", "Hi", "-p", "alice"])

        assert result.exit_code == 1
        assert "Unexpected error" in result.output
        assert "kaboom" in result.output


class TestChatCommand:
    def test_chat_keeps_conversation(self, cli_runner, cli_orchestrator, mock_client):
        result = cli_runner.invoke(
            app, ["chat", "-p", "alice"], input="Hi\nAgain\n/quit\n"
        )

        assert result.exit_code == 0
        assert len(mock_client.requests) == 2

        second = mock_client.requests[1]
        assert [m.content for m in second.messages][:2] == ["Hi\n\nResponse:", "Hello!"]

        store = get_conversation_store()
        assert len(store) == 1
        assert mock_client.closed is True

    def test_chat_new_command(self, cli_runner, cli_orchestrator, mock_client):
        result = cli_runner.invoke(app, ["chat", "-p", "alice"], input="Hi\n/new\nHi\n")

        assert result.exit_code == 0
        assert len(get_conversation_store()) == 2
        assert len(mock_client.requests[1].messages) == 2

    def test_chat_persona_command(self, cli_runner, cli_orchestrator, mock_client):
        result = cli_runner.invoke(
            app,
            ["chat", "-p", "alice"],
            input="Hi\n/persona Answer in haiku\nAgain\n",
        )

        assert result.exit_code == 0
        second = mock_client.requests[1]
        assert second.messages[2].content == "Answer in haiku"

    def test_chat_history(self, cli_runner, cli_orchestrator):
        result = cli_runner.invoke(app, ["chat", "-p", "alice"], input="/history\nHi\n/history\n")

        assert result.exit_code == 0
        assert "No conversation yet" in result.output
        assert "Hello!" in result.output

    def test_chat_continues_after_error(self, cli_runner, cli_orchestrator, mock_client):
        mock_client.complete_mock.side_effect = [
            ProviderError("boom", provider="openai"),
            ModelResponse(content="Hello!", model="gpt-3.5-turbo", provider="mock-provider"),
        ]

        result = cli_runner.invoke(app, ["chat", "-p", "alice"], input="Hi\nHi again\n")

        assert result.exit_code == 0
        assert "Request failed" in result.output
        assert len(mock_client.requests) == 2

    def test_chat_without_api_key(self, cli_runner):
        result = cli_runner.invoke(app, ["chat", "-p", "alice"], input="Hi\n/quit\n")

        assert result.exit_code == 0
        assert "OpenAI API key not configured" in result.output
        assert len(get_conversation_store()) == 0

    def test_chat_ends_on_eof(self, cli_runner, cli_orchestrator, mock_client):
        result = cli_runner.invoke(app, ["chat", "-p", "alice"], input="")

        assert result.exit_code == 0
        assert mock_client.requests == []
        assert mock_client.closed is True


class TestConfigCommand:
    def test_config_without_key(self, cli_runner):
        result = cli_runner.invoke(app, ["config"])

        assert result.exit_code == 0
        assert "openai_api_key" in result.output
        assert "missing" in result.output

    def test_config_with_key(self, cli_runner, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-very-secret")

        result = cli_runner.invoke(app, ["config"])

        assert result.exit_code == 0
        assert "configured" in result.output
        assert "sk-very-secret" not in result.output


class TestLogLevelOption:
    def test_log_level_passed_to_logging(self, cli_runner, no_logging_setup):
        cli_runner.invoke(app, ["--log-level", "DEBUG", "config"])
        no_logging_setup.assert_called_once_with("DEBUG")

    def test_log_level_from_settings(self, cli_runner, no_logging_setup, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "warning")
        cli_runner.invoke(app, ["config"])
        no_logging_setup.assert_called_once_with("WARNING")


def test_flatten():
    assert _flatten({"a": 1, "b": {"c": 2, "d": {"e": 3}}}) == {"a": 1, "b.c": 2, "b.d.e": 3}
