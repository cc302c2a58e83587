"""Unit tests for the CLI.

Commands run against an in-memory chat API; the client class is patched so
every command talks to httpx.MockTransport instead of the network.
"""

from unittest.mock import patch

import httpx
import pytest
from typer.testing import CliRunner

from chatsync.cli.main import app
from chatsync.client import ChatAPIClient
from tests.helpers.streams import byte_stream, sse


@pytest.fixture
def runner():
    """CLI test runner."""
    return CliRunner()


def _handler(request: httpx.Request) -> httpx.Response:
    path = request.url.path
    if path == "/chat/models":
        return httpx.Response(
            200,
            json={"models": [{"id": 2, "name": "Smart", "color": "#222222", "isDefault": True}]},
        )
    if path == "/chat/sessions" and request.method == "GET":
        return httpx.Response(200, json={"sessions": [{"id": "s-1", "title": "Greetings", "modelId": 2}]})
    if path == "/chat/sessions" and request.method == "POST":
        return httpx.Response(201, json={"id": "s-1", "title": "Hi", "modelId": 2})
    if path == "/chat/sessions/s-1" and request.method == "DELETE":
        return httpx.Response(204)
    if path == "/chat/sessions/s-1/messages" and request.method == "GET":
        return httpx.Response(
            200,
            json={
                "messages": [
                    {"id": 1, "role": "user", "content": "Hi"},
                    {"id": 2, "role": "assistant", "content": "Hello there"},
                ]
            },
        )
    if path == "/chat/sessions/s-1/messages":
        frames = [sse({"token": "Hello "}), sse({"token": "there"}), sse({"messageId": 2})]
        return httpx.Response(200, content=byte_stream(frames))
    return httpx.Response(404)


@pytest.fixture
def mock_api(test_settings):
    """Route every ChatAPIClient built by the CLI through the in-memory API."""

    def _client(*args, **kwargs):
        return ChatAPIClient(settings=test_settings, transport=httpx.MockTransport(_handler))

    with (
        patch("chatsync.cli.main.ChatAPIClient", side_effect=_client),
        patch("chatsync.cli.commands.chat.ChatAPIClient", side_effect=_client),
        patch("chatsync.cli.main.configure_logging"),
    ):
        yield


class TestMainApp:
    """Test main CLI app registration."""

    def test_app_name(self):
        assert app.info.name == "chatsync"

    def test_all_commands_registered(self, runner):
        result = runner.invoke(app, ["--help"])

        assert result.exit_code == 0
        for command in ("chat", "models", "sessions", "messages", "delete", "version"):
            assert command in result.stdout

    def test_version(self, runner):
        with patch("chatsync.cli.main.configure_logging"):
            result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert "chatsync" in result.stdout


class TestReadCommands:
    """Tests for models, sessions and messages."""

    def test_models(self, runner, mock_api):
        result = runner.invoke(app, ["models"])

        assert result.exit_code == 0
        assert "Smart" in result.stdout

    def test_sessions(self, runner, mock_api):
        result = runner.invoke(app, ["sessions"])

        assert result.exit_code == 0
        assert "Greetings" in result.stdout

    def test_messages(self, runner, mock_api):
        result = runner.invoke(app, ["messages", "s-1"])

        assert result.exit_code == 0
        assert "Hello there" in result.stdout

    def test_api_error_exits_nonzero(self, runner, mock_api):
        result = runner.invoke(app, ["messages", "missing"])

        assert result.exit_code == 1
        assert "Failed to fetch messages" in result.stdout

    def test_delete_with_yes(self, runner, mock_api):
        result = runner.invoke(app, ["delete", "s-1", "--yes"])

        assert result.exit_code == 0
        assert "Deleted session s-1" in result.stdout

    def test_delete_aborted(self, runner, mock_api):
        result = runner.invoke(app, ["delete", "s-1"], input="n\n")

        assert result.exit_code == 0
        assert "Aborted" in result.stdout


class TestChatCommand:
    """Tests for the chat command."""

    def test_chat_with_message(self, runner, mock_api):
        result = runner.invoke(app, ["chat", "Hi"], input="exit\n")

        assert result.exit_code == 0
        assert "Hello there" in result.stdout
        assert "Session: s-1" in result.stdout

    def test_continue_session_prints_history(self, runner, mock_api):
        result = runner.invoke(app, ["chat", "--continue", "s-1"], input="quit\n")

        assert result.exit_code == 0
        assert "Continuing session: s-1" in result.stdout
        assert "Hi" in result.stdout

    def test_unknown_model_rejected(self, runner, mock_api):
        result = runner.invoke(app, ["chat", "--model", "7", "Hi"])

        assert result.exit_code == 1
        assert "Unknown model id 7" in result.stdout
