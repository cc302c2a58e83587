"""Unit tests for ChatCoordinator.

Runs the whole send path (session creation, streaming, cache invalidation,
overlay reconciliation) against an in-memory chat API served through
httpx.MockTransport, plus a few targeted cases with a mocked client.
"""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from chatsync.cache import SESSIONS_QUERY_KEY, messages_query_key
from chatsync.chat import ChatCoordinator
from chatsync.models import ChatModel, Message, Session
from chatsync.streaming.controller import StreamPhase
from tests.helpers.streams import QueueTransport, byte_stream, sse


class FakeChatAPI:
    """Minimal in-memory chat API."""

    def __init__(self, reply=("Hel", "lo"), error=None):
        self.reply = reply
        self.error = error
        self.fail_session_create = False
        self.sessions: list[dict] = []
        self.messages: dict[str, list[dict]] = {}
        self.stream_posts: list[tuple[str, str]] = []
        self.message_reads = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/chat/models":
            return httpx.Response(
                200,
                json={
                    "models": [
                        {"id": 1, "name": "Fast", "color": "#111111", "isDefault": False},
                        {"id": 2, "name": "Smart", "color": "#222222", "isDefault": True},
                    ]
                },
            )
        if path == "/chat/sessions" and request.method == "GET":
            return httpx.Response(200, json={"sessions": self.sessions})
        if path == "/chat/sessions" and request.method == "POST":
            if self.fail_session_create:
                return httpx.Response(500)
            body = json.loads(request.content)
            session = {"id": f"s-{len(self.sessions) + 1}", "title": body["title"], "modelId": body["modelId"]}
            self.sessions.insert(0, session)
            self.messages[session["id"]] = []
            return httpx.Response(201, json=session)

        session_id = path.split("/")[3]
        if request.method == "DELETE":
            self.sessions = [s for s in self.sessions if s["id"] != session_id]
            self.messages.pop(session_id, None)
            return httpx.Response(204)
        if request.method == "GET":
            self.message_reads += 1
            return httpx.Response(200, json={"messages": self.messages.get(session_id, [])})
        return self._stream(session_id, json.loads(request.content)["content"])

    def _stream(self, session_id: str, content: str) -> httpx.Response:
        self.stream_posts.append((session_id, content))
        history = self.messages[session_id]
        history.append({"id": len(history) + 1, "role": "user", "content": content})
        if self.error:
            return httpx.Response(200, content=byte_stream([sse({"error": self.error})]))

        history.append({"id": len(history) + 1, "role": "assistant", "content": "".join(self.reply)})
        frames = [sse({"token": token}) for token in self.reply]
        frames.append(sse({"messageId": len(history)}))
        return httpx.Response(200, content=byte_stream(frames))


@pytest.fixture
def api():
    return FakeChatAPI()


@pytest.fixture
async def chat(api, make_client, test_settings):
    async with make_client(api) as client:
        coordinator = ChatCoordinator(client, settings=test_settings)
        await coordinator.load()
        yield coordinator


class TestSend:
    """Tests for the full send path."""

    @pytest.mark.asyncio
    async def test_first_send_creates_session_and_streams(self, chat, api):
        assert await chat.send("What is the weather like in Lisbon today?") is True

        assert api.sessions[0]["title"] == "What is the weather ..."
        assert api.sessions[0]["modelId"] == 2
        assert chat.selection.current_session_id == "s-1"
        assert api.stream_posts == [("s-1", "What is the weather like in Lisbon today?")]
        assert chat.stream_error is None

    @pytest.mark.asyncio
    async def test_completion_refetches_messages_and_clears_state(self, chat, api):
        await chat.send("Hi")

        cached = chat.cache.get(messages_query_key("s-1"))
        assert [(m.role, m.content) for m in cached] == [("user", "Hi"), ("assistant", "Hello")]
        assert chat.pending_message is None
        assert chat.is_streaming is False
        assert chat.streaming_text == ""

    @pytest.mark.asyncio
    async def test_second_send_reuses_session(self, chat, api):
        await chat.send("One")
        await chat.send("Two")

        assert len(api.sessions) == 1
        assert [post[0] for post in api.stream_posts] == ["s-1", "s-1"]
        messages = await chat.messages()
        assert [m.content for m in messages] == ["One", "Hello", "Two", "Hello"]

    @pytest.mark.asyncio
    async def test_error_event_surfaces_verbatim(self, chat, api):
        api.error = "quota exceeded"

        assert await chat.send("Hi") is False

        assert chat.stream_error == "quota exceeded"
        assert chat.pending_message is None
        assert api.message_reads == 0

    @pytest.mark.asyncio
    async def test_session_creation_failure(self, chat, api):
        api.fail_session_create = True

        assert await chat.send("Hi") is False

        assert chat.stream_error == "Failed to create session"
        assert chat.pending_message is None
        assert chat.selection.current_session_id is None
        assert api.stream_posts == []

    @pytest.mark.asyncio
    async def test_transport_failure_is_generic(self, api, make_client, test_settings):
        def handler(request):
            if request.method == "POST" and request.url.path.endswith("/messages"):
                raise httpx.ConnectError("refused", request=request)
            return api(request)

        async with make_client(handler) as client:
            chat = ChatCoordinator(client, settings=test_settings)
            await chat.load()

            assert await chat.send("Hi") is False

        assert chat.stream_error == "Failed to send message"
        assert chat.pending_message is None

    @pytest.mark.asyncio
    async def test_blank_prompt_is_noop(self, chat, api):
        assert await chat.send("   ") is False
        assert api.sessions == []
        assert chat.pending_message is None

    @pytest.mark.asyncio
    async def test_no_model_is_noop(self, make_client, test_settings):
        api = MagicMock(side_effect=lambda request: httpx.Response(200, json={"models": []}))
        async with make_client(api) as client:
            chat = ChatCoordinator(client, settings=test_settings)
            await chat.load()

            assert await chat.send("Hi") is False

        assert api.call_count == 1

    @pytest.mark.asyncio
    async def test_new_error_cleared_on_next_send(self, chat, api):
        api.error = "quota exceeded"
        await chat.send("Hi")

        api.error = None
        assert await chat.send("Again") is True
        assert chat.stream_error is None

    @pytest.mark.asyncio
    async def test_long_message_is_sent_whole(self, chat, api):
        prompt = "a" * 60_000

        assert await chat.send(prompt) is True

        assert api.stream_posts == [("s-1", prompt)]
        assert chat.stream_error is None


class TestSessionNavigation:
    """Tests for switching, resetting and deleting sessions."""

    @pytest.mark.asyncio
    async def test_select_session_switches_model(self, chat, api):
        api.sessions = [{"id": "s-old", "title": "Old", "modelId": 1}]

        await chat.select_session("s-old")

        assert chat.selection.current_session_id == "s-old"
        assert chat.selection.effective_model.name == "Fast"

    @pytest.mark.asyncio
    async def test_new_chat_creates_another_session(self, chat, api):
        await chat.send("One")
        chat.new_chat()
        await chat.send("Two")

        assert [s["id"] for s in api.sessions] == ["s-2", "s-1"]
        assert chat.selection.current_session_id == "s-2"

    @pytest.mark.asyncio
    async def test_delete_current_session(self, chat, api):
        await chat.send("One")
        await chat.sessions()

        await chat.delete_session("s-1")

        assert chat.selection.current_session_id is None
        assert SESSIONS_QUERY_KEY not in chat.cache
        assert messages_query_key("s-1") not in chat.cache
        assert await chat.sessions() == []

    @pytest.mark.asyncio
    async def test_messages_without_session(self, chat):
        assert await chat.messages() == []


class TestOptimisticOverlay:
    """Tests for the pending bubble while a reply streams."""

    MODELS = [ChatModel(id=1, name="Fast", is_default=True)]

    def _coordinator(self, transport, test_settings, history):
        client = MagicMock()
        client.list_models = AsyncMock(return_value=self.MODELS)
        client.create_session = AsyncMock(return_value=Session(id="s-1", title="Hello", model_id=1))
        client.list_messages = AsyncMock(side_effect=lambda sid: list(history))
        client.stream_message = transport.stream_message
        return ChatCoordinator(client, settings=test_settings)

    @pytest.mark.asyncio
    async def test_pending_shown_then_hidden_when_list_catches_up(self, test_settings):
        transport = QueueTransport()
        history: list[Message] = []
        chat = self._coordinator(transport, test_settings, history)
        await chat.load()

        task = asyncio.create_task(chat.send("Hello"))
        await transport.opened.wait()
        await transport.push(sse({"token": "Hi"}))

        assert chat.is_streaming is True
        assert chat.pending_message == "Hello"
        assert chat.show_pending_message() is True

        # A background refetch lands while the reply is still streaming
        history.append(Message(id=1, role="user", content="Hello"))
        chat.cache.set(messages_query_key("s-1"), list(history))
        assert chat.show_pending_message() is False

        await transport.push(sse({"messageId": 2}))
        assert await task is True
        assert chat.pending_message is None

    @pytest.mark.asyncio
    async def test_send_while_streaming_is_noop(self, test_settings):
        transport = QueueTransport()
        chat = self._coordinator(transport, test_settings, [])
        await chat.load()

        task = asyncio.create_task(chat.send("First"))
        await transport.opened.wait()
        await transport.push(sse({"token": "Hel"}))

        assert await chat.send("Second") is False
        assert transport.calls == [("s-1", "First")]
        assert chat.pending_message == "First"
        assert chat.streaming_text == "Hel"

        await transport.push(None)
        assert await task is True

    @pytest.mark.asyncio
    async def test_cancel(self, test_settings):
        transport = QueueTransport()
        chat = self._coordinator(transport, test_settings, [])
        await chat.load()

        task = asyncio.create_task(chat.send("Hello"))
        await transport.opened.wait()

        assert chat.cancel() is True
        assert chat.controller.state.phase is StreamPhase.IDLE
        assert chat.pending_message is None

        await transport.push(sse({"token": "late"}))
        assert await task is False
        assert chat.stream_error == "Stream cancelled"

    @pytest.mark.asyncio
    async def test_send_after_cancel_with_server_silent(self, test_settings):
        transport = QueueTransport()
        chat = self._coordinator(transport, test_settings, [])
        await chat.load()

        task = asyncio.create_task(chat.send("Hello"))
        await transport.opened.wait()
        assert chat.cancel() is True

        await transport.queue.put(sse({"token": "Hi"}))
        await transport.queue.put(sse({"messageId": 2}))
        assert await chat.send("Again") is True

        assert await asyncio.wait_for(task, timeout=1) is False
        assert transport.calls == [("s-1", "Hello"), ("s-1", "Again")]
        assert transport.closed == 2
        assert chat.stream_error is None
