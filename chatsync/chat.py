"""Chat coordinator.

Wires the streaming core to its collaborators the way a chat screen does:
one API client, one query cache, one stream controller, one selection
state and one optimistic overlay. ``send`` is the single entry point for a
new message; it is a no-op for blank input or while a send is in flight.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from chatsync.cache import MODELS_QUERY_KEY, SESSIONS_QUERY_KEY, QueryCache, messages_query_key
from chatsync.exceptions import ChatSyncError, StreamFailedError
from chatsync.overlay import PendingMessageOverlay
from chatsync.selection import SelectionState
from chatsync.settings import get_settings
from chatsync.streaming.controller import StreamController

if TYPE_CHECKING:
    from chatsync.cache import QueryKey
    from chatsync.client.transport import ChatAPIClient
    from chatsync.models import ChatModel, Message, Session
    from chatsync.settings import Settings

logger = logging.getLogger(__name__)


class ChatCoordinator:
    """Session-state synchronizer for one chat view.

    Usage::

        async with ChatAPIClient() as client:
            chat = ChatCoordinator(client)
            await chat.load()
            await chat.send("Hello")
            if chat.stream_error:
                ...
            messages = await chat.messages()

    Args:
        client: Chat API client (transport and session issuer).
        cache: Shared query cache (a private one is created if omitted).
        settings: Settings for the failure message and title length.
    """

    def __init__(
        self,
        client: ChatAPIClient,
        cache: QueryCache | None = None,
        *,
        settings: Settings | None = None,
    ) -> None:
        settings = settings or get_settings()
        self.client = client
        self.cache = cache if cache is not None else QueryCache()
        self.controller = StreamController(
            client,
            self.cache,
            failure_message=settings.send_failure_message,
        )
        self.selection = SelectionState(client, title_max_length=settings.title_max_length)
        self.overlay = PendingMessageOverlay()
        self.stream_error: str | None = None
        self._active_send: object | None = None

        self.controller.add_listener(self.overlay.on_stream_state)
        self.cache.subscribe(self._on_invalidated)

    # ------------------------------------------------------------------
    # Reads (through the cache)
    # ------------------------------------------------------------------

    async def load(self) -> list[ChatModel]:
        """Fetch the models and adopt the default one."""
        models = await self.models()
        self.selection.set_models(models)
        return models

    async def models(self) -> list[ChatModel]:
        return await self.cache.fetch(MODELS_QUERY_KEY, self.client.list_models)

    async def sessions(self) -> list[Session]:
        return await self.cache.fetch(SESSIONS_QUERY_KEY, self.client.list_sessions)

    async def messages(self, session_id: str | None = None) -> list[Message]:
        """Messages of ``session_id`` (default: the current session).

        Reading the current session's list also reconciles the overlay.
        """
        sid = session_id or self.selection.current_session_id
        if sid is None:
            return []

        messages: list[Message] = await self.cache.fetch(
            messages_query_key(sid),
            lambda: self.client.list_messages(sid),
        )
        if sid == self.selection.current_session_id:
            self.overlay.sync(messages)
        return messages

    async def _on_invalidated(self, key: QueryKey) -> None:
        """Refetch the current session's messages as soon as they go stale."""
        current = self.selection.current_session_id
        if current is not None and key == messages_query_key(current):
            await self.messages(current)

    # ------------------------------------------------------------------
    # Transient state
    # ------------------------------------------------------------------

    @property
    def is_streaming(self) -> bool:
        return self.controller.is_streaming

    @property
    def streaming_text(self) -> str:
        return self.controller.accumulated_text

    @property
    def pending_message(self) -> str | None:
        return self.overlay.pending

    def show_pending_message(self) -> bool:
        """Whether the optimistic bubble should be shown right now."""
        current = self.selection.current_session_id
        cached = self.cache.get(messages_query_key(current)) if current else None
        return self.overlay.is_visible(cached or [])

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def send(self, prompt: str) -> bool:
        """Submit a message and stream the reply.

        Blank input, a send already in flight, or no known model make this a
        no-op. Failures are not raised; they are exposed on ``stream_error``.

        Returns:
            True if the reply streamed to completion.
        """
        if not prompt.strip() or self._active_send is not None or self.controller.is_streaming:
            return False
        if self.selection.effective_model is None:
            logger.warning("Ignoring send: no model available")
            return False

        token = self._active_send = object()
        self.stream_error = None
        self.overlay.set_pending(prompt)
        try:
            try:
                session_id = await self.selection.resolve_session(prompt)
            except ChatSyncError as e:
                logger.warning("Could not open a session: %s", e)
                self.overlay.clear()
                self.stream_error = e.message
                return False

            try:
                return await self.controller.stream_message(session_id, prompt)
            except StreamFailedError as e:
                # A cancelled send must not overwrite state of the next one
                if self._active_send is token:
                    self.stream_error = e.message
                return False
        finally:
            if self._active_send is token:
                self._active_send = None

    def cancel(self) -> bool:
        """Abort the reply currently streaming, if any.

        The send slot is released at once so a new message can be sent
        without waiting for the cancelled call to unwind.
        """
        if not self.controller.cancel():
            return False
        self._active_send = None
        self.stream_error = "Stream cancelled"
        return True

    async def select_session(self, session_id: str) -> None:
        """Switch to an existing session and its model."""
        sessions = await self.sessions()
        self.selection.select_session(session_id, sessions)
        self.stream_error = None

    def new_chat(self) -> None:
        """Start over in a "new chat" context with the default model."""
        self.selection.new_chat()
        self.stream_error = None

    async def delete_session(self, session_id: str) -> None:
        """Delete a session and drop it from the cached lists."""
        await self.client.delete_session(session_id)
        self.selection.on_session_deleted(session_id)
        await self.cache.invalidate(messages_query_key(session_id))
        await self.cache.invalidate(SESSIONS_QUERY_KEY)
