"""Optimistic overlay for the message the user just submitted.

Holds the submitted text until the authoritative message list catches up
(its last entry is that user message) or the stream ends, whichever comes
first. While the authoritative list already shows the message, the overlay
reports itself hidden so it is never rendered twice.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from chatsync.models import Message
    from chatsync.streaming.controller import StreamState

logger = logging.getLogger(__name__)


def _last_is_pending(messages: Sequence[Message], pending: str) -> bool:
    if not messages:
        return False
    last = messages[-1]
    return last.role == "user" and last.content == pending


class PendingMessageOverlay:
    """Tracks at most one locally submitted, not yet confirmed message.

    Wire ``on_stream_state`` to ``StreamController.add_listener`` so the
    overlay clears when streaming stops, and call ``sync`` whenever a fresh
    message list arrives.
    """

    def __init__(self) -> None:
        self._pending: str | None = None
        self._was_streaming = False

    @property
    def pending(self) -> str | None:
        return self._pending

    def set_pending(self, text: str) -> None:
        """Record the text just submitted."""
        self._pending = text

    def clear(self) -> None:
        self._pending = None

    def sync(self, messages: Sequence[Message]) -> None:
        """Clear the pending text once the authoritative list contains it."""
        if self._pending is not None and _last_is_pending(messages, self._pending):
            logger.debug("Pending message confirmed by authoritative list")
            self._pending = None

    def on_stream_state(self, state: StreamState) -> None:
        """Clear the pending text on a streaming true -> false transition."""
        if self._was_streaming and not state.is_streaming:
            self._pending = None
        self._was_streaming = state.is_streaming

    def is_visible(self, messages: Sequence[Message]) -> bool:
        """Whether the pending bubble should be rendered next to ``messages``."""
        if self._pending is None:
            return False
        return not _last_is_pending(messages, self._pending)
