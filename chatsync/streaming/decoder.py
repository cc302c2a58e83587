"""Event decoder for the chat event stream.

Turns frames produced by the FrameSplitter into typed stream events.
Only ``data:`` lines are considered; anything else in a frame (comments,
``event:`` or ``id:`` fields) is ignored. Malformed data lines are skipped
so a single bad line never aborts the stream.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from chatsync.streaming.events import (
    CompletionEvent,
    DoneMarker,
    ErrorEvent,
    StreamEvent,
    TokenEvent,
)
from chatsync.streaming.frames import FrameSplitter

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, AsyncIterator

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"


def decode(frame: str) -> list[StreamEvent]:
    """Decode one frame into stream events.

    Decoding policy per data line:
    - ``[DONE]`` yields a DoneMarker and stops decoding the frame.
    - ``{"error": ...}`` yields an ErrorEvent and stops decoding the frame.
    - ``{"token": ...}`` yields a TokenEvent.
    - ``{"messageId": ...}`` yields a CompletionEvent.
    - Unparseable JSON is skipped.

    Args:
        frame: A complete frame, normally ending with the blank-line separator.

    Returns:
        Events in line order. Usually zero or one; more only when the frame
        carries several valid data lines.
    """
    events: list[StreamEvent] = []

    for line in frame.split("\n"):
        if not line.startswith(DATA_PREFIX):
            continue
        payload = line[len(DATA_PREFIX):]

        if payload == DONE_SENTINEL:
            events.append(DoneMarker())
            return events

        try:
            parsed = json.loads(payload)
        except json.JSONDecodeError:
            logger.debug("Skipping unparseable data line: %s", payload[:200])
            continue

        if not isinstance(parsed, dict):
            logger.debug("Skipping non-object data line: %s", payload[:200])
            continue

        event = _event_from_payload(parsed)
        if event is None:
            continue
        events.append(event)
        if isinstance(event, ErrorEvent):
            return events

    return events


def _event_from_payload(parsed: dict[str, Any]) -> StreamEvent | None:
    """Map a decoded JSON object onto an event, or None if unrecognised."""
    if "error" in parsed:
        return ErrorEvent(message=str(parsed["error"]))
    if "token" in parsed:
        token = parsed["token"]
        return TokenEvent(text=token if isinstance(token, str) else str(token))
    if "messageId" in parsed:
        return CompletionEvent(message_id=parsed["messageId"])
    logger.debug("Ignoring data line with no recognised field: %s", sorted(parsed))
    return None


async def decode_stream(
    chunks: AsyncIterator[str],
) -> AsyncGenerator[StreamEvent, None]:
    """Decode an ordered stream of raw text chunks into events.

    Feeds each chunk through a FrameSplitter, decodes every completed frame,
    and flushes the remainder once the chunks are exhausted. Iteration stops
    right after the first terminal event, so a stream yields at most one of
    CompletionEvent, ErrorEvent or DoneMarker.

    Args:
        chunks: Async iterator of response text, in arrival order.

    Yields:
        Stream events in arrival order.
    """
    splitter = FrameSplitter()

    async for chunk in chunks:
        for frame in splitter.feed(chunk):
            for event in decode(frame):
                yield event
                if event.is_terminal:
                    return

    for frame in splitter.flush():
        for event in decode(frame):
            yield event
            if event.is_terminal:
                return
