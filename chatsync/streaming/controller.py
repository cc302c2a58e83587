"""Stream session controller.

Owns the lifecycle of one outbound message send:

    IDLE -> OPENING -> STREAMING -> (COMPLETED | FAILED) -> IDLE

The controller opens the transport call, feeds raw chunks through the
frame splitter and decoder, grows the accumulated text with each token,
invalidates the message and session caches once the server has recorded
the exchange, and always returns to IDLE with an empty buffer.

Only one stream may be active per controller. A send issued while another
is active is ignored. Every chunk and event is tagged with the generation
of the stream that opened it and is dropped if a cancel (or a newer
stream) has bumped the generation since.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import aclosing
from dataclasses import dataclass, replace
from enum import Enum
from typing import TYPE_CHECKING, Protocol

from chatsync.cache import SESSIONS_QUERY_KEY, messages_query_key
from chatsync.exceptions import StreamCancelledError, StreamFailedError, TransportError
from chatsync.settings import get_settings
from chatsync.streaming.decoder import decode_stream
from chatsync.streaming.events import CompletionEvent, DoneMarker, ErrorEvent, TokenEvent

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, AsyncIterator, Callable
    from contextlib import AbstractAsyncContextManager

    from chatsync.cache import QueryCache

logger = logging.getLogger(__name__)


class StreamPhase(str, Enum):
    """Lifecycle phase of the controller."""

    IDLE = "idle"
    OPENING = "opening"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"


_ACTIVE_PHASES = frozenset({StreamPhase.OPENING, StreamPhase.STREAMING})


@dataclass(frozen=True)
class StreamState:
    """Snapshot of the transient streaming state.

    Attributes:
        phase: Current lifecycle phase.
        accumulated_text: Concatenated tokens of the active stream.
        generation: Counter identifying the stream this state belongs to.
        error: User-visible failure message (FAILED snapshots only).
    """

    phase: StreamPhase = StreamPhase.IDLE
    accumulated_text: str = ""
    generation: int = 0
    error: str | None = None

    @property
    def is_streaming(self) -> bool:
        return self.phase in _ACTIVE_PHASES


class MessageTransport(Protocol):
    """The part of the API client the controller depends on."""

    def stream_message(
        self,
        session_id: str,
        content: str,
    ) -> AbstractAsyncContextManager[AsyncIterator[str]]: ...


class StreamController:
    """Drives one message stream at a time.

    Usage::

        controller = StreamController(client, cache)
        controller.add_listener(render)
        try:
            await controller.stream_message(session_id, "Hello")
        except StreamFailedError as e:
            show_error(e.message)

    Args:
        transport: Object providing ``stream_message(session_id, content)``.
        cache: Query cache invalidated when a stream completes.
        failure_message: Generic user-visible text for transport failures
            (defaults to settings.send_failure_message).
    """

    def __init__(
        self,
        transport: MessageTransport,
        cache: QueryCache | None = None,
        *,
        failure_message: str | None = None,
    ) -> None:
        self._transport = transport
        self._cache = cache
        self._failure_message = failure_message or get_settings().send_failure_message
        self._state = StreamState()
        self._generation = 0
        self._listeners: list[Callable[[StreamState], None]] = []
        self._task: asyncio.Task | None = None
        self._cancelled_tasks: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Observable state
    # ------------------------------------------------------------------

    @property
    def state(self) -> StreamState:
        return self._state

    @property
    def is_streaming(self) -> bool:
        return self._state.is_streaming

    @property
    def accumulated_text(self) -> str:
        return self._state.accumulated_text

    @property
    def generation(self) -> int:
        return self._generation

    def add_listener(self, listener: Callable[[StreamState], None]) -> Callable[[], None]:
        """Register a callback invoked with every new state snapshot.

        Returns:
            A function that removes the listener.
        """
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    def _set_state(self, state: StreamState) -> None:
        self._state = state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("Stream state listener failed")

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def stream_message(self, session_id: str, content: str) -> bool:
        """Send ``content`` to ``session_id`` and stream the reply.

        Returns:
            True when the stream completed, False when the call was ignored
            because another stream is active or ``content`` is blank.

        Raises:
            StreamFailedError: Transport failure, server error event, or
                the end-of-stream sentinel before any completion.
            StreamCancelledError: ``cancel()`` superseded this stream.
        """
        if self._state.phase is not StreamPhase.IDLE:
            logger.warning(
                "Ignoring send to session %s: stream %s is %s",
                session_id,
                self._generation,
                self._state.phase.value,
            )
            return False
        if not content.strip():
            logger.debug("Ignoring blank send to session %s", session_id)
            return False

        self._generation += 1
        generation = self._generation
        self._set_state(StreamState(phase=StreamPhase.OPENING, generation=generation))
        logger.debug("Stream %s opening for session %s", generation, session_id)

        task = asyncio.current_task()
        self._task = task
        try:
            failure = await self._run(generation, session_id, content)
        except asyncio.CancelledError:
            if self._is_current(generation):
                self._finish(generation, StreamPhase.FAILED, error=self._failure_message)
                raise
            if task not in self._cancelled_tasks:
                raise
            # Cancelled by cancel(); anything left over came from elsewhere
            if task.uncancel() > 0:
                raise
            raise StreamCancelledError("Stream cancelled") from None
        except BaseException:
            if self._is_current(generation):
                self._finish(generation, StreamPhase.FAILED, error=self._failure_message)
            raise
        finally:
            self._cancelled_tasks.discard(task)
            if self._task is task:
                self._task = None

        if not self._is_current(generation):
            raise StreamCancelledError("Stream cancelled")

        if failure is not None:
            self._finish(generation, StreamPhase.FAILED, error=failure.message)
            raise failure

        self._finish(generation, StreamPhase.COMPLETED)
        return True

    def cancel(self) -> bool:
        """Abort the active stream.

        Forces FAILED then IDLE immediately and bumps the generation so that
        any chunk still arriving on the superseded transport handle is
        discarded. The task running the stream is cancelled, which closes
        the transport handle; its ``stream_message`` call then raises
        StreamCancelledError.

        Returns:
            True if a stream was active.
        """
        if not self._state.is_streaming:
            return False

        cancelled = self._generation
        self._generation += 1
        logger.info("Cancelling stream %s", cancelled)
        self._finish(self._generation, StreamPhase.FAILED, error="Stream cancelled")

        task, self._task = self._task, None
        if task is not None and task is not asyncio.current_task() and not task.done():
            self._cancelled_tasks.add(task)
            task.cancel()
        return True

    async def _run(
        self,
        generation: int,
        session_id: str,
        content: str,
    ) -> StreamFailedError | None:
        """Consume the transport and apply events for one stream.

        Returns:
            The failure to raise, or None when the stream completed (or was
            superseded, which the caller detects from the generation).
        """
        completed = False
        invalidated = False

        try:
            async with (
                self._transport.stream_message(session_id, content) as chunks,
                aclosing(decode_stream(self._current_chunks(chunks, generation))) as events,
            ):
                async for event in events:
                    if not self._is_current(generation):
                        logger.debug("Discarding event from superseded stream %s", generation)
                        return None

                    if isinstance(event, TokenEvent):
                        self._set_state(
                            replace(
                                self._state,
                                phase=StreamPhase.STREAMING,
                                accumulated_text=self._state.accumulated_text + event.text,
                            )
                        )
                    elif isinstance(event, CompletionEvent):
                        completed = True
                        logger.debug(
                            "Stream %s recorded as message %s", generation, event.message_id
                        )
                        await self._invalidate(session_id)
                        invalidated = True
                    elif isinstance(event, ErrorEvent):
                        logger.warning("Stream %s error event: %s", generation, event.message)
                        return StreamFailedError(event.message)
                    elif isinstance(event, DoneMarker) and not completed:
                        logger.warning("Stream %s ended with sentinel before completion", generation)
                        return StreamFailedError(self._failure_message)
        except TransportError as e:
            if self._is_current(generation):
                logger.warning("Stream %s transport failure: %s", generation, e)
            failure = StreamFailedError(self._failure_message, correlation_id=e.correlation_id)
            failure.__cause__ = e
            return failure

        if self._is_current(generation) and not invalidated:
            await self._invalidate(session_id)
        return None

    async def _current_chunks(
        self,
        chunks: AsyncIterator[str],
        generation: int,
    ) -> AsyncGenerator[str, None]:
        """Pass chunks through while ``generation`` is still current."""
        async for chunk in chunks:
            if not self._is_current(generation):
                logger.debug("Discarding chunk from superseded stream %s", generation)
                return
            if self._state.phase is StreamPhase.OPENING:
                self._set_state(replace(self._state, phase=StreamPhase.STREAMING))
            yield chunk

    def _finish(self, generation: int, phase: StreamPhase, error: str | None = None) -> None:
        """Publish the terminal snapshot, then reset to an empty IDLE state."""
        self._set_state(replace(self._state, phase=phase, error=error))
        logger.debug("Stream %s %s", generation, phase.value)
        self._set_state(StreamState(phase=StreamPhase.IDLE, generation=generation))

    async def _invalidate(self, session_id: str) -> None:
        """Invalidate the session's messages and the session list.

        Failures here belong to the cache layer; the stream has already
        succeeded, so they are logged and not raised.
        """
        if self._cache is None:
            return
        for key in (messages_query_key(session_id), SESSIONS_QUERY_KEY):
            try:
                await self._cache.invalidate(key)
            except Exception:
                logger.exception("Cache invalidation failed for %s", key)
