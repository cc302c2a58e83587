"""Frame splitter for the chat event stream.

Accumulates raw text chunks as they arrive from the transport and cuts them
into complete frames on the blank-line separator. An unterminated trailing
fragment is held back until a later chunk completes it or the transport
ends and ``flush()`` is called.
"""

from __future__ import annotations

FRAME_SEPARATOR = "\n\n"


class FrameSplitter:
    """Incremental splitter for blank-line delimited frames.

    Usage::

        splitter = FrameSplitter()
        async for chunk in response.aiter_text():
            for frame in splitter.feed(chunk):
                handle(frame)
        for frame in splitter.flush():
            handle(frame)

    Every returned frame ends with the separator so downstream parsing sees
    a uniform shape. Frames are returned in arrival order and never twice.
    """

    def __init__(self) -> None:
        self._buffer = ""

    @property
    def pending(self) -> str:
        """The buffered, not yet terminated remainder."""
        return self._buffer

    def feed(self, chunk: str) -> list[str]:
        """Add a raw chunk and return every frame it completes.

        Args:
            chunk: Next piece of response text, split at an arbitrary point.

        Returns:
            Complete frames, each re-terminated with the separator.
        """
        if not chunk:
            return []

        # A CRLF pair split across two chunks is completed here, before
        # normalising, so "\r" + "\n" still becomes a single "\n".
        self._buffer = (self._buffer + chunk).replace("\r\n", "\n")
        parts = self._buffer.split(FRAME_SEPARATOR)
        self._buffer = parts.pop()
        return [f"{part}{FRAME_SEPARATOR}" for part in parts]

    def flush(self) -> list[str]:
        """Return the remainder as a final frame, if there is one.

        Called once when the transport signals end of response.
        """
        remainder, self._buffer = self._buffer, ""
        if not remainder.strip():
            return []
        return [remainder]
