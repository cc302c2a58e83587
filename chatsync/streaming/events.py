"""Stream event types decoded from the chat message stream.

A stream produces any number of TokenEvents followed by exactly one
terminal outcome: CompletionEvent, ErrorEvent or the DoneMarker sentinel
(a transport failure is the fourth, non-event, terminal outcome).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar


@dataclass(frozen=True)
class TokenEvent:
    """A partial fragment of assistant output text."""

    text: str

    is_terminal: ClassVar[bool] = False


@dataclass(frozen=True)
class CompletionEvent:
    """The assistant message has been durably recorded server-side."""

    message_id: int | str | None = None

    is_terminal: ClassVar[bool] = True


@dataclass(frozen=True)
class ErrorEvent:
    """Server-reported error; the message is shown to the user verbatim."""

    message: str

    is_terminal: ClassVar[bool] = True


@dataclass(frozen=True)
class DoneMarker:
    """The ``[DONE]`` sentinel: end of stream, distinct from a completion."""

    is_terminal: ClassVar[bool] = True


StreamEvent = TokenEvent | CompletionEvent | ErrorEvent | DoneMarker
