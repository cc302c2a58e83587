"""Streaming pipeline: frame splitting, event decoding and the stream controller."""

from chatsync.streaming.controller import StreamController, StreamPhase, StreamState
from chatsync.streaming.decoder import decode, decode_stream
from chatsync.streaming.events import (
    CompletionEvent,
    DoneMarker,
    ErrorEvent,
    StreamEvent,
    TokenEvent,
)
from chatsync.streaming.frames import FrameSplitter

__all__ = [
    "CompletionEvent",
    "DoneMarker",
    "ErrorEvent",
    "FrameSplitter",
    "StreamController",
    "StreamEvent",
    "StreamPhase",
    "StreamState",
    "TokenEvent",
    "decode",
    "decode_stream",
]
