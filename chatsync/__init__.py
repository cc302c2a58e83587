"""chatsync: incremental chat-stream decoder and session-state synchronizer."""

__version__ = "0.1.0"

from chatsync.cache import QueryCache
from chatsync.chat import ChatCoordinator
from chatsync.client import ChatAPIClient
from chatsync.exceptions import (
    APIError,
    ChatSyncError,
    StreamCancelledError,
    StreamFailedError,
    TransportError,
)
from chatsync.streaming import StreamController, StreamPhase, StreamState

__all__ = [
    "APIError",
    "ChatAPIClient",
    "ChatCoordinator",
    "ChatSyncError",
    "QueryCache",
    "StreamCancelledError",
    "StreamController",
    "StreamFailedError",
    "StreamPhase",
    "StreamState",
    "TransportError",
]
