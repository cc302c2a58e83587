"""chatsync exception hierarchy.

Base exceptions for the transport and streaming layers with correlation ID
support.

Usage:
    from chatsync.exceptions import StreamFailedError

    try:
        await controller.stream_message(session_id, content)
    except StreamFailedError as e:
        show_error(e.message)
"""

import uuid


class ChatSyncError(Exception):
    """Base exception for all chatsync errors.

    Carries a correlation_id for tracing errors across layers.
    """

    def __init__(self, message: str, *, correlation_id: str | None = None):
        self.message = message
        self.correlation_id = correlation_id or str(uuid.uuid4())
        super().__init__(message)


class TransportError(ChatSyncError):
    """Errors from the HTTP transport.

    Raised on connection failures, timeouts and non-2xx responses.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        correlation_id: str | None = None,
    ):
        self.status_code = status_code
        super().__init__(message, correlation_id=correlation_id)


class APIError(TransportError):
    """A collaborator read or write (models, sessions, messages) failed."""

    pass


class StreamFailedError(ChatSyncError):
    """A message stream ended in the Failed state.

    ``message`` is the user-visible text: the server-supplied error verbatim
    for protocol errors, or the generic send failure message otherwise.
    """

    pass


class StreamCancelledError(StreamFailedError):
    """The stream was superseded by an explicit cancel."""

    pass


class ConfigurationError(ChatSyncError):
    """Errors from client configuration."""

    pass
