"""HTTP client for the chat API.

Provides the request/response transport the streaming core depends on:
bearer-token authorization from an injected credential provider, a shared
connection-pooled httpx.AsyncClient, JSON reads for models/sessions/
messages, and a streaming POST that exposes the response body as an
ordered async sequence of text chunks.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import ValidationError

from chatsync.client.credentials import as_credential_provider
from chatsync.exceptions import APIError, ConfigurationError, TransportError
from chatsync.models import (
    ChatModel,
    Message,
    MessageCreate,
    MessageList,
    ModelList,
    Session,
    SessionCreate,
    SessionList,
)
from chatsync.settings import get_settings

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, AsyncIterator, Awaitable, Callable

    from chatsync.client.credentials import CredentialProvider
    from chatsync.settings import Settings

logger = logging.getLogger(__name__)

_ALLOWED_SCHEMES = {"http", "https"}


class ChatAPIClient:
    """Client for the chat API.

    Usage::

        client = ChatAPIClient("https://api.example.com", credentials=token_getter)
        models = await client.list_models()

        async with client.stream_message(session_id, "Hello") as chunks:
            async for chunk in chunks:
                ...

        await client.close()

    Args:
        base_url: API base URL (defaults to settings.api_url).
        credentials: A CredentialProvider, a sync/async function returning a
            token, a literal token, or None (defaults to settings.api_token).
        settings: Settings to read timeouts and defaults from.
        transport: Optional httpx transport, used by tests to stub the wire.

    Raises:
        ValueError: The base URL is not http(s).
        ConfigurationError: Plain http is configured in production.
    """

    def __init__(
        self,
        base_url: str | None = None,
        credentials: CredentialProvider | Callable[[], str | None | Awaitable[str | None]] | str | None = None,
        *,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        url = httpx.URL(base_url or self._settings.api_url)
        if url.scheme not in _ALLOWED_SCHEMES:
            msg = f"Invalid URL scheme '{url.scheme}'. Only {_ALLOWED_SCHEMES} allowed."
            raise ValueError(msg)
        if url.scheme == "http" and self._settings.environment == "production":
            raise ConfigurationError("API_URL must use https in production")
        self.base_url = str(url).rstrip("/")

        if credentials is None:
            credentials = self._settings.api_token.get_secret_value() or None
        self._credentials = as_credential_provider(credentials)
        self._transport = transport
        self._http_client: httpx.AsyncClient | None = None

    def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create a shared httpx.AsyncClient with connection pooling.

        The client is created lazily on first use and reused across requests.
        """
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(
                    self._settings.request_timeout,
                    connect=self._settings.connect_timeout,
                ),
                limits=httpx.Limits(
                    max_keepalive_connections=10,
                    max_connections=20,
                ),
                transport=self._transport,
            )
        return self._http_client

    async def close(self) -> None:
        """Close the shared HTTP client and release connections."""
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    async def __aenter__(self) -> ChatAPIClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def _headers(self) -> dict[str, str]:
        """Build request headers, adding the bearer token when available."""
        headers = {"Content-Type": "application/json"}
        token = await self._credentials.get_token()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        *,
        error_message: str,
        json: dict[str, Any] | None = None,
    ) -> Any:
        """Make a JSON request and return the decoded body.

        Args:
            method: HTTP method
            path: API path (without base URL)
            error_message: Message for the APIError raised on any failure
            json: JSON body

        Returns:
            Response JSON, or None for empty bodies

        Raises:
            APIError: On connection failure, timeout or non-2xx status.
        """
        client = self._get_http_client()
        try:
            response = await client.request(method, path, json=json, headers=await self._headers())
        except httpx.TimeoutException as e:
            logger.warning("%s %s timed out", method, path)
            raise APIError(error_message) from e
        except httpx.HTTPError as e:
            logger.warning("%s %s failed: %s", method, path, type(e).__name__)
            raise APIError(error_message) from e

        if not response.is_success:
            logger.warning("%s %s returned HTTP %s", method, path, response.status_code)
            raise APIError(error_message, status_code=response.status_code)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise APIError(f"{error_message}: invalid JSON response") from e

    async def list_models(self) -> list[ChatModel]:
        """Fetch the models a session can be bound to."""
        data = await self._request("GET", "/chat/models", error_message="Failed to fetch models")
        return _parse(ModelList, data, "Failed to fetch models").models

    async def list_sessions(self) -> list[Session]:
        """Fetch the signed-in user's sessions."""
        data = await self._request("GET", "/chat/sessions", error_message="Failed to fetch sessions")
        return _parse(SessionList, data, "Failed to fetch sessions").sessions

    async def list_messages(self, session_id: str) -> list[Message]:
        """Fetch the authoritative, ordered message list of a session.

        Each message gets its session reference and its ordinal position.
        """
        data = await self._request(
            "GET",
            f"/chat/sessions/{session_id}/messages",
            error_message="Failed to fetch messages",
        )
        messages = _parse(MessageList, data, "Failed to fetch messages").messages
        return [
            m.model_copy(update={"session_id": session_id, "position": index})
            for index, m in enumerate(messages)
        ]

    async def create_session(self, *, model_id: int, title: str) -> Session:
        """Create a session; the server issues its id."""
        body = SessionCreate(model_id=model_id, title=title).model_dump(by_alias=True)
        data = await self._request(
            "POST",
            "/chat/sessions",
            json=body,
            error_message="Failed to create session",
        )
        session = _parse(Session, data, "Failed to create session")
        logger.info("Created session %s (model %s)", session.id, session.model_id)
        return session

    async def delete_session(self, session_id: str) -> None:
        """Delete a session and its messages."""
        await self._request(
            "DELETE",
            f"/chat/sessions/{session_id}",
            error_message="Failed to delete session",
        )
        logger.info("Deleted session %s", session_id)

    @asynccontextmanager
    async def stream_message(
        self,
        session_id: str,
        content: str,
    ) -> AsyncGenerator[AsyncIterator[str], None]:
        """Send a message and expose the streamed response body.

        The context yields an async iterator of raw text chunks in arrival
        order. Leaving the context closes the response, which aborts the
        transfer if it has not finished.

        Raises:
            TransportError: If the connection fails, the server answers
                with a non-2xx status, or the body transfer breaks.
        """
        body = MessageCreate(content=content).model_dump()
        client = self._get_http_client()
        request = client.build_request(
            "POST",
            f"/chat/sessions/{session_id}/messages",
            json=body,
            headers=await self._headers(),
            timeout=httpx.Timeout(
                self._settings.stream_timeout,
                connect=self._settings.connect_timeout,
            ),
        )

        try:
            response = await client.send(request, stream=True)
        except httpx.HTTPError as e:
            logger.warning("Opening message stream for session %s failed: %s", session_id, e)
            raise TransportError(f"Connection failed: {type(e).__name__}") from e

        try:
            if not response.is_success:
                logger.warning(
                    "Message stream for session %s returned HTTP %s",
                    session_id,
                    response.status_code,
                )
                raise TransportError(
                    f"HTTP {response.status_code}",
                    status_code=response.status_code,
                )
            yield _iter_chunks(response)
        finally:
            await response.aclose()


async def _iter_chunks(response: httpx.Response) -> AsyncGenerator[str, None]:
    """Yield decoded body text, translating httpx errors to TransportError."""
    try:
        async for text in response.aiter_text():
            if text:
                yield text
    except httpx.HTTPError as e:
        raise TransportError(f"Stream interrupted: {type(e).__name__}") from e


def _parse(model: Any, data: Any, error_message: str) -> Any:
    """Validate a response body, mapping schema errors to APIError."""
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise APIError(f"{error_message}: unexpected response shape") from e
