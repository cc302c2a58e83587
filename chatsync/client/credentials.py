"""Credential providers for the chat API client.

The client is handed a provider at construction and asks it for a bearer
token before every request. A provider returning None means the request
is sent without an Authorization header.
"""

from __future__ import annotations

import inspect
import logging
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from pydantic import SecretStr

logger = logging.getLogger(__name__)


@runtime_checkable
class CredentialProvider(Protocol):
    """Anything that can produce the current bearer token."""

    async def get_token(self) -> str | None: ...


class StaticCredentialProvider:
    """Provider for a fixed token, e.g. one read from settings."""

    def __init__(self, token: str | SecretStr | None) -> None:
        if token is not None and not isinstance(token, str):
            token = token.get_secret_value()
        self._token = token or None

    async def get_token(self) -> str | None:
        return self._token


class CallableCredentialProvider:
    """Adapts a plain function (sync or async) into a provider.

    Errors raised by the function are logged and treated as "no token",
    so a failing token store degrades to an unauthenticated request rather
    than an aborted one.
    """

    def __init__(self, getter: Callable[[], str | None | Awaitable[str | None]]) -> None:
        self._getter = getter

    async def get_token(self) -> str | None:
        try:
            token = self._getter()
            if inspect.isawaitable(token):
                token = await token
        except Exception:
            logger.warning("Credential getter failed; sending request without token", exc_info=True)
            return None
        return token or None


def as_credential_provider(
    source: CredentialProvider | Callable[[], str | None | Awaitable[str | None]] | str | None,
) -> CredentialProvider:
    """Normalise the accepted credential sources into a provider."""
    if source is None or isinstance(source, str):
        return StaticCredentialProvider(source)
    if isinstance(source, CredentialProvider):
        return source
    return CallableCredentialProvider(source)
