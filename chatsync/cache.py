"""Keyed query cache for chat API reads.

Provides an in-memory cache of models, sessions and per-session messages
keyed by tuples. Entries are only ever replaced by a fetch from the API:
the stream path never writes server data here, it invalidates keys and
lets the next read refetch.

Invalidation notifies subscribers so observers holding a view of the data
can refetch. Failures raised by subscribers are logged here and never
propagate to the code that invalidated.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

QueryKey = tuple[Any, ...]

MODELS_QUERY_KEY: QueryKey = ("chat-models",)
SESSIONS_QUERY_KEY: QueryKey = ("chat-sessions",)


def messages_query_key(session_id: str) -> QueryKey:
    """Cache key for the message list of one session."""
    return ("chat-messages", session_id)


@dataclass
class _CacheEntry:
    """Internal cache entry with TTL tracking."""

    value: Any
    fetched_at: float = field(default_factory=lambda: time.monotonic())

    def is_expired(self, ttl_seconds: float | None) -> bool:
        if ttl_seconds is None:
            return False
        return (time.monotonic() - self.fetched_at) > ttl_seconds


class QueryCache:
    """In-memory cache with invalidate-by-key.

    Args:
        ttl_seconds: Optional time-to-live; None keeps entries until
            invalidated.
    """

    def __init__(self, ttl_seconds: float | None = None) -> None:
        self._ttl_seconds = ttl_seconds
        self._entries: dict[QueryKey, _CacheEntry] = {}
        self._listeners: list[Callable[[QueryKey], Awaitable[None] | None]] = []

    def get(self, key: QueryKey) -> Any | None:
        """Return the cached value, or None on miss or expiry."""
        entry = self._entries.get(key)
        if entry is None or entry.is_expired(self._ttl_seconds):
            return None
        return entry.value

    def set(self, key: QueryKey, value: Any) -> None:
        """Store a freshly fetched value."""
        self._entries[key] = _CacheEntry(value=value)

    def __contains__(self, key: QueryKey) -> bool:
        return self.get(key) is not None

    async def fetch(
        self,
        key: QueryKey,
        fetcher: Callable[[], Awaitable[Any]],
    ) -> Any:
        """Return the cached value, fetching and storing it on a miss.

        Errors from ``fetcher`` propagate to the caller and leave the cache
        unchanged.
        """
        cached = self.get(key)
        if cached is not None:
            return cached

        value = await fetcher()
        self.set(key, value)
        return value

    def subscribe(
        self,
        listener: Callable[[QueryKey], Awaitable[None] | None],
    ) -> Callable[[], None]:
        """Register a callback run with each invalidated key.

        Returns:
            A function that removes the listener.
        """
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    async def invalidate(self, key: QueryKey) -> None:
        """Drop the entry for ``key`` and notify subscribers.

        Subscribers typically refetch; their failures are logged and
        swallowed here because they belong to the cache layer, not to the
        caller that triggered the invalidation.
        """
        self._entries.pop(key, None)
        logger.debug("Invalidated query cache key: %s", key)

        for listener in list(self._listeners):
            try:
                result = listener(key)
                if result is not None:
                    await result
            except Exception:
                logger.exception("Cache listener failed after invalidating %s", key)

    def clear(self) -> None:
        """Clear every entry. Used in tests and on sign-out."""
        self._entries.clear()
