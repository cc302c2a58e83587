"""Shared test fixtures for chatsync.

Provides common settings, cache and transport fixtures used across the
unit tests.
"""

from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from pydantic import SecretStr

from chatsync.cache import QueryCache
from chatsync.client import ChatAPIClient
from chatsync.settings import Settings

# =============================================================================
# SETTINGS
# =============================================================================


@pytest.fixture
def test_settings() -> Settings:
    """Provide test settings with safe defaults."""
    return Settings(
        environment="testing",
        debug=True,
        api_url="http://chat.test",
        api_token=SecretStr(""),
        request_timeout=5.0,
        stream_timeout=5.0,
        connect_timeout=1.0,
        send_failure_message="Failed to send message",
        title_max_length=20,
    )


# =============================================================================
# CACHE
# =============================================================================


@pytest.fixture
def query_cache() -> QueryCache:
    """Fresh in-memory query cache."""
    return QueryCache()


@pytest.fixture
def mock_cache() -> MagicMock:
    """Mock cache recording invalidated keys."""
    cache = MagicMock()
    cache.invalidate = AsyncMock()
    return cache


# =============================================================================
# HTTP
# =============================================================================


@pytest.fixture
def make_client(test_settings: Settings) -> Callable[..., ChatAPIClient]:
    """Build a ChatAPIClient whose wire is served by ``handler``."""

    def _make(handler: Callable[[httpx.Request], Any], **kwargs: Any) -> ChatAPIClient:
        return ChatAPIClient(
            settings=test_settings,
            transport=httpx.MockTransport(handler),
            **kwargs,
        )

    return _make


# =============================================================================
# MARKERS
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")
