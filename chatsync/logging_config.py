"""Logging setup for the chatsync client.

Log records go to stderr so they never interleave with a reply being
streamed to stdout. HTTP libraries are held at WARNING (httpcore at ERROR)
because a single streamed reply produces a debug record per chunk.
"""

import logging
import sys
from typing import IO, Literal

from chatsync.settings import get_settings

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]

# Third-party loggers and the level each is held at
NOISY_LOGGERS: dict[str, int] = {
    "httpx": logging.WARNING,
    "httpcore": logging.ERROR,
    "asyncio": logging.WARNING,
    "urllib3": logging.WARNING,
}

_FORMAT = "%(levelname)s | %(name)s | %(message)s"
_DEBUG_FORMAT = "%(asctime)s %(levelname)s | %(name)s:%(lineno)d | %(message)s"


def suppress_noisy_loggers() -> None:
    """Pin HTTP and event-loop loggers to their quiet levels.

    Handlers those libraries attached themselves are removed so records
    only reach the root handler.
    """
    for name, level in NOISY_LOGGERS.items():
        library_logger = logging.getLogger(name)
        library_logger.setLevel(level)
        library_logger.handlers.clear()


def configure_logging(level: LogLevel | None = None, *, stream: IO[str] | None = None) -> None:
    """Install the chatsync log handler on the root logger.

    Safe to call more than once; the previous handler is replaced.

    Args:
        level: Level for chatsync records. Defaults to DEBUG when
            settings.debug is set, else settings.log_level.
        stream: Destination (defaults to stderr).
    """
    settings = get_settings()
    resolved = level or ("DEBUG" if settings.debug else settings.log_level)
    numeric = getattr(logging, resolved)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setLevel(numeric)
    handler.setFormatter(
        logging.Formatter(
            _DEBUG_FORMAT if numeric <= logging.DEBUG else _FORMAT,
            datefmt="%H:%M:%S",
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(logging.DEBUG)  # filtering happens on the handler

    logging.getLogger("chatsync").setLevel(numeric)
    suppress_noisy_loggers()
