"""CLI application setup using Typer.

Provides the command-line driver for the chat client.
"""

from chatsync.cli.main import app

__all__ = ["app"]
