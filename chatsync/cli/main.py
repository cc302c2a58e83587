"""CLI entry point and base commands.

Provides the main CLI application with commands for:
- models: List the models a session can use
- sessions: List sessions
- messages: Show the messages of a session
- delete: Delete a session
- chat: Interactive chat with streamed replies
"""

import asyncio
from typing import Annotated

import typer
from rich.panel import Panel
from rich.table import Table

from chatsync import __version__
from chatsync.cli.commands.chat import chat
from chatsync.cli.utils import console
from chatsync.client import ChatAPIClient
from chatsync.exceptions import APIError
from chatsync.logging_config import configure_logging

app = typer.Typer(
    name="chatsync",
    help="Streaming chat client",
    add_completion=False,
    no_args_is_help=True,
)


@app.callback()
def main(
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging"),
    ] = False,
) -> None:
    """Configure logging before any command runs."""
    configure_logging("DEBUG" if verbose else None)


app.command()(chat)


@app.command()
def models() -> None:
    """List the models a new session can be bound to."""

    async def _models() -> None:
        async with ChatAPIClient() as client:
            try:
                items = await client.list_models()
            except APIError as e:
                console.print(f"[red]Error: {e.message}[/red]")
                raise typer.Exit(code=1) from e

        if not items:
            console.print("[yellow]No models available.[/yellow]")
            return

        table = Table(title=f"Models ({len(items)})", show_header=True)
        table.add_column("ID", justify="right")
        table.add_column("Name", style="cyan")
        table.add_column("Color")
        table.add_column("Default", justify="center")
        for model in items:
            table.add_row(
                str(model.id),
                model.name,
                model.color,
                "[green]✓[/green]" if model.is_default else "",
            )
        console.print(table)

    asyncio.run(_models())


@app.command()
def sessions() -> None:
    """List sessions, most recent first as ordered by the server."""

    async def _sessions() -> None:
        async with ChatAPIClient() as client:
            try:
                items = await client.list_sessions()
            except APIError as e:
                console.print(f"[red]Error: {e.message}[/red]")
                raise typer.Exit(code=1) from e

        if not items:
            console.print("[yellow]No sessions yet. Start one with 'chatsync chat'.[/yellow]")
            return

        table = Table(title=f"Sessions ({len(items)})", show_header=True)
        table.add_column("ID", style="cyan")
        table.add_column("Title")
        table.add_column("Model", justify="right")
        for session in items:
            table.add_row(session.id, session.title, str(session.model_id))
        console.print(table)

    asyncio.run(_sessions())


@app.command()
def messages(
    session_id: Annotated[str, typer.Argument(help="Session ID")],
) -> None:
    """Show the messages of a session."""

    async def _messages() -> None:
        async with ChatAPIClient() as client:
            try:
                items = await client.list_messages(session_id)
            except APIError as e:
                console.print(f"[red]Error: {e.message}[/red]")
                raise typer.Exit(code=1) from e

        if not items:
            console.print("[dim]No messages.[/dim]")
            return

        for msg in items:
            style = "cyan" if msg.role == "user" else "green"
            console.print(f"[bold {style}]{msg.role}:[/bold {style}] {msg.content}")

    asyncio.run(_messages())


@app.command()
def delete(
    session_id: Annotated[str, typer.Argument(help="Session ID")],
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation"),
    ] = False,
) -> None:
    """Delete a session."""
    if not yes and not typer.confirm(f"Delete session {session_id}?"):
        console.print("[dim]Aborted.[/dim]")
        return

    async def _delete() -> None:
        async with ChatAPIClient() as client:
            try:
                await client.delete_session(session_id)
            except APIError as e:
                console.print(f"[red]Error: {e.message}[/red]")
                raise typer.Exit(code=1) from e
        console.print(f"[green]Deleted session {session_id}[/green]")

    asyncio.run(_delete())


@app.command()
def version() -> None:
    """Show version information."""
    console.print(
        Panel(
            f"[bold]chatsync[/bold] v{__version__}\nStreaming chat client",
            title="Version",
            border_style="blue",
        )
    )


# Entry point for: python -m chatsync.cli.main
if __name__ == "__main__":
    app()
