"""Chat commands."""

import asyncio
from typing import Annotated, Optional

import typer
from rich.live import Live
from rich.markdown import Markdown
from rich.panel import Panel
from rich.prompt import Prompt
from rich.text import Text

from chatsync.chat import ChatCoordinator
from chatsync.cli.utils import console
from chatsync.client import ChatAPIClient
from chatsync.exceptions import APIError
from chatsync.streaming.controller import StreamState


def chat(
    message: Annotated[
        Optional[str],  # noqa: UP007
        typer.Argument(help="Initial message (or leave empty for interactive mode)"),
    ] = None,
    session_id: Annotated[
        Optional[str],  # noqa: UP007
        typer.Option("--continue", "-c", help="Continue an existing session"),
    ] = None,
    model_id: Annotated[
        Optional[int],  # noqa: UP007
        typer.Option("--model", "-m", help="Model id for a new session"),
    ] = None,
) -> None:
    """Interactive chat with streamed replies.

    Examples:
        chatsync chat "Summarise this article"
        chatsync chat --continue <session-id>
        chatsync chat  # Interactive mode
    """
    asyncio.run(_chat_interactive(message, session_id, model_id))


def _render(state: StreamState) -> Markdown | Text:
    if state.is_streaming and not state.accumulated_text:
        return Text("Generating...", style="dim")
    return Markdown(state.accumulated_text)


async def _send(chat: ChatCoordinator, text: str) -> None:
    """Send one message, rendering the reply live while it streams."""
    with Live(_render(chat.controller.state), console=console, refresh_per_second=12, transient=True) as live:
        remove = chat.controller.add_listener(lambda state: live.update(_render(state)))
        try:
            await chat.send(text)
        finally:
            remove()

    if chat.stream_error:
        console.print(f"[red]{chat.stream_error}[/red]")
        return

    messages = await chat.messages()
    for msg in reversed(messages):
        if msg.role == "assistant":
            console.print("[bold green]Assistant:[/bold green]")
            console.print(Markdown(msg.content))
            break


async def _chat_interactive(
    initial_message: str | None,
    session_id: str | None,
    model_id: int | None,
) -> None:
    """Run interactive chat session."""
    async with ChatAPIClient() as client:
        chat = ChatCoordinator(client)

        try:
            await chat.load()
        except APIError as e:
            console.print(f"[red]{e.message}[/red]")
            raise typer.Exit(code=1) from e

        if model_id is not None:
            known = [m.id for m in chat.selection.models]
            if model_id not in known:
                available = ", ".join(str(k) for k in known)
                console.print(f"[red]Unknown model id {model_id} (available: {available})[/red]")
                raise typer.Exit(code=1)
            chat.selection.select_model(model_id)

        if session_id:
            try:
                await chat.select_session(session_id)
                history = await chat.messages()
            except APIError as e:
                console.print(f"[red]{e.message}[/red]")
                raise typer.Exit(code=1) from e

            console.print(f"[dim]Continuing session: {session_id}[/dim]\n")
            for msg in history:
                if msg.role == "user":
                    console.print(f"[bold cyan]You:[/bold cyan] {msg.content}")
                else:
                    console.print("[bold green]Assistant:[/bold green]")
                    console.print(Markdown(msg.content))
            console.print()

        model = chat.selection.effective_model
        console.print(
            Panel(
                f"Model: [bold]{model.name if model else 'none'}[/bold]\n\n"
                "Type [cyan]'exit'[/cyan] or [cyan]'quit'[/cyan] to end.\n"
                "Type [cyan]'/new'[/cyan] to start a new session.",
                title="Chat",
                border_style="blue",
            )
        )

        if initial_message:
            console.print(f"[bold cyan]You:[/bold cyan] {initial_message}\n")
            await _send(chat, initial_message)

        while True:
            try:
                user_input = Prompt.ask("\n[bold cyan]You[/bold cyan]")
            except (KeyboardInterrupt, EOFError):
                break

            if not user_input.strip():
                continue

            if user_input.lower() in ("exit", "quit", "q"):
                console.print("[dim]Ending conversation.[/dim]")
                break

            if user_input.lower() == "/new":
                chat.new_chat()
                console.print("[dim]Started a new session.[/dim]")
                continue

            await _send(chat, user_input)

        if chat.selection.current_session_id:
            console.print(f"\n[dim]Session: {chat.selection.current_session_id}[/dim]")
