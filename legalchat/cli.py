"""
LegalChat CLI

Command-line client for the AI legal assistant.

Usage:
    legalchat chat                         # Interactive REPL mode
    legalchat ask "Can my landlord ..."    # Single query in the current session
    legalchat sessions list                # List saved sessions
    legalchat sessions show SESSION_ID     # Print a session transcript
    legalchat sessions delete SESSION_ID   # Delete a session
    legalchat sessions clear --yes         # Delete every session
    legalchat retry                        # Re-send messages that failed to save
    legalchat models                       # List available Gemini models
"""

import os

os.environ.setdefault("GRPC_VERBOSITY", "ERROR")
os.environ.setdefault("GLOG_minloglevel", "3")
os.environ.setdefault("ABSL_LOGGING_MIN_LOG_LEVEL", "3")

import asyncio
import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import click
from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from legalchat.assistant import LegalAssistant
from legalchat.config import AVAILABLE_MODELS, get_settings
from legalchat.history import ChatHistory
from legalchat.llm import create_provider
from legalchat.local_storage import LocalStorage
from legalchat.models import ChatSession, Message, User
from legalchat.pipeline import LegalChatPipeline
from legalchat.store import create_store

console = Console()

EXIT_COMMANDS = {"exit", "quit", ":q", "/exit", "/quit"}


def configure_cli_logging() -> None:
    logging.disable(logging.CRITICAL)
    logging.basicConfig(level=logging.CRITICAL)
    for logger_name in ("legalchat", "httpx", "asyncio", "google", "grpc"):
        logging.getLogger(logger_name).setLevel(logging.CRITICAL)


def _resolve_user_id(user_id: str | None) -> str:
    resolved = user_id or get_settings().user_id
    if not resolved:
        raise click.UsageError("No user id. Pass --user-id or set LEGALCHAT_USER_ID.")
    return resolved


@asynccontextmanager
async def open_history(user_id: str, *, read_only: bool = False) -> AsyncIterator[ChatHistory]:
    """Load the user's chat history and release store resources afterwards."""
    settings = get_settings()
    store = await create_store(settings.store)
    history = ChatHistory(
        store,
        LocalStorage(settings.history.storage_path),
        settings.history,
    )
    try:
        await history.load(User(id=user_id), read_only=read_only)
        yield history
    finally:
        await history.aclose()
        await store.close()


def create_pipeline(history: ChatHistory, model: str | None = None) -> LegalChatPipeline:
    provider = create_provider(get_settings().llm)
    if model:
        provider.set_model(model)
    return LegalChatPipeline(history, LegalAssistant(provider))


def _run(coro):
    """Run a command coroutine; configuration errors exit with status 1."""
    try:
        return asyncio.run(coro)
    except ValueError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        sys.exit(1)


def _should_exit_chat(query: str) -> bool:
    return query.strip().lower() in EXIT_COMMANDS


def print_answer(message: Message) -> None:
    """Render an assistant message with its structured sections."""
    console.print(Panel(Markdown(message.content), title="Assistant", border_style="green"))

    if message.legal_references:
        table = Table(title="Legal References", show_lines=False)
        table.add_column("Section", style="cyan", no_wrap=True)
        table.add_column("Description")
        for reference in message.legal_references:
            table.add_row(reference.section, reference.description)
        console.print(table)

    if message.action_steps:
        table = Table(title="Action Steps")
        table.add_column("#", style="cyan", no_wrap=True)
        table.add_column("Step")
        for step in message.action_steps:
            table.add_row(step.step, step.description)
        console.print(table)

    if message.contact_info:
        table = Table(title="Contacts")
        table.add_column("Department", style="cyan")
        table.add_column("Contact")
        table.add_column("Type", style="dim")
        for contact in message.contact_info:
            table.add_row(contact.department, contact.helpline, contact.type)
        console.print(table)


def _print_sessions(sessions: list[ChatSession], current_id: str | None) -> None:
    if not sessions:
        console.print("[yellow]No chat sessions yet.[/yellow]")
        return
    table = Table(title="Chat Sessions")
    table.add_column("#", style="dim", no_wrap=True)
    table.add_column("Title")
    table.add_column("Messages", justify="right")
    table.add_column("Updated", style="dim")
    table.add_column("ID", style="dim")
    for index, session in enumerate(sessions, start=1):
        marker = "[bold green]*[/bold green] " if session.id == current_id else ""
        table.add_row(
            str(index),
            f"{marker}{escape(session.title)}",
            str(len(session.messages)),
            session.updated_at.strftime("%Y-%m-%d %H:%M"),
            session.id,
        )
    console.print(table)


def _print_save_status(history: ChatHistory) -> None:
    if history.failed_messages:
        console.print(
            f"[yellow]{len(history.failed_messages)} message(s) could not be saved; "
            "they are queued and will be retried.[/yellow]"
        )


# ============================================================================
# CLI Commands
# ============================================================================


@click.group()
@click.version_option(version="0.1.0", prog_name="LegalChat")
def cli():
    """LegalChat - AI legal assistant for the Indian legal system."""
    configure_cli_logging()


@cli.command()
@click.option("--user-id", help="User owning the chat sessions (default: LEGALCHAT_USER_ID).")
@click.option(
    "--model",
    type=click.Choice(AVAILABLE_MODELS),
    help="Gemini model to answer with.",
)
def chat(user_id: str | None, model: str | None):
    """Interactive REPL mode for conversations."""
    resolved_user = _resolve_user_id(user_id)
    console.print(
        Panel.fit(
            "[bold green]LegalChat Interactive Mode[/bold green]\n"
            "Ask legal questions. Commands: /new, /sessions, /switch N, /retry. "
            "Type 'exit' to leave.",
            border_style="green",
        )
    )

    async def run_chat():
        async with open_history(resolved_user) as history:
            history.start()
            pipeline = create_pipeline(history, model)
            session = history.current_session
            if session and session.messages:
                print_answer(session.messages[-1])

            while True:
                try:
                    query = await asyncio.to_thread(console.input, "[bold cyan]You:[/bold cyan] ")
                except (EOFError, KeyboardInterrupt):
                    console.print("\n[yellow]Goodbye![/yellow]")
                    break

                if not query.strip():
                    continue
                if _should_exit_chat(query):
                    console.print("\n[yellow]Goodbye![/yellow]")
                    break

                command, _, argument = query.strip().partition(" ")
                if command == "/new":
                    await history.create_new_session()
                    print_answer(history.current_session.messages[-1])
                    continue
                if command == "/sessions":
                    _print_sessions(history.sessions, history.current_session_id)
                    continue
                if command == "/switch":
                    await _switch_by_index(history, argument)
                    continue
                if command == "/retry":
                    await history.retry_failed_messages()
                    _print_save_status(history)
                    continue

                with console.status("[cyan]Consulting...[/cyan]", spinner="dots"):
                    answer = await pipeline.ask(query)
                print_answer(answer)
                _print_save_status(history)

            await history.wait_for_saves()

    _run(run_chat())


async def _switch_by_index(history: ChatHistory, argument: str) -> None:
    try:
        index = int(argument) - 1
    except ValueError:
        console.print("[red]Usage: /switch N[/red]")
        return
    if not 0 <= index < len(history.sessions):
        console.print(f"[red]No session #{argument}[/red]")
        return
    target = history.sessions[index]
    if await history.switch_to_session(target.id):
        console.print(f"[green]Switched to:[/green] {escape(target.title)}")
    else:
        console.print("[yellow]Messages are still being saved; try again shortly.[/yellow]")


@cli.command()
@click.argument("query")
@click.option("--user-id", help="User owning the chat sessions (default: LEGALCHAT_USER_ID).")
@click.option("--new-session", is_flag=True, help="Start a new session for this query.")
@click.option(
    "--model",
    type=click.Choice(AVAILABLE_MODELS),
    help="Gemini model to answer with.",
)
def ask(query: str, user_id: str | None, new_session: bool, model: str | None):
    """Ask a single question in the current session."""
    resolved_user = _resolve_user_id(user_id)

    async def run_query():
        async with open_history(resolved_user) as history:
            if new_session:
                await history.create_new_session()
            pipeline = create_pipeline(history, model)
            with console.status("[cyan]Consulting...[/cyan]", spinner="dots"):
                answer = await pipeline.ask(query)
            print_answer(answer)
            await history.wait_for_saves()
            _print_save_status(history)

    _run(run_query())


@cli.command()
@click.option("--user-id", help="User owning the chat sessions (default: LEGALCHAT_USER_ID).")
def retry(user_id: str | None):
    """Re-send messages that could not be saved earlier."""
    resolved_user = _resolve_user_id(user_id)

    async def run_retry():
        async with open_history(resolved_user) as history:
            pending = history.pending.load()
            if not pending:
                console.print("[green]No pending messages.[/green]")
                return
            history.failed_messages.update(entry.message.id for entry in pending)
            await history.retry_failed_messages()
            remaining = len(history.failed_messages)
            saved = len(pending) - remaining
            console.print(f"[green]Saved {saved} message(s).[/green]")
            if remaining:
                console.print(f"[yellow]{remaining} message(s) still pending.[/yellow]")

    _run(run_retry())


@cli.command()
def models():
    """List the Gemini models the assistant can use."""
    current = get_settings().llm.google_model
    for name in AVAILABLE_MODELS:
        marker = "[bold green]*[/bold green]" if name == current else " "
        console.print(f"{marker} {name}")


@cli.group(name="sessions")
def sessions():
    """Manage saved chat sessions."""


@sessions.command(name="list")
@click.option("--user-id", help="User owning the chat sessions (default: LEGALCHAT_USER_ID).")
def list_sessions(user_id: str | None):
    """List chat sessions."""
    resolved_user = _resolve_user_id(user_id)

    async def run_list():
        async with open_history(resolved_user, read_only=True) as history:
            _print_sessions(history.sessions, history.current_session_id)

    _run(run_list())


@sessions.command(name="show")
@click.argument("session_id")
@click.option("--user-id", help="User owning the chat sessions (default: LEGALCHAT_USER_ID).")
def show_session(session_id: str, user_id: str | None):
    """Print the transcript of a session."""
    resolved_user = _resolve_user_id(user_id)

    async def run_show() -> bool:
        async with open_history(resolved_user, read_only=True) as history:
            session = history.get_session(session_id)
            if session is None:
                return False
            console.print(f"[bold]{escape(session.title)}[/bold]")
            for message in session.messages:
                if message.type == "user":
                    console.print(f"[bold cyan]You:[/bold cyan] {escape(message.content)}")
                else:
                    print_answer(message)
            return True

    if not _run(run_show()):
        console.print(f"[red]Session not found: {escape(session_id)}[/red]")
        sys.exit(1)


@sessions.command(name="delete")
@click.argument("session_id")
@click.option("--user-id", help="User owning the chat sessions (default: LEGALCHAT_USER_ID).")
def delete_session(session_id: str, user_id: str | None):
    """Delete one session and its messages."""
    resolved_user = _resolve_user_id(user_id)

    async def run_delete() -> bool:
        async with open_history(resolved_user) as history:
            if history.get_session(session_id) is None:
                return False
            await history.delete_session(session_id)
            return True

    if not _run(run_delete()):
        console.print(f"[red]Session not found: {escape(session_id)}[/red]")
        sys.exit(1)
    console.print(f"[green]Deleted session {escape(session_id)}[/green]")


@sessions.command(name="clear")
@click.option("--user-id", help="User owning the chat sessions (default: LEGALCHAT_USER_ID).")
@click.option("--yes", is_flag=True, help="Skip confirmation prompt.")
def clear_sessions(user_id: str | None, yes: bool):
    """Delete every session of the user."""
    resolved_user = _resolve_user_id(user_id)
    if not yes and not click.confirm("Delete all chat sessions?", default=False):
        console.print("[yellow]Aborted.[/yellow]")
        return

    async def run_clear():
        async with open_history(resolved_user) as history:
            await history.clear_all_sessions()
            console.print("[green]All chat sessions deleted.[/green]")

    _run(run_clear())


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
