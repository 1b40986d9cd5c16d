"""CLI: clau session show|clear"""

import click
from rich.console import Console

console = Console()


def _get_client():
    from clau_insights.cli.main import _get_client
    return _get_client()


def _run(coro):
    from clau_insights.cli.main import _run
    return _run(coro)


@click.group()
def session():
    """Conversation session commands."""


@session.command("show")
def session_show():
    """Show the saved session, after checking it with the backend."""

    async def _show():
        async with _get_client() as client:
            with console.status("Verifying session..."):
                session_id = await client.sessions.restore()
        if session_id:
            console.print(f"Session: [bold]{session_id}[/bold]")
        else:
            console.print("[dim]No active session.[/dim]")

    _run(_show())


@session.command("clear")
def session_clear():
    """Drop the conversation context and start a fresh session."""

    async def _clear():
        async with _get_client() as client:
            await client.sessions.restore()
            with console.status("Clearing..."):
                ok = await client.clear_history()
            if ok:
                console.print(f"[green]New session: {client.session_id}[/green]")
            else:
                console.print("[red]Failed to clear session.[/red]")
                raise SystemExit(1)

    _run(_clear())
