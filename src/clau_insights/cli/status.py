"""CLI: clau status show|refresh"""

from datetime import datetime

import click
from rich.console import Console

console = Console()

_STYLES = {
    "active": "green",
    "pending": "yellow",
    "suspended": "red",
    "revoked": "red",
    "unknown": "dim",
}


def _get_client():
    from clau_insights.cli.main import _get_client
    return _get_client()


def _run(coro):
    from clau_insights.cli.main import _run
    return _run(coro)


def _print_snapshot(client) -> None:
    snap = client.status.snapshot
    style = _STYLES.get(snap.status.value, "")
    when = datetime.fromtimestamp(snap.last_refreshed_at).isoformat(timespec="seconds") if snap.last_refreshed_at else "never"
    console.print(f"Access: [{style}]{snap.status.value}[/{style}]  client: {snap.client_id or '-'}  refreshed: {when}")


@click.group()
def status():
    """Access status commands."""


@status.command("show")
def status_show():
    """Show the cached access status."""

    async def _show():
        async with _get_client() as client:
            _print_snapshot(client)

    _run(_show())


@status.command("refresh")
def status_refresh():
    """Fetch the access status from the backend."""

    async def _refresh():
        async with _get_client() as client:
            with console.status("Refreshing..."):
                updated = await client.status.refresh()
            if not updated:
                console.print("[yellow]Refresh failed; showing last known status.[/yellow]")
            _print_snapshot(client)

    _run(_refresh())
