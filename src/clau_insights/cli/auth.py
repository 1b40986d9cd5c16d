"""CLI: clau auth login|status|logout"""

from typing import Optional

import click
from rich.console import Console

from clau_insights.config import CONFIG_FILE, ClientConfig

console = Console()


def _load_config() -> ClientConfig:
    from clau_insights.cli.main import _load_config
    return _load_config()


def _save_config(cfg: ClientConfig) -> None:
    from clau_insights.cli.main import _save_config
    _save_config(cfg)


@click.group()
def auth():
    """Credential commands."""


@auth.command("login")
@click.option("--base-url", default=None, help="CLAU API base URL")
@click.option("--user-id", default=None)
@click.option("--email", default=None)
def auth_login(base_url: Optional[str], user_id: Optional[str], email: Optional[str]):
    """Save an API token issued by the dashboard."""
    cfg = _load_config()
    token = click.prompt("API token", hide_input=True)
    uid = user_id or click.prompt("User ID", default=cfg.user_id or "")
    cfg = cfg.model_copy(update={
        "access_token": token,
        "user_id": uid,
        "email": email or cfg.email,
        "base_url": base_url or cfg.base_url,
    })
    _save_config(cfg)
    console.print(f"[green]Logged in as {cfg.email or uid}[/green]")
    console.print(f"[dim]Token saved to {CONFIG_FILE}[/dim]")


@auth.command("status")
def auth_status():
    """Show current credential status."""
    cfg = _load_config()
    if cfg.access_token:
        console.print(f"[green]Logged in[/green] as {cfg.email or 'unknown'} (ID: {cfg.user_id})")
    else:
        console.print("[yellow]Not logged in. Run `clau auth login`.[/yellow]")


@auth.command("logout")
def auth_logout():
    """Clear saved credentials."""
    cfg = _load_config()
    _save_config(cfg.model_copy(update={"access_token": None, "user_id": None, "email": None}))
    console.print("[green]Logged out.[/green]")
