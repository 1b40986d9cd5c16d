"""
CLAU insights CLI — `clau` command.

Commands:
  clau auth login|status|logout   Store or clear the bearer token
  clau ask <question>             One-shot question
  clau chat                       Interactive REPL
  clau session show|clear         Conversation session
  clau status show|refresh        Access status
"""

import asyncio
import logging

try:
    import click
    from rich.console import Console
    from rich.logging import RichHandler
except ImportError:
    raise SystemExit("CLI requires extras: pip install clau-insights[cli]")

from clau_insights.client import AsyncInsightsClient
from clau_insights.config import ClientConfig, load_config, save_config

console = Console()


def _load_config() -> ClientConfig:
    return load_config()


def _save_config(cfg: ClientConfig) -> None:
    save_config(cfg)


def _get_client() -> AsyncInsightsClient:
    cfg = _load_config()
    if not cfg.access_token or not cfg.user_id:
        console.print("[red]Not logged in. Run `clau auth login` first.[/red]")
        raise SystemExit(1)
    return AsyncInsightsClient.from_config(
        cfg,
        on_auth_expired=lambda: console.print("[red]Session expired. Run `clau auth login` again.[/red]"),
    )


def _run(coro):
    return asyncio.run(coro)


@click.group()
@click.version_option("0.1.0")
@click.option("-v", "--verbose", is_flag=True, help="Log request lifecycle to stderr")
def main(verbose: bool):
    """CLAU — your Banking Intelligence Assistant."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(name)s: %(message)s",
            handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        )
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)


# Register subcommands from separate modules
from clau_insights.cli.auth import auth
from clau_insights.cli.chat import ask_cmd, chat_cmd
from clau_insights.cli.sessions import session
from clau_insights.cli.status import status

main.add_command(auth)
main.add_command(ask_cmd)
main.add_command(chat_cmd)
main.add_command(session)
main.add_command(status)


if __name__ == "__main__":
    main()
