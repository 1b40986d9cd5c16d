"""CLI: clau ask, clau chat"""

import asyncio
import json
from typing import Optional

import click
from rich.console import Console
from rich.live import Live
from rich.text import Text

from clau_insights.client import AsyncInsightsClient
from clau_insights.models.conversation import ConversationEntry, Role

console = Console()


def _get_client():
    from clau_insights.cli.main import _get_client
    return _get_client()


def _run(coro):
    from clau_insights.cli.main import _run
    return _run(coro)


def _render(entry: Optional[ConversationEntry]) -> Text:
    if entry is None:
        return Text("...", style="dim")
    text = Text("CLAU: ", style="green")
    text.append(entry.content or ("..." if entry.is_streaming else ""))
    badges = []
    if entry.using_real_data:
        badges.append("real data")
    if entry.provider:
        badges.append(entry.provider)
    if entry.using_backup_service:
        badges.append("backup service")
    if badges:
        text.append(f"  [{', '.join(badges)}]", style="dim")
    return text


async def _ask_live(client: AsyncInsightsClient, question: str, stream: bool) -> Optional[ConversationEntry]:
    """Run one question, repainting the answer as chunks land."""
    task = asyncio.ensure_future(client.submit(question, stream=stream))
    with Live(_render(None), console=console, refresh_per_second=12) as live:
        while not task.done():
            last = client.transcript.last()
            live.update(_render(last if last is not None and last.role is Role.ASSISTANT else None))
            await asyncio.sleep(0.08)
        record = task.result()
        entry = client.answer_for(record) if record is not None else None
        live.update(_render(entry))
    return entry


@click.command("ask")
@click.argument("question")
@click.option("--no-stream", is_flag=True, help="Use the blocking generate call")
@click.option("--json-output", "--json", is_flag=True)
def ask_cmd(question: str, no_stream: bool, json_output: bool):
    """Ask one question."""

    async def _ask():
        async with _get_client() as client:
            await client.start()
            if json_output:
                entry = await client.ask(question, stream=not no_stream)
                click.echo(json.dumps(entry.model_dump(mode="json", by_alias=True) if entry else None))
            else:
                await _ask_live(client, question, stream=not no_stream)

    _run(_ask())


@click.command("chat")
def chat_cmd():
    """Interactive chat with CLAU."""

    async def _chat():
        async with _get_client() as client:
            with console.status("Restoring session..."):
                await client.start(poll_interval_s=60.0)
            console.print(_render(client.transcript.last()))
            console.print("[cyan]Type your question (/clear to reset, /status, /quit)[/cyan]\n")
            try:
                while True:
                    msg = click.prompt("You", prompt_suffix=": ")
                    cmd = msg.strip().lower()
                    if cmd in ("/quit", "/exit"):
                        break
                    if cmd == "/clear":
                        if await client.clear_history():
                            console.print(_render(client.transcript.last()))
                        else:
                            console.print("[yellow]Could not clear history, try again later.[/yellow]")
                        continue
                    if cmd == "/status":
                        console.print(f"[dim]access: {client.access_status.value}[/dim]")
                        continue
                    await _ask_live(client, msg, stream=True)
            except (KeyboardInterrupt, EOFError, click.Abort):
                pass

    _run(_chat())
