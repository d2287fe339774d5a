"""Status command."""

import asyncio
import json
import uuid

import click
import websockets
from rich.table import Table

from . import cli
from .shared import console, _get_settings, _get_store


async def _ping_bridge(url: str, token: str | None, timeout: float) -> dict:
    """One health round-trip against the bridge."""
    request_id = uuid.uuid4().hex
    frame = {"type": "health", "requestId": request_id, "payload": {}}
    if token:
        frame["token"] = token
    async with websockets.connect(url, open_timeout=timeout) as ws:
        await ws.send(json.dumps(frame))
        while True:
            raw = await asyncio.wait_for(ws.recv(), timeout=timeout)
            data = json.loads(raw)
            if data.get("type") == "response" and data.get("requestId") == request_id:
                return data.get("payload") or {}


@cli.command()
def status():
    """Show Jarvis status."""
    async def _status():
        settings = _get_settings()

        from jarvis import __version__ as jarvis_version

        table = Table(title=f"Jarvis Status v{jarvis_version}", show_header=False, padding=(0, 2))
        table.add_column("Key", style="bold")
        table.add_column("Value")

        table.add_row("Version", jarvis_version)
        table.add_row("Bridge URL", settings.bridge_url)
        table.add_row("Bridge token", "[green]set[/green]" if settings.bridge_token else "[yellow]not set[/yellow]")
        table.add_row("Owners", str(len(settings.owner_ids)))
        table.add_row("Command prefix", settings.command_prefix)
        table.add_row("Batching", f"{settings.batch_size} per message, {settings.batch_delay}s apart")
        table.add_row(
            "Assistant",
            f"[green]{settings.gemini_model}[/green]" if settings.gemini_api_key else "[yellow]disabled[/yellow]",
        )

        store = _get_store(settings)
        doc = await store.load()
        subgroups = sum(len(groups) for groups in doc.values())
        table.add_row("Store", str(store.path))
        table.add_row("Subgroups", f"{subgroups} in {len(doc)} scope(s)")

        try:
            payload = await _ping_bridge(settings.bridge_url, settings.bridge_token, timeout=5)
            if payload.get("ok"):
                result = payload.get("result") or {}
                me = result.get("me") if isinstance(result, dict) else None
                table.add_row("Bridge", f"[green]Connected[/green]{f' as {me}' if me else ''}")
            else:
                error = (payload.get("error") or {}).get("message", "unknown error")
                table.add_row("Bridge", f"[red]Error: {error}[/red]")
        except Exception as e:
            table.add_row("Bridge", f"[red]Unreachable: {type(e).__name__}[/red]")

        console.print(table)

    asyncio.run(_status())
