"""Subgroup inspection commands (read-only)."""

import asyncio
import click
from rich.table import Table

from . import cli
from .shared import console, _get_store


@cli.group()
def groups():
    """Inspect stored subgroups."""
    pass


@groups.command("list")
@click.option("--scope", default=None, help="Only this scope (group JID or 'global')")
def groups_list(scope):
    """List subgroups and member counts."""
    async def _list():
        doc = await _get_store().load()
        scopes = [scope] if scope else sorted(doc)
        if not any(doc.get(s) for s in scopes):
            console.print("[dim]No subgroups stored.[/dim]")
            return

        table = Table(title="Subgroups")
        table.add_column("Scope", style="cyan")
        table.add_column("Name", style="bold")
        table.add_column("Members", justify="right")
        for s in scopes:
            for name, members in sorted(doc.get(s, {}).items()):
                table.add_row(s, name, str(len(members)))
        console.print(table)

    asyncio.run(_list())


@groups.command("show")
@click.argument("scope")
@click.argument("name")
def groups_show(scope, name):
    """Show the members of SCOPE/NAME."""
    from jarvis.errors import SubgroupNotFound

    async def _show():
        try:
            members = await _get_store().show(scope, name)
        except SubgroupNotFound:
            console.print(f"[red]Subgroup '{name}' not found in {scope}.[/red]")
            return False

        console.print(f"[bold]{name}[/bold] [dim]({scope})[/dim] — {len(members)} member(s)")
        for m in members:
            console.print(f"  • {m}")
        return True

    if not asyncio.run(_show()):
        raise SystemExit(1)
