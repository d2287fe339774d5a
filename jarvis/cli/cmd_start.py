"""Start command."""

import asyncio
import click

from . import cli
from .shared import console


@cli.command()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def start(debug):
    """Start Jarvis."""
    from jarvis.main import run
    console.print("[bold blue]Starting Jarvis...[/bold blue]")
    asyncio.run(run(debug=debug))
