"""agent-runtime run -- start the seller agent."""

from __future__ import annotations

import asyncio
import signal
import sys
from typing import TYPE_CHECKING

import click

from agent_runtime.cli.formatting import format_error, format_event, get_console

if TYPE_CHECKING:
    from rich.console import Console

    from agent_runtime.runtime import AgentRuntime


async def _serve(runtime: AgentRuntime, console: Console) -> None:
    """Run until SIGINT/SIGTERM, then stop gracefully."""
    stop_requested = asyncio.Event()
    if sys.platform != "win32":
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, stop_requested.set)

    runner = asyncio.create_task(runtime.run())
    waiter = asyncio.create_task(stop_requested.wait())
    await asyncio.wait({runner, waiter}, return_when=asyncio.FIRST_COMPLETED)
    console.print("[dim]Stopping...[/dim]")
    await runtime.stop()
    waiter.cancel()
    await runner


@click.command()
@click.option("--quiet", is_flag=True, help="Do not print runtime events.")
@click.pass_context
def run(ctx: click.Context, quiet: bool) -> None:
    """Ingest orders from the ledger, execute, prove, store and settle them."""
    from agent_runtime.cli import _get_config
    from agent_runtime.runtime import AgentRuntime

    console = get_console()
    try:
        runtime = AgentRuntime.from_config(_get_config(ctx))
    except Exception as e:
        format_error(str(e), console)
        raise SystemExit(1) from None

    if not quiet:
        runtime.on(lambda event: format_event(event, console))
    console.print(f"Agent [green]{runtime.address}[/green]")
    console.print(f"  Executors: {', '.join(e.id for e in runtime.registry.list()) or 'none'}")

    try:
        asyncio.run(_serve(runtime, console))
    except Exception as e:
        format_error(str(e), console)
        raise SystemExit(1) from None
