"""agent-runtime register / offer -- one-shot ledger writes."""

from __future__ import annotations

import asyncio

import click

from agent_runtime.cli.formatting import format_error, format_receipt, get_console


@click.command()
@click.argument("metadata_uri")
@click.pass_context
def register(ctx: click.Context, metadata_uri: str) -> None:
    """Register this agent's identity with METADATA_URI."""
    from agent_runtime.cli import _get_config, _get_settlement

    console = get_console()
    try:
        settlement = _get_settlement(_get_config(ctx))
        receipt = asyncio.run(settlement.register_identity(metadata_uri))
    except Exception as e:
        format_error(str(e), console)
        raise SystemExit(1) from None

    format_receipt(receipt, console)
    console.print(f"  DID:    [cyan]{settlement.did}[/cyan]")


@click.command()
@click.argument("service_type")
@click.argument("price", type=int)
@click.argument("metadata_uri")
@click.pass_context
def offer(ctx: click.Context, service_type: str, price: int, metadata_uri: str) -> None:
    """List a capability: SERVICE_TYPE at PRICE wei per unit, described by METADATA_URI."""
    from agent_runtime.cli import _get_config, _get_settlement

    console = get_console()
    try:
        settlement = _get_settlement(_get_config(ctx))
        receipt = asyncio.run(settlement.list_capability(service_type, price, metadata_uri))
    except Exception as e:
        format_error(str(e), console)
        raise SystemExit(1) from None

    format_receipt(receipt, console)
