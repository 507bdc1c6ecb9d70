"""agent-runtime health -- probe executors and the ledger."""

from __future__ import annotations

import asyncio

import click

from agent_runtime.cli.formatting import format_error, format_health, get_console


@click.command()
@click.pass_context
def health(ctx: click.Context) -> None:
    """Check every configured executor, and the ledger when a key is set.

    Exits 1 when anything is unhealthy.
    """
    from agent_runtime.cli import _get_config
    from agent_runtime.ledger.gateway import Web3Ledger
    from agent_runtime.runtime import build_registry

    console = get_console()
    try:
        config = _get_config(ctx)
        registry = build_registry(config)

        async def probe() -> tuple[dict[str, bool], int | None]:
            try:
                executors = await registry.health_check()
            finally:
                for executor in registry.list():
                    aclose = getattr(executor, "aclose", None)
                    if aclose is not None:
                        await aclose()
            block = None
            if config.private_key:
                ledger = Web3Ledger(
                    config.rpc_url, config.private_key, config.contract_addresses()
                )
                block = await ledger.block_number()
            return executors, block

        executors, block = asyncio.run(probe())
    except Exception as e:
        format_error(str(e), console)
        raise SystemExit(1) from None

    format_health(executors, console, block)
    if not all(executors.values()):
        raise SystemExit(1)
