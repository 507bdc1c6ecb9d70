"""agent-runtime result -- fetch a stored result document."""

from __future__ import annotations

import asyncio

import click

from agent_runtime.cli.formatting import format_error, format_json, get_console


@click.command()
@click.argument("locator")
@click.pass_context
def result(ctx: click.Context, locator: str) -> None:
    """Print the result document stored at LOCATOR.

    LOCATOR is a ``file://``, ``ipfs://`` or ``http(s)://`` locator as
    recorded at completion time.
    """
    from agent_runtime.cli import _get_config
    from agent_runtime.results import (
        HTTPResultStore,
        IPFSResultStore,
        LocalResultStore,
    )

    console = get_console()
    try:
        config = _get_config(ctx)
        if locator.startswith("file://"):
            store = LocalResultStore()
        elif locator.startswith("ipfs://"):
            store = IPFSResultStore(config.ipfs_gateway)
        elif locator.startswith(("http://", "https://")):
            store = HTTPResultStore(locator, config.storage_api_key)
        else:
            format_error(f"Unsupported locator: {locator}", console)
            raise SystemExit(1)

        async def fetch() -> dict | None:
            try:
                return await store.retrieve(locator)
            finally:
                await store.aclose()

        document = asyncio.run(fetch())
        if document is None:
            format_error(f"No result found at {locator}", console)
            raise SystemExit(1)
        format_json(document, console)
    except SystemExit:
        raise
    except Exception as e:
        format_error(str(e), console)
        raise SystemExit(1) from None
