"""agent-runtime CLI -- run the seller agent and inspect its state.

This module is never imported from agent_runtime/__init__.py.
It is only loaded via the ``agent-runtime`` entry point defined in pyproject.toml.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING

import click
from rich.logging import RichHandler

from agent_runtime.cli.formatting import format_error, get_console

if TYPE_CHECKING:
    from collections.abc import Iterator

    from rich.console import Console

    from agent_runtime.config import RuntimeConfig
    from agent_runtime.ledger.settlement import SettlementClient
    from agent_runtime.storage.store import RuntimeStore

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


@click.group()
@click.option(
    "--db",
    default=None,
    help="Path to the runtime database (overrides AGENT_DB).",
)
@click.option(
    "--log-level",
    default="INFO",
    envvar="LOG_LEVEL",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    help="Logging verbosity.",
)
@click.pass_context
def cli(ctx: click.Context, db: str | None, log_level: str) -> None:
    """Autonomous seller agent for the on-chain service marketplace."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )
    ctx.ensure_object(dict)
    ctx.obj["db_path"] = db


def _get_config(ctx: click.Context) -> "RuntimeConfig":
    """Load configuration from the environment, applying CLI overrides."""
    from agent_runtime.config import RuntimeConfig

    config = ctx.obj.get("config")
    if config is None:
        config = RuntimeConfig.from_env()
        if ctx.obj.get("db_path"):
            config = config.model_copy(update={"db_path": ctx.obj["db_path"]})
        ctx.obj["config"] = config
    return config


def _get_settlement(config: "RuntimeConfig") -> "SettlementClient":
    """Build a settlement client for one-shot ledger commands."""
    from agent_runtime.exceptions import ConfigurationError
    from agent_runtime.ledger.gateway import Web3Ledger
    from agent_runtime.ledger.settlement import SettlementClient

    config.validate_for_run()
    if config.private_key is None:
        raise ConfigurationError("AGENT_PRIVATE_KEY is required")
    gateway = Web3Ledger(config.rpc_url, config.private_key, config.contract_addresses())
    return SettlementClient(gateway, chain_id=config.chain_id)


@contextmanager
def _store_session(ctx: click.Context) -> Iterator[tuple["RuntimeStore", "Console"]]:
    """Open the runtime database, yield (store, console), and handle cleanup.

    Exceptions are formatted as CLI errors and exit with status 1.
    """
    import os

    from agent_runtime.storage.engine import create_runtime_engine, create_session_factory, init_db
    from agent_runtime.storage.store import RuntimeStore

    console = get_console()
    try:
        db_path = _get_config(ctx).db_path
        if not os.path.exists(db_path):
            format_error(f"Database not found: {db_path}", console)
            raise SystemExit(1)
        engine = create_runtime_engine(db_path)
        try:
            init_db(engine)
            store = RuntimeStore.from_session(create_session_factory(engine)())
            try:
                yield store, console
            finally:
                store.close()
        finally:
            engine.dispose()
    except SystemExit:
        raise
    except Exception as e:
        format_error(str(e), console)
        raise SystemExit(1) from None


# Register subcommands after cli group is defined
from agent_runtime.cli.commands.health import health  # noqa: E402
from agent_runtime.cli.commands.ledger import offer, register  # noqa: E402
from agent_runtime.cli.commands.orders import orders  # noqa: E402
from agent_runtime.cli.commands.result import result  # noqa: E402
from agent_runtime.cli.commands.run import run  # noqa: E402
from agent_runtime.cli.commands.verify import verify  # noqa: E402

cli.add_command(run)
cli.add_command(register)
cli.add_command(offer)
cli.add_command(orders)
cli.add_command(health)
cli.add_command(verify)
cli.add_command(result)
