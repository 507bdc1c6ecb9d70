"""agent-runtime orders -- list locally recorded orders."""

from __future__ import annotations

import click

from agent_runtime.cli.formatting import format_orders

_STATUSES = ("pending", "completed", "cancelled", "disputed")


@click.command()
@click.option(
    "--status",
    "status_filter",
    default=None,
    type=click.Choice(_STATUSES, case_sensitive=False),
    help="Only show orders in this state.",
)
@click.pass_context
def orders(ctx: click.Context, status_filter: str | None) -> None:
    """List orders from the runtime database, oldest first."""
    from agent_runtime.cli import _store_session
    from agent_runtime.models.order import OrderStatus

    with _store_session(ctx) as (store, console):
        status = OrderStatus(status_filter.lower()) if status_filter else None
        format_orders(store.orders.list_by_status(status), console)
