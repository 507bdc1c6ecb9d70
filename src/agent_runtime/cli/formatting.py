"""Rich formatting helpers for the agent-runtime CLI.

Rich auto-detects TTY and degrades gracefully when piped (no ANSI codes).
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any, Sequence

from rich.console import Console
from rich.markup import escape
from rich.table import Table

if TYPE_CHECKING:
    from agent_runtime.ledger.settlement import SettlementReceipt
    from agent_runtime.models.order import Order
    from agent_runtime.models.proof import VerificationResult
    from agent_runtime.orchestrator.events import RuntimeEvent

_STATUS_STYLES = {
    "pending": "yellow",
    "completed": "green",
    "cancelled": "dim",
    "disputed": "red",
}


def get_console() -> Console:
    """Create a Rich Console that auto-detects TTY for graceful pipe degradation."""
    return Console(stderr=False)


def format_error(message: str, console: Console) -> None:
    """Display an error message."""
    console.print(f"[red]Error:[/red] {escape(message)}", highlight=False)


def format_orders(orders: Sequence[Order], console: Console) -> None:
    """Display orders as a compact table."""
    if not orders:
        console.print("[dim]No orders.[/dim]")
        return

    table = Table(show_header=True, header_style="bold", box=None, pad_edge=False)
    table.add_column("Order", style="yellow")
    table.add_column("Status")
    table.add_column("Service")
    table.add_column("Price (wei)", justify="right", style="green")
    table.add_column("Created", style="dim")
    table.add_column("Result")

    for order in orders:
        style = _STATUS_STYLES.get(order.status.value, "")
        table.add_row(
            order.order_id[:10],
            f"[{style}]{order.status.value}[/{style}]" if style else order.status.value,
            escape(order.service_type or "?"),
            str(order.total_price),
            order.created_at.strftime("%Y-%m-%d %H:%M"),
            escape(order.result_uri or ""),
        )

    console.print(table)


def format_health(health: dict[str, bool], console: Console, block: int | None = None) -> None:
    """Display executor health, and the ledger head when known."""
    if block is not None:
        console.print(f"Ledger head: [cyan]{block}[/cyan]")
    if not health:
        console.print("[dim]No executors configured.[/dim]")
        return
    for executor_id, healthy in health.items():
        mark = "[green]ok[/green]" if healthy else "[red]unhealthy[/red]"
        console.print(f"  {escape(executor_id):<24} {mark}")


def format_receipt(receipt: SettlementReceipt, console: Console) -> None:
    """Display the outcome of a ledger write."""
    console.print(f"[green]{receipt.operation}[/green] confirmed")
    console.print(f"  Tx:     [yellow]{receipt.tx_hash}[/yellow]")
    console.print(f"  Block:  {receipt.block_number}")
    if receipt.result_id:
        console.print(f"  Id:     [cyan]{receipt.result_id}[/cyan]")


def format_verification(result: VerificationResult, console: Console) -> None:
    """Display a proof verification result, listing every failed check."""
    if result.valid:
        console.print("[green]Proof valid[/green]")
        return
    console.print("[red]Proof invalid[/red]")
    for error in result.errors:
        console.print(f"  - {escape(error)}")


def format_json(document: Any, console: Console) -> None:
    """Pretty-print a JSON document."""
    console.print_json(json.dumps(document, default=str))


def format_event(event: RuntimeEvent, console: Console) -> None:
    """One-line rendering of a runtime event."""
    order = f" [yellow]{event.order_id[:10]}[/yellow]" if event.order_id else ""
    details = ", ".join(
        f"{key}={escape(str(value))}" for key, value in event.data.items() if key != "result"
    )
    console.print(f"[cyan]{event.type.value}[/cyan]{order} [dim]{details}[/dim]")
