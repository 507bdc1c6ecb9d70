"""Typed marketplace events consumed by the ingestor."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union


def to_hex(value: Any) -> str:
    """Render bytes-like ledger values as ``0x`` hex; pass strings through."""
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    if hasattr(value, "hex") and not isinstance(value, str):
        text = value.hex()
        return text if text.startswith("0x") else "0x" + text
    return str(value)


@dataclass(frozen=True)
class OrderCreatedEvent:
    order_id: str
    service_id: str
    buyer: str
    seller: str
    total_price: int
    input_hash: str
    tx_hash: str = ""
    block_number: int = 0
    log_index: int = 0


@dataclass(frozen=True)
class OrderCompletedEvent:
    order_id: str
    result_uri: str
    result_hash: str
    tx_hash: str = ""
    block_number: int = 0
    log_index: int = 0


@dataclass(frozen=True)
class OrderCancelledEvent:
    order_id: str
    tx_hash: str = ""
    block_number: int = 0
    log_index: int = 0


LedgerEvent = Union[OrderCreatedEvent, OrderCompletedEvent, OrderCancelledEvent]

ORDER_EVENT_NAMES = ("OrderCreated", "OrderCompleted", "OrderCancelled")


def event_from_args(
    name: str,
    args: dict[str, Any],
    *,
    tx_hash: str = "",
    block_number: int = 0,
    log_index: int = 0,
) -> LedgerEvent:
    """Build the typed event for a decoded marketplace log.

    Raises:
        ValueError: If *name* is not an order event.
    """
    location = {"tx_hash": tx_hash, "block_number": block_number, "log_index": log_index}
    if name == "OrderCreated":
        return OrderCreatedEvent(
            order_id=to_hex(args["orderId"]),
            service_id=to_hex(args["serviceId"]),
            buyer=str(args["buyer"]),
            seller=str(args["seller"]),
            total_price=int(args["totalPrice"]),
            input_hash=to_hex(args.get("inputHash", b"")),
            **location,
        )
    if name == "OrderCompleted":
        return OrderCompletedEvent(
            order_id=to_hex(args["orderId"]),
            result_uri=str(args["resultURI"]),
            result_hash=to_hex(args.get("resultHash", b"")),
            **location,
        )
    if name == "OrderCancelled":
        return OrderCancelledEvent(order_id=to_hex(args["orderId"]), **location)
    raise ValueError(f"Not an order event: {name}")


def event_order(event: LedgerEvent) -> tuple[int, int]:
    """Sort key placing events in ledger order."""
    return (event.block_number, event.log_index)
