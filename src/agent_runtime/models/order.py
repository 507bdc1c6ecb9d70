"""Order domain model.

Order is the local record of a marketplace order addressed to this agent.
OrderStatus is the lifecycle enum; transitions only move forward.
"""

from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field


class OrderStatus(str, enum.Enum):
    """Lifecycle states of an order."""

    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    DISPUTED = "disputed"

    def __str__(self) -> str:
        return self.value


# Allowed forward moves. Terminal states map to an empty set.
_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset(
        {OrderStatus.COMPLETED, OrderStatus.CANCELLED, OrderStatus.DISPUTED}
    ),
    OrderStatus.DISPUTED: frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED}),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}


def can_transition(current: OrderStatus, requested: OrderStatus) -> bool:
    """Return True if an order may move from *current* to *requested*."""
    return requested in _TRANSITIONS[current]


class Order(BaseModel):
    """SDK-facing order model.

    Not an ORM model -- the repository converts between this and OrderRow.
    ``total_price`` is in wei and may exceed 64 bits.
    """

    order_id: str
    service_id: str
    buyer: str
    seller: str
    total_price: int
    input_hash: str = ""
    status: OrderStatus = OrderStatus.PENDING
    service_type: Optional[str] = None
    units: Optional[int] = None
    deadline: Optional[int] = None  # unix seconds
    payload: dict = Field(default_factory=dict)
    result_uri: Optional[str] = None
    result_hash: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def can_transition(self, status: OrderStatus) -> bool:
        return can_transition(self.status, status)

    def is_expired(self, now_seconds: float) -> bool:
        """True once the on-ledger deadline has passed."""
        return self.deadline is not None and now_seconds > self.deadline

    def __str__(self) -> str:
        return f"{self.order_id[:10]}... [{self.status.value}] {self.service_type or '?'}"
