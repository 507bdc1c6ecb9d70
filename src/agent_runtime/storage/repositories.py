"""Abstract repository interfaces for runtime storage.

Defines ABC interfaces for all database operations. No SQLAlchemy
imports here -- pure abstract contracts.

Concrete implementations are in sqlite.py.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from agent_runtime.models.order import Order, OrderStatus
    from agent_runtime.storage.schema import AuditLogRow, CapabilityRow


class OrderRepository(ABC):
    """Abstract interface for local order records."""

    @abstractmethod
    def get(self, order_id: str) -> Order | None:
        """Get an order by id. Returns None if not found."""
        ...

    @abstractmethod
    def exists(self, order_id: str) -> bool:
        ...

    @abstractmethod
    def add(self, order: Order) -> None:
        """Insert a new order. The caller commits."""
        ...

    @abstractmethod
    def transition(
        self,
        order_id: str,
        status: OrderStatus,
        *,
        result_uri: str | None = None,
        result_hash: str | None = None,
    ) -> Order:
        """Move an order to *status*.

        Raises:
            OrderNotFoundError: If the order is unknown.
            InvalidTransitionError: If the move is not allowed.
        """
        ...

    @abstractmethod
    def list_by_status(self, status: OrderStatus | None = None) -> Sequence[Order]:
        """Orders with *status* (all orders when None), oldest first."""
        ...

    @abstractmethod
    def count_by_status(self) -> dict[str, int]:
        ...

    @abstractmethod
    def attach_payload(self, order_id: str, payload: dict) -> None:
        ...

    @abstractmethod
    def record_settlement(self, order_id: str, result_uri: str, result_hash: str) -> None:
        """Remember the stored result of an order before it is settled."""
        ...


class CapabilityRepository(ABC):
    """Abstract interface for the services this agent offers."""

    @abstractmethod
    def get(self, service_id: str) -> CapabilityRow | None:
        ...

    @abstractmethod
    def save(
        self,
        service_id: str,
        service_type: str,
        price_per_unit: int,
        metadata_uri: str | None = None,
    ) -> CapabilityRow:
        """Insert or update a capability."""
        ...

    @abstractmethod
    def list(self) -> Sequence[CapabilityRow]:
        ...


class AuditLogRepository(ABC):
    """Abstract interface for the append-only audit trail."""

    @abstractmethod
    def append(
        self,
        order_id: str | None,
        level: str,
        message: str,
        data: dict | None = None,
    ) -> AuditLogRow:
        ...

    @abstractmethod
    def for_order(self, order_id: str) -> Sequence[AuditLogRow]:
        """Entries for one order, oldest first."""
        ...

    @abstractmethod
    def recent(self, limit: int = 50) -> Sequence[AuditLogRow]:
        """Most recent entries, newest first."""
        ...


class MetaRepository(ABC):
    """Abstract interface for runtime key-value metadata."""

    @abstractmethod
    def get(self, key: str) -> str | None:
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        ...
