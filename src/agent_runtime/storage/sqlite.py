"""SQLite implementations of repository interfaces.

All repositories use SQLAlchemy 2.0-style queries (select() + session.execute()).
Each repository takes a Session in its constructor. Writes flush; the caller
decides when to commit.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Sequence

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from agent_runtime.exceptions import InvalidTransitionError, OrderNotFoundError
from agent_runtime.models.order import Order, OrderStatus, can_transition
from agent_runtime.storage.repositories import (
    AuditLogRepository,
    CapabilityRepository,
    MetaRepository,
    OrderRepository,
)
from agent_runtime.storage.schema import (
    AuditLogRow,
    CapabilityRow,
    OrderRow,
    RuntimeMetaRow,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _to_order(row: OrderRow) -> Order:
    return Order(
        order_id=row.order_id,
        service_id=row.service_id,
        buyer=row.buyer,
        seller=row.seller,
        total_price=int(row.total_price),
        input_hash=row.input_hash,
        status=row.status,
        service_type=row.service_type,
        units=int(row.units) if row.units is not None else None,
        deadline=row.deadline,
        payload=row.payload_json or {},
        result_uri=row.result_uri,
        result_hash=row.result_hash,
        created_at=row.created_at.replace(tzinfo=timezone.utc),
    )


class SqliteOrderRepository(OrderRepository):
    """SQLite implementation of the order repository.

    Status changes go through :meth:`transition`, which enforces the
    forward-only lifecycle.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def _get_row(self, order_id: str) -> OrderRow | None:
        stmt = select(OrderRow).where(OrderRow.order_id == order_id)
        return self._session.execute(stmt).scalar_one_or_none()

    def _require_row(self, order_id: str) -> OrderRow:
        row = self._get_row(order_id)
        if row is None:
            raise OrderNotFoundError(order_id)
        return row

    def get(self, order_id: str) -> Order | None:
        row = self._get_row(order_id)
        return _to_order(row) if row is not None else None

    def exists(self, order_id: str) -> bool:
        stmt = select(OrderRow.order_id).where(OrderRow.order_id == order_id)
        return self._session.execute(stmt).first() is not None

    def add(self, order: Order) -> None:
        now = _utcnow()
        self._session.add(
            OrderRow(
                order_id=order.order_id,
                service_id=order.service_id,
                buyer=order.buyer,
                seller=order.seller,
                total_price=str(order.total_price),
                input_hash=order.input_hash,
                status=order.status,
                service_type=order.service_type,
                units=str(order.units) if order.units is not None else None,
                deadline=order.deadline,
                payload_json=order.payload or None,
                result_uri=order.result_uri,
                result_hash=order.result_hash,
                created_at=order.created_at.astimezone(timezone.utc).replace(tzinfo=None),
                updated_at=now,
            )
        )
        self._session.flush()

    def transition(
        self,
        order_id: str,
        status: OrderStatus,
        *,
        result_uri: str | None = None,
        result_hash: str | None = None,
    ) -> Order:
        row = self._require_row(order_id)
        if not can_transition(row.status, status):
            raise InvalidTransitionError(order_id, row.status.value, status.value)
        row.status = status
        if result_uri is not None:
            row.result_uri = result_uri
        if result_hash is not None:
            row.result_hash = result_hash
        row.updated_at = _utcnow()
        self._session.flush()
        return _to_order(row)

    def list_by_status(self, status: OrderStatus | None = None) -> Sequence[Order]:
        stmt = select(OrderRow).order_by(OrderRow.created_at, OrderRow.order_id)
        if status is not None:
            stmt = stmt.where(OrderRow.status == status)
        return [_to_order(row) for row in self._session.execute(stmt).scalars().all()]

    def count_by_status(self) -> dict[str, int]:
        stmt = select(OrderRow.status, func.count()).group_by(OrderRow.status)
        counts = {status.value: 0 for status in OrderStatus}
        for status, count in self._session.execute(stmt).all():
            counts[status.value] = count
        return counts

    def attach_payload(self, order_id: str, payload: dict) -> None:
        row = self._require_row(order_id)
        row.payload_json = payload
        row.updated_at = _utcnow()
        self._session.flush()

    def record_settlement(self, order_id: str, result_uri: str, result_hash: str) -> None:
        row = self._require_row(order_id)
        row.result_uri = result_uri
        row.result_hash = result_hash
        row.updated_at = _utcnow()
        self._session.flush()


class SqliteCapabilityRepository(CapabilityRepository):
    """SQLite implementation of the capability repository."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def get(self, service_id: str) -> CapabilityRow | None:
        stmt = select(CapabilityRow).where(CapabilityRow.service_id == service_id)
        return self._session.execute(stmt).scalar_one_or_none()

    def save(
        self,
        service_id: str,
        service_type: str,
        price_per_unit: int,
        metadata_uri: str | None = None,
    ) -> CapabilityRow:
        row = self.get(service_id)
        if row is None:
            row = CapabilityRow(
                service_id=service_id,
                service_type=service_type,
                price_per_unit=str(price_per_unit),
                metadata_uri=metadata_uri,
                created_at=_utcnow(),
            )
            self._session.add(row)
        else:
            row.service_type = service_type
            row.price_per_unit = str(price_per_unit)
            row.metadata_uri = metadata_uri
        self._session.flush()
        return row

    def list(self) -> Sequence[CapabilityRow]:
        stmt = select(CapabilityRow).order_by(CapabilityRow.created_at)
        return list(self._session.execute(stmt).scalars().all())


class SqliteAuditLogRepository(AuditLogRepository):
    """SQLite implementation of the audit log repository."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def append(
        self,
        order_id: str | None,
        level: str,
        message: str,
        data: dict | None = None,
    ) -> AuditLogRow:
        row = AuditLogRow(
            order_id=order_id,
            level=level,
            message=message,
            data_json=data,
            created_at=_utcnow(),
        )
        self._session.add(row)
        self._session.flush()
        return row

    def for_order(self, order_id: str) -> Sequence[AuditLogRow]:
        stmt = (
            select(AuditLogRow)
            .where(AuditLogRow.order_id == order_id)
            .order_by(AuditLogRow.id)
        )
        return list(self._session.execute(stmt).scalars().all())

    def recent(self, limit: int = 50) -> Sequence[AuditLogRow]:
        stmt = select(AuditLogRow).order_by(AuditLogRow.id.desc()).limit(limit)
        return list(self._session.execute(stmt).scalars().all())


class SqliteMetaRepository(MetaRepository):
    """SQLite implementation of the runtime metadata repository."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def get(self, key: str) -> str | None:
        row = self._session.get(RuntimeMetaRow, key)
        return row.value if row is not None else None

    def set(self, key: str, value: str) -> None:
        row = self._session.get(RuntimeMetaRow, key)
        if row is None:
            self._session.add(RuntimeMetaRow(key=key, value=value))
        else:
            row.value = value
        self._session.flush()
