"""SQLAlchemy ORM schema for the agent runtime's local database.

Defines all database tables: orders, capabilities, audit_log, runtime_meta.

OrderStatus is imported from the domain models; the ORM uses the same enum.
Wei amounts are stored as decimal strings because they can exceed 64 bits.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from agent_runtime.models.order import OrderStatus


class Base(DeclarativeBase):
    """Base class for all runtime ORM models."""

    pass


class OrderRow(Base):
    """A marketplace order addressed to this agent."""

    __tablename__ = "orders"

    order_id: Mapped[str] = mapped_column(String(66), primary_key=True)
    service_id: Mapped[str] = mapped_column(String(66), nullable=False)
    buyer: Mapped[str] = mapped_column(String(42), nullable=False)
    seller: Mapped[str] = mapped_column(String(42), nullable=False)
    total_price: Mapped[str] = mapped_column(String(78), nullable=False)
    input_hash: Mapped[str] = mapped_column(String(66), nullable=False, default="")
    status: Mapped[OrderStatus] = mapped_column(nullable=False, index=True)
    service_type: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    units: Mapped[Optional[str]] = mapped_column(String(78), nullable=True)
    deadline: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    payload_json: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    result_uri: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    result_hash: Mapped[Optional[str]] = mapped_column(String(66), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class CapabilityRow(Base):
    """A service this agent offers, keyed by its on-ledger service id."""

    __tablename__ = "capabilities"

    service_id: Mapped[str] = mapped_column(String(66), primary_key=True)
    service_type: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    price_per_unit: Mapped[str] = mapped_column(String(78), nullable=False)
    metadata_uri: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class AuditLogRow(Base):
    """Append-only record of what happened to an order."""

    __tablename__ = "audit_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[Optional[str]] = mapped_column(String(66), nullable=True)
    level: Mapped[str] = mapped_column(String(16), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    data_json: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (Index("ix_audit_log_order_created", "order_id", "created_at"),)


class RuntimeMetaRow(Base):
    """Key-value metadata for the runtime database (schema version, last block)."""

    __tablename__ = "runtime_meta"

    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
