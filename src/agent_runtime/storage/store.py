"""RuntimeStore: one session plus the repositories bound to it."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.orm import Session

from agent_runtime.storage.repositories import (
    AuditLogRepository,
    CapabilityRepository,
    MetaRepository,
    OrderRepository,
)
from agent_runtime.storage.sqlite import (
    SqliteAuditLogRepository,
    SqliteCapabilityRepository,
    SqliteMetaRepository,
    SqliteOrderRepository,
)


@dataclass
class RuntimeStore:
    """Repositories sharing a single session.

    Components flush through the repositories and call :meth:`commit` at
    the end of each logical step.
    """

    session: Session
    orders: OrderRepository
    capabilities: CapabilityRepository
    audit: AuditLogRepository
    meta: MetaRepository

    @classmethod
    def from_session(cls, session: Session) -> RuntimeStore:
        return cls(
            session=session,
            orders=SqliteOrderRepository(session),
            capabilities=SqliteCapabilityRepository(session),
            audit=SqliteAuditLogRepository(session),
            meta=SqliteMetaRepository(session),
        )

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()

    def close(self) -> None:
        self.session.close()
