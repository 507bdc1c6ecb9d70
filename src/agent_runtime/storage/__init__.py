"""Local persistence for orders, capabilities, audit entries and runtime metadata."""

from agent_runtime.storage.engine import (
    SCHEMA_VERSION,
    create_runtime_engine,
    create_session_factory,
    init_db,
)
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
from agent_runtime.storage.store import RuntimeStore

__all__ = [
    "SCHEMA_VERSION",
    "create_runtime_engine",
    "create_session_factory",
    "init_db",
    "RuntimeStore",
    "OrderRepository",
    "CapabilityRepository",
    "AuditLogRepository",
    "MetaRepository",
    "SqliteOrderRepository",
    "SqliteCapabilityRepository",
    "SqliteAuditLogRepository",
    "SqliteMetaRepository",
]
