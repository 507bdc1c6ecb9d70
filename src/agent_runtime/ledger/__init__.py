"""Ledger access: ABIs, typed events, the gateway and settlement."""

from agent_runtime.ledger.events import (
    LedgerEvent,
    OrderCancelledEvent,
    OrderCompletedEvent,
    OrderCreatedEvent,
    event_from_args,
)
from agent_runtime.ledger.gateway import LedgerGateway, TxReceipt, Web3Ledger
from agent_runtime.ledger.settlement import (
    AgentIdentity,
    LedgerOrder,
    ServiceInfo,
    SettlementClient,
    SettlementReceipt,
    did_for,
    is_transient,
)

__all__ = [
    "AgentIdentity",
    "LedgerEvent",
    "LedgerGateway",
    "LedgerOrder",
    "OrderCancelledEvent",
    "OrderCompletedEvent",
    "OrderCreatedEvent",
    "ServiceInfo",
    "SettlementClient",
    "SettlementReceipt",
    "TxReceipt",
    "Web3Ledger",
    "did_for",
    "event_from_args",
    "is_transient",
]
