"""Shared test fixtures for the agent runtime.

Provides in-memory SQLite engine, session and store fixtures, a signing
key, and a scripted in-memory ledger gateway.
"""

from __future__ import annotations

from typing import Any, Sequence

import pytest
from sqlalchemy.orm import sessionmaker

from agent_runtime.ledger.events import LedgerEvent
from agent_runtime.ledger.gateway import TxReceipt
from agent_runtime.models.order import Order
from agent_runtime.proof import ProofEngine
from agent_runtime.results.memory import MemoryResultStore
from agent_runtime.storage.engine import create_runtime_engine, init_db
from agent_runtime.storage.store import RuntimeStore

# Well-known development key (first account of a local hardhat/anvil node).
SIGNER_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
SIGNER_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"

OTHER_ADDRESS = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"


@pytest.fixture
def engine():
    """In-memory SQLite engine with all tables created."""
    eng = create_runtime_engine(":memory:")
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session(engine):
    """Session with automatic rollback after each test."""
    SessionLocal = sessionmaker(bind=engine, expire_on_commit=False)
    sess = SessionLocal()
    yield sess
    sess.rollback()
    sess.close()


@pytest.fixture
def store(session) -> RuntimeStore:
    return RuntimeStore.from_session(session)


@pytest.fixture
def proof_engine() -> ProofEngine:
    return ProofEngine(SIGNER_KEY)


@pytest.fixture
def memory_store() -> MemoryResultStore:
    return MemoryResultStore()


@pytest.fixture
def ledger() -> "FakeLedgerGateway":
    return FakeLedgerGateway()


# ------------------------------------------------------------------
# Shared test helpers
# ------------------------------------------------------------------


def order_id(n: int) -> str:
    """Deterministic bytes32 order id."""
    return "0x" + f"{n:064x}"


def make_order(n: int = 1, **overrides: Any) -> Order:
    fields: dict[str, Any] = {
        "order_id": order_id(n),
        "service_id": "0x" + "aa" * 32,
        "buyer": OTHER_ADDRESS,
        "seller": SIGNER_ADDRESS,
        "total_price": 10**18,
        "service_type": "sentiment-analysis",
        "payload": {"text": "I love this product"},
    }
    fields.update(overrides)
    return Order(**fields)


class FakeLedgerGateway:
    """Scripted LedgerGateway.

    ``submit_errors`` / ``receipt_errors`` / ``call_errors`` are raised, in
    order, before the corresponding operation succeeds. ``receipt_logs``
    maps a contract function to the logs its receipt carries; logs are
    ``{"event": name, "args": {...}}`` dicts.
    """

    def __init__(
        self,
        *,
        address: str = SIGNER_ADDRESS,
        chain_id: int = 1337,
        contracts: Sequence[str] = ("registry", "marketplace"),
    ) -> None:
        self._address = address
        self._chain_id = chain_id
        self.contracts = set(contracts)
        self.head = 100
        self.submissions: list[tuple[str, str, list[Any], int]] = []
        self.receipt_requests: list[tuple[str, int]] = []
        self.calls: list[tuple[str, str, list[Any]]] = []
        self.chain_id_lookups = 0
        self.submit_errors: list[BaseException] = []
        self.receipt_errors: list[BaseException] = []
        self.call_errors: list[BaseException] = []
        self.receipt_logs: dict[str, list[Any]] = {}
        self.call_results: dict[tuple[str, str], Any] = {}
        self.events: list[LedgerEvent] = []
        self._tx_functions: dict[str, str] = {}

    @property
    def address(self) -> str:
        return self._address

    def has_contract(self, contract: str) -> bool:
        return contract in self.contracts

    async def chain_id(self) -> int:
        self.chain_id_lookups += 1
        return self._chain_id

    async def block_number(self) -> int:
        return self.head

    async def submit(self, contract: str, function: str, args: Sequence[Any], value: int = 0) -> str:
        if self.submit_errors:
            raise self.submit_errors.pop(0)
        self.submissions.append((contract, function, list(args), value))
        tx_hash = "0x" + f"{len(self.submissions):064x}"
        self._tx_functions[tx_hash] = function
        return tx_hash

    async def wait_for_receipt(self, tx_hash: str, confirmations: int = 0) -> TxReceipt:
        self.receipt_requests.append((tx_hash, confirmations))
        if self.receipt_errors:
            raise self.receipt_errors.pop(0)
        function = self._tx_functions.get(tx_hash, "")
        return TxReceipt(
            tx_hash=tx_hash,
            block_number=self.head,
            logs=list(self.receipt_logs.get(function, [])),
        )

    async def call(self, contract: str, function: str, args: Sequence[Any]) -> Any:
        self.calls.append((contract, function, list(args)))
        if self.call_errors:
            raise self.call_errors.pop(0)
        result = self.call_results[(contract, function)]
        return result(*args) if callable(result) else result

    def decode_log(self, contract: str, event: str, log: Any) -> dict[str, Any] | None:
        if isinstance(log, dict) and log.get("event") == event:
            return dict(log["args"])
        return None

    async def get_order_events(self, from_block: int, to_block: int) -> list[LedgerEvent]:
        return [e for e in self.events if from_block <= e.block_number <= to_block]

    def functions(self) -> list[str]:
        """Names of submitted functions, in order."""
        return [function for _, function, _, _ in self.submissions]
