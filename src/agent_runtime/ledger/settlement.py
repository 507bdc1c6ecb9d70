"""Settlement client: every ledger write and read the agent performs.

Writes go through two separately retried steps, submission and receipt
waiting, so a receipt timeout never re-sends a transaction. Only transient
failures are retried (see :func:`is_transient`); anything else propagates
at once. Exhausted retries raise :class:`RetryExhaustedError`.
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

import httpx
import tenacity
from web3.exceptions import TimeExhausted

from agent_runtime.exceptions import BridgeNotConfiguredError, RetryExhaustedError
from agent_runtime.ledger.abi import BRIDGE, MARKETPLACE, ORDER_STATUS_CODES, REGISTRY
from agent_runtime.ledger.events import to_hex
from agent_runtime.ledger.gateway import LedgerGateway, TxReceipt

logger = logging.getLogger(__name__)

T = TypeVar("T")

LOCAL_CHAIN_ID = 1337
DEFAULT_ORDER_TTL = 3600
MAX_BACKOFF_SECONDS = 30.0

TRANSIENT_CODES = frozenset({"NETWORK_ERROR", "TIMEOUT", "SERVER_ERROR"})
_TRANSIENT_MESSAGE = re.compile(
    r"nonce|timeout|timed out|connection (?:reset|refused|aborted)|\b50[234]\b|server error",
    re.IGNORECASE,
)


def is_transient(exc: BaseException) -> bool:
    """True for failures worth retrying.

    Network and connection errors, timeouts, remote 5xx responses and nonce
    conflicts are transient. Reverts, bad arguments and auth failures are not.
    """
    if isinstance(
        exc, (ConnectionError, TimeoutError, asyncio.TimeoutError, httpx.TransportError, TimeExhausted)
    ):
        return True
    if getattr(exc, "code", None) in TRANSIENT_CODES:
        return True
    status = getattr(getattr(exc, "response", None), "status_code", None)
    if isinstance(status, int) and status >= 500:
        return True
    return bool(_TRANSIENT_MESSAGE.search(str(exc)))


def did_for(address: str) -> str:
    return f"did:ethr:{address}"


@dataclass
class SettlementReceipt:
    """Outcome of one ledger write.

    ``result_id`` is the id carried by the write's event (service, order,
    stream or withdrawal id) when the operation creates one.
    """

    operation: str
    tx_hash: str
    block_number: int
    confirmations: int
    event_args: dict[str, Any] = field(default_factory=dict)
    result_id: str | None = None


@dataclass
class AgentIdentity:
    address: str
    did: str
    metadata_uri: str
    reputation_score: int
    total_earned: int
    total_spent: int
    registered_at: int
    active: bool


@dataclass
class ServiceInfo:
    service_id: str
    agent: str
    service_type: str
    price_per_unit: int
    metadata_uri: str
    active: bool


@dataclass
class LedgerOrder:
    order_id: str
    service_id: str
    buyer: str
    seller: str
    units: int
    total_price: int
    created_at: int
    deadline: int
    status: str
    result_uri: str


class SettlementClient:
    """Retrying wrapper over a :class:`LedgerGateway`.

    Args:
        gateway: Ledger access.
        chain_id: Configured chain id; None or 0 means look it up once.
        max_retries: Retries after the first attempt of each step.
        backoff_base: First retry delay in seconds; doubles per retry,
            capped at 30 seconds.
        sleep: Awaitable used between attempts (tests pass a recorder).
    """

    def __init__(
        self,
        gateway: LedgerGateway,
        *,
        chain_id: int | None = None,
        max_retries: int = 3,
        backoff_base: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._gateway = gateway
        self._chain_id = chain_id or None
        self._max_retries = max_retries
        self._backoff_base = backoff_base
        self._sleep = sleep
        self._confirmations: int | None = None

    @property
    def address(self) -> str:
        return self._gateway.address

    @property
    def did(self) -> str:
        return did_for(self.address)

    @property
    def gateway(self) -> LedgerGateway:
        return self._gateway

    # ------------------------------------------------------------------
    # Retry and confirmation policy
    # ------------------------------------------------------------------

    async def _retry(self, operation: str, fn: Callable[..., Awaitable[T]], *args: Any) -> T:
        attempts = self._max_retries + 1
        retryer = tenacity.AsyncRetrying(
            retry=tenacity.retry_if_exception(is_transient),
            wait=tenacity.wait_exponential(
                multiplier=self._backoff_base, exp_base=2, max=MAX_BACKOFF_SECONDS
            ),
            stop=tenacity.stop_after_attempt(attempts),
            sleep=self._sleep,
            before_sleep=tenacity.before_sleep_log(logger, logging.WARNING),
            reraise=False,
        )
        try:
            return await retryer(fn, *args)
        except tenacity.RetryError as exc:
            last = exc.last_attempt.exception()
            raise RetryExhaustedError(operation, attempts, last) from last

    async def confirmations(self) -> int:
        """Blocks to wait for: 0 on the local dev chain (1337), else 1."""
        if self._confirmations is None:
            chain_id = self._chain_id
            if chain_id is None:
                chain_id = await self._retry("chain_id", self._gateway.chain_id)
            self._confirmations = 0 if chain_id == LOCAL_CHAIN_ID else 1
        return self._confirmations

    async def _transact(
        self,
        operation: str,
        contract: str,
        function: str,
        args: list[Any],
        *,
        value: int = 0,
        event: str | None = None,
        id_field: str | None = None,
    ) -> SettlementReceipt:
        tx_hash = await self._retry(
            f"{operation} (submit)", self._gateway.submit, contract, function, args, value
        )
        confirmations = await self.confirmations()
        receipt = await self._retry(
            f"{operation} (receipt)", self._gateway.wait_for_receipt, tx_hash, confirmations
        )
        event_args = self._find_event(contract, event, receipt) if event else {}
        result_id = None
        if id_field is not None:
            result_id = str(event_args.get(id_field) or "0x00")
        logger.info("%s tx=%s args=%s", operation, receipt.tx_hash or tx_hash, event_args)
        return SettlementReceipt(
            operation=operation,
            tx_hash=receipt.tx_hash or tx_hash,
            block_number=receipt.block_number,
            confirmations=confirmations,
            event_args=event_args,
            result_id=result_id,
        )

    def _find_event(self, contract: str, event: str, receipt: TxReceipt) -> dict[str, Any]:
        for log in receipt.logs:
            args = self._gateway.decode_log(contract, event, log)
            if args is not None:
                return args
        logger.warning("No %s event in receipt %s", event, receipt.tx_hash)
        return {}

    # ------------------------------------------------------------------
    # Identity and capabilities
    # ------------------------------------------------------------------

    async def register_identity(self, metadata_uri: str) -> SettlementReceipt:
        receipt = await self._transact(
            "register_identity", REGISTRY, "registerAgent",
            [self.address, self.did, metadata_uri],
        )
        logger.info("Agent registered: %s (%s)", self.address, self.did)
        return receipt

    async def update_metadata(self, metadata_uri: str) -> SettlementReceipt:
        return await self._transact(
            "update_metadata", REGISTRY, "updateAgent", [self.address, metadata_uri]
        )

    async def list_capability(
        self, service_type: str, price_per_unit: int, metadata_uri: str
    ) -> SettlementReceipt:
        """Register a service; ``result_id`` is the new service id."""
        return await self._transact(
            "list_capability", REGISTRY, "registerService",
            [self.address, service_type, price_per_unit, metadata_uri],
            event="ServiceRegistered", id_field="serviceId",
        )

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    async def create_order(
        self, service_id: str, units: int, ttl_seconds: int = DEFAULT_ORDER_TTL
    ) -> SettlementReceipt:
        """Buy *units* of a service, paying price per unit times units."""
        service = await self.get_service(service_id)
        deadline = int(time.time()) + ttl_seconds
        return await self._transact(
            "create_order", MARKETPLACE, "createOrder", [service_id, units, deadline],
            value=service.price_per_unit * units,
            event="OrderCreated", id_field="orderId",
        )

    async def complete_order(
        self, order_id: str, result_uri: str, result_hash: bytes
    ) -> SettlementReceipt:
        return await self._transact(
            "complete_order", MARKETPLACE, "completeOrder", [order_id, result_uri, result_hash]
        )

    async def dispute_order(self, order_id: str, reason: str) -> SettlementReceipt:
        return await self._transact("dispute_order", MARKETPLACE, "disputeOrder", [order_id, reason])

    async def resolve_dispute(self, order_id: str, refund_buyer: bool) -> SettlementReceipt:
        return await self._transact(
            "resolve_dispute", MARKETPLACE, "resolveDispute", [order_id, refund_buyer]
        )

    async def cancel_order(self, order_id: str) -> SettlementReceipt:
        return await self._transact("cancel_order", MARKETPLACE, "cancelOrder", [order_id])

    # ------------------------------------------------------------------
    # Streams
    # ------------------------------------------------------------------

    async def open_stream(self, payee: str, rate_per_second: int, deposit: int) -> SettlementReceipt:
        return await self._transact(
            "open_stream", MARKETPLACE, "startStream", [payee, rate_per_second],
            value=deposit, event="StreamStarted", id_field="streamId",
        )

    async def claim_stream(self, stream_id: str) -> SettlementReceipt:
        return await self._transact("claim_stream", MARKETPLACE, "claimStream", [stream_id])

    async def stop_stream(self, stream_id: str) -> SettlementReceipt:
        return await self._transact("stop_stream", MARKETPLACE, "stopStream", [stream_id])

    # ------------------------------------------------------------------
    # Bridge
    # ------------------------------------------------------------------

    def _require_bridge(self) -> None:
        if not self._gateway.has_contract(BRIDGE):
            raise BridgeNotConfiguredError()

    async def bridge_balance(self) -> int:
        self._require_bridge()
        return int(await self._retry("bridge_balance", self._gateway.call, BRIDGE, "balanceOf", [self.address]))

    async def initiate_withdrawal(self, l1_address: str, amount: int) -> SettlementReceipt:
        """Start an L2 to L1 withdrawal; ``result_id`` is the withdrawal id."""
        self._require_bridge()
        receipt = await self._transact(
            "initiate_withdrawal", BRIDGE, "initiateWithdrawal", [l1_address, amount],
            event="WithdrawalInitiated", id_field="withdrawalId",
        )
        if receipt.result_id == "0x00":
            receipt.result_id = "0x"
        return receipt

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def _read(self, contract: str, function: str, *args: Any) -> Any:
        return await self._retry(function, self._gateway.call, contract, function, list(args))

    async def get_identity(self, address: str | None = None) -> AgentIdentity:
        address = address or self.address
        row = await self._read(REGISTRY, "agents", address)
        return AgentIdentity(
            address=address,
            did=row[1],
            metadata_uri=row[2],
            reputation_score=int(row[3]),
            total_earned=int(row[4]),
            total_spent=int(row[5]),
            registered_at=int(row[6]),
            active=bool(row[7]),
        )

    async def get_service(self, service_id: str) -> ServiceInfo:
        row = await self._read(REGISTRY, "services", service_id)
        return ServiceInfo(
            service_id=to_hex(service_id),
            agent=row[0],
            service_type=row[1],
            price_per_unit=int(row[2]),
            metadata_uri=row[3],
            active=bool(row[4]),
        )

    async def get_services(self, address: str | None = None) -> list[ServiceInfo]:
        ids = await self._read(REGISTRY, "getAgentServices", address or self.address)
        return [await self.get_service(to_hex(service_id)) for service_id in ids]

    async def get_order(self, order_id: str) -> LedgerOrder:
        row = await self._read(MARKETPLACE, "orders", order_id)
        status_code = int(row[7])
        status = (
            ORDER_STATUS_CODES[status_code]
            if status_code < len(ORDER_STATUS_CODES)
            else str(status_code)
        )
        return LedgerOrder(
            order_id=to_hex(order_id),
            service_id=to_hex(row[0]),
            buyer=row[1],
            seller=row[2],
            units=int(row[3]),
            total_price=int(row[4]),
            created_at=int(row[5]),
            deadline=int(row[6]),
            status=status,
            result_uri=row[8],
        )

    async def get_orders(self, address: str | None = None) -> list[LedgerOrder]:
        ids = await self._read(MARKETPLACE, "getAgentOrders", address or self.address)
        return [await self.get_order(to_hex(order_id)) for order_id in ids]

    async def is_active_agent(self, address: str | None = None) -> bool:
        return bool(await self._read(REGISTRY, "isActiveAgent", address or self.address))
