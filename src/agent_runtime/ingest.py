"""Ledger event ingestion.

OrderIngestor turns marketplace events into local order records. Creation
is idempotent: an order id already in the database is ignored, so
redelivered or re-organized events never produce a second record or a
second dispatch.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from typing import Any, Protocol
from urllib.parse import unquote

import httpx
from web3.exceptions import Web3Exception

from agent_runtime.exceptions import AgentRuntimeError
from agent_runtime.ledger.events import (
    LedgerEvent,
    OrderCancelledEvent,
    OrderCompletedEvent,
    OrderCreatedEvent,
    event_order,
)
from agent_runtime.ledger.gateway import LedgerGateway
from agent_runtime.ledger.settlement import LedgerOrder, SettlementClient
from agent_runtime.models.order import Order, OrderStatus
from agent_runtime.results.ipfs import DEFAULT_GATEWAY
from agent_runtime.storage.schema import CapabilityRow
from agent_runtime.storage.store import RuntimeStore

logger = logging.getLogger(__name__)

LAST_BLOCK_KEY = "last_processed_block"
DATA_JSON_PREFIX = "data:application/json,"

# Failures of optional ledger lookups; ingestion continues without the data.
_LOOKUP_ERRORS = (AgentRuntimeError, Web3Exception, OSError, ValueError)


class PayloadResolver(Protocol):
    async def resolve(self, locator: str | None) -> dict[str, Any]:
        ...


class MetadataPayloadResolver:
    """Fetch the JSON document behind a metadata locator.

    Supports ``ipfs://`` (through a gateway), ``http(s)://`` and inline
    ``data:application/json,`` locators. Anything that cannot be fetched
    or parsed as a JSON object resolves to ``{}``.
    """

    def __init__(
        self,
        ipfs_gateway: str = DEFAULT_GATEWAY,
        *,
        timeout: float = 10.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._gateway = ipfs_gateway.rstrip("/")
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    async def resolve(self, locator: str | None) -> dict[str, Any]:
        if not locator:
            return {}
        try:
            if locator.startswith(DATA_JSON_PREFIX):
                document = json.loads(unquote(locator[len(DATA_JSON_PREFIX):]))
            elif locator.startswith("ipfs://"):
                document = await self._get_json(f"{self._gateway}/ipfs/{locator[len('ipfs://'):]}")
            elif locator.startswith(("http://", "https://")):
                document = await self._get_json(locator)
            else:
                logger.warning("Unsupported metadata locator: %s", locator)
                return {}
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Could not resolve payload from %s: %s", locator, exc)
            return {}
        return document if isinstance(document, dict) else {}

    async def _get_json(self, url: str) -> Any:
        response = await self._client.get(url)
        response.raise_for_status()
        return response.json()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


class OrderIngestor:
    """Consumes order events and keeps the local order table in step.

    Args:
        store: Repositories over the runtime database.
        enqueue: Called with each newly created order.
        gateway: Event source for :meth:`poll_once`.
        settlement: Optional ledger reads for capability and order details.
        resolver: Optional payload resolver for a capability's metadata.
        seller_address: When set, events for other sellers are ignored.
        start_block: First block to scan on a fresh database. When None the
            scan starts at the current head.
    """

    def __init__(
        self,
        store: RuntimeStore,
        enqueue: Callable[[Order], Any],
        *,
        gateway: LedgerGateway | None = None,
        settlement: SettlementClient | None = None,
        resolver: PayloadResolver | None = None,
        seller_address: str | None = None,
        poll_interval_ms: int = 5000,
        start_block: int | None = None,
    ) -> None:
        self._store = store
        self._enqueue = enqueue
        self._gateway = gateway
        self._settlement = settlement
        self._resolver = resolver
        self._seller = seller_address.lower() if seller_address else None
        self._poll_interval = poll_interval_ms / 1000
        self._start_block = start_block
        self._last_seen_block: int | None = None

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    async def handle_order_created(self, event: OrderCreatedEvent) -> Order | None:
        """Record and enqueue a new order; None when ignored or already known."""
        if self._seller and event.seller.lower() != self._seller:
            logger.debug("Ignoring order %s for seller %s", event.order_id, event.seller)
            return None
        if self._store.orders.exists(event.order_id):
            logger.info("Order %s already known, skipping", event.order_id)
            return None

        capability = await self._resolve_capability(event.service_id)
        details = await self._fetch_details(event.order_id)
        payload: dict[str, Any] = {}
        if self._resolver is not None and capability is not None:
            payload = await self._resolver.resolve(capability.metadata_uri)

        # No awaits from here on: check, insert, audit, commit and enqueue
        # happen as one step.
        if self._store.orders.exists(event.order_id):
            logger.info("Order %s recorded concurrently, skipping", event.order_id)
            return None
        order = Order(
            order_id=event.order_id,
            service_id=event.service_id,
            buyer=event.buyer,
            seller=event.seller,
            total_price=event.total_price,
            input_hash=event.input_hash,
            status=OrderStatus.PENDING,
            service_type=capability.service_type if capability else None,
            units=details.units if details else None,
            deadline=details.deadline if details else None,
            payload=payload,
        )
        self._store.orders.add(order)
        self._store.audit.append(
            order.order_id,
            "info",
            "Order received from ledger",
            {"txHash": event.tx_hash, "block": event.block_number},
        )
        self._store.commit()
        self._enqueue(order)
        logger.info("Order %s recorded (%s)", order.order_id, order.service_type or "unknown type")
        return order

    async def handle_order_completed(self, event: OrderCompletedEvent) -> Order | None:
        order = self._store.orders.get(event.order_id)
        if order is None or order.status not in (OrderStatus.PENDING, OrderStatus.DISPUTED):
            return None
        updated = self._store.orders.transition(
            event.order_id,
            OrderStatus.COMPLETED,
            result_uri=event.result_uri,
            result_hash=event.result_hash,
        )
        self._store.audit.append(
            event.order_id, "info", "Order completed on ledger",
            {"txHash": event.tx_hash, "resultURI": event.result_uri},
        )
        self._store.commit()
        return updated

    async def handle_order_cancelled(self, event: OrderCancelledEvent) -> Order | None:
        order = self._store.orders.get(event.order_id)
        if order is None or order.status is not OrderStatus.PENDING:
            return None
        updated = self._store.orders.transition(event.order_id, OrderStatus.CANCELLED)
        self._store.audit.append(
            event.order_id, "info", "Order cancelled on ledger", {"txHash": event.tx_hash}
        )
        self._store.commit()
        logger.info("Order %s marked as cancelled", event.order_id)
        return updated

    async def dispatch(self, event: LedgerEvent) -> Order | None:
        if isinstance(event, OrderCreatedEvent):
            return await self.handle_order_created(event)
        if isinstance(event, OrderCompletedEvent):
            return await self.handle_order_completed(event)
        if isinstance(event, OrderCancelledEvent):
            return await self.handle_order_cancelled(event)
        raise TypeError(f"Unsupported ledger event: {event!r}")

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def _resolve_capability(self, service_id: str) -> CapabilityRow | None:
        capability = self._store.capabilities.get(service_id)
        if capability is not None or self._settlement is None:
            return capability
        try:
            service = await self._settlement.get_service(service_id)
        except _LOOKUP_ERRORS as exc:
            logger.warning("Service lookup failed for %s: %s", service_id, exc)
            return None
        if not service.service_type:
            return None
        capability = self._store.capabilities.save(
            service_id, service.service_type, service.price_per_unit, service.metadata_uri or None
        )
        self._store.commit()
        return capability

    async def _fetch_details(self, order_id: str) -> LedgerOrder | None:
        if self._settlement is None:
            return None
        try:
            return await self._settlement.get_order(order_id)
        except _LOOKUP_ERRORS as exc:
            logger.warning("Order lookup failed for %s: %s", order_id, exc)
            return None

    # ------------------------------------------------------------------
    # Subscription loop
    # ------------------------------------------------------------------

    def check_liveness(self, block: int) -> bool:
        """Compare *block* with the previous observation; False when stalled."""
        previous = self._last_seen_block
        self._last_seen_block = block
        if previous is not None and block <= previous:
            logger.warning("Ledger head has not advanced past block %d", block)
            return False
        if previous is not None:
            logger.debug("Block sync: %d -> %d (+%d)", previous, block, block - previous)
        return True

    @property
    def last_processed_block(self) -> int | None:
        value = self._store.meta.get(LAST_BLOCK_KEY)
        return int(value) if value is not None else None

    def _set_last_processed_block(self, block: int) -> None:
        self._store.meta.set(LAST_BLOCK_KEY, str(block))
        self._store.commit()

    async def poll_once(self) -> int:
        """Process events since the last processed block. Returns the event count."""
        if self._gateway is None:
            raise AgentRuntimeError("OrderIngestor has no ledger gateway to poll")
        latest = await self._gateway.block_number()
        last = self.last_processed_block
        if last is None:
            if self._start_block is None:
                logger.info("Starting from block %d", latest)
                self._set_last_processed_block(latest)
                self.check_liveness(latest)
                return 0
            last = self._start_block - 1

        if latest <= last:
            self.check_liveness(latest)
            return 0

        events = await self._gateway.get_order_events(last + 1, latest)
        for event in sorted(events, key=event_order):
            try:
                await self.dispatch(event)
            except Exception:
                self._store.rollback()
                logger.exception("Failed to process %s for order %s", type(event).__name__, event.order_id)
        self._set_last_processed_block(latest)
        self.check_liveness(latest)
        return len(events)

    async def run(self, stop: asyncio.Event) -> None:
        """Poll until *stop* is set. Poll failures are logged and retried next interval."""
        while not stop.is_set():
            try:
                await self.poll_once()
            except Exception:
                logger.exception("Ledger poll failed")
            try:
                await asyncio.wait_for(stop.wait(), timeout=self._poll_interval)
            except asyncio.TimeoutError:
                pass
