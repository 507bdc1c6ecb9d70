"""Worker loop: dispatch pending orders to executors and settle results.

Orders arrive on an ``asyncio.Queue`` by id. An ``asyncio.Semaphore``
bounds concurrent executions; an order already queued or in flight is
never dispatched twice. For each order the loop executes, proves, stores
and (with auto-complete) settles, in that order. A failure at any step
leaves the order pending locally.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable

from agent_runtime.executors.base import failed_result, now_ms
from agent_runtime.executors.registry import ExecutorRegistry
from agent_runtime.ledger.settlement import SettlementClient
from agent_runtime.models.order import Order, OrderStatus
from agent_runtime.models.task import ResultRecord, TaskInput, TaskResult
from agent_runtime.orchestrator.events import EventBus, RuntimeEventType
from agent_runtime.proof import ProofEngine
from agent_runtime.results.base import ResultStore
from agent_runtime.storage.store import RuntimeStore

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENT = 5


class WorkerLoop:
    """Bounded-concurrency executor of queued orders.

    Args:
        store: Repositories over the runtime database.
        registry: Executor routing.
        proof_engine: Signs proofs of work.
        result_store: Persists result records.
        settlement: Ledger client; None disables settlement.
        max_concurrent: Maximum executions in flight.
        auto_complete: Submit completion to the ledger after storage.
        events: Bus for runtime notifications.
        clock: Seconds since the epoch, used for deadline checks.
    """

    def __init__(
        self,
        store: RuntimeStore,
        registry: ExecutorRegistry,
        proof_engine: ProofEngine,
        result_store: ResultStore,
        settlement: SettlementClient | None = None,
        *,
        max_concurrent: int = DEFAULT_MAX_CONCURRENT,
        auto_complete: bool = True,
        events: EventBus | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._registry = registry
        self._proofs = proof_engine
        self._results = result_store
        self._settlement = settlement
        self._auto_complete = auto_complete
        self._events = events or EventBus()
        self._clock = clock
        self._queue: asyncio.Queue[str] = asyncio.Queue()
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._queued: set[str] = set()
        self._in_flight: set[str] = set()
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def in_flight(self) -> frozenset[str]:
        return frozenset(self._in_flight)

    @property
    def queued(self) -> int:
        return self._queue.qsize()

    def submit(self, order: Order) -> bool:
        """Queue *order* for execution. False if it is already queued or running."""
        order_id = order.order_id
        if order_id in self._queued or order_id in self._in_flight:
            logger.debug("Order %s already scheduled", order_id)
            return False
        self._queued.add(order_id)
        self._queue.put_nowait(order_id)
        self._events.emit(RuntimeEventType.ORDER_RECEIVED, order_id, service_type=order.service_type)
        return True

    def resubmit_pending(self) -> int:
        """Queue every local pending order that is not already scheduled.

        Orders past their deadline are left alone. Returns how many were queued.
        """
        now = self._clock()
        resubmitted = 0
        for order in self._store.orders.list_by_status(OrderStatus.PENDING):
            if order.is_expired(now):
                continue
            if self.submit(order):
                resubmitted += 1
        if resubmitted:
            logger.info("Re-queued %d pending order(s)", resubmitted)
        return resubmitted

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    def _audit(self, order_id: str, level: str, message: str, data: dict | None = None) -> None:
        self._store.audit.append(order_id, level, message, data)
        self._store.commit()

    async def process_order(self, order_id: str) -> TaskResult | None:
        """Run one order end to end. Returns None when the order was skipped.

        Raises:
            StorageError: The result could not be persisted; nothing was settled.
            RetryExhaustedError: Settlement kept failing transiently.
        """
        order = self._store.orders.get(order_id)
        if order is None or order.status is not OrderStatus.PENDING:
            logger.debug("Skipping order %s: not pending", order_id)
            return None
        if order.is_expired(self._clock()):
            logger.warning("Order %s passed its deadline before dispatch", order_id)
            self._audit(order_id, "warn", "Deadline passed before dispatch", {"deadline": order.deadline})
            return None

        service_type = order.service_type or ""
        executor = self._registry.find(service_type)
        if executor is None:
            logger.warning("No executor for service type %r (order %s)", service_type, order_id)
            self._audit(order_id, "error", "No executor for service type", {"serviceType": service_type})
            self._events.emit(
                RuntimeEventType.EXECUTION_FAILED, order_id,
                error=f"No executor for service type {service_type!r}",
            )
            return None

        task = TaskInput(
            order_id=order.order_id,
            service_type=service_type,
            payload=order.payload,
            total_price=order.total_price,
            start_time=now_ms(),
            service_id=order.service_id,
            buyer=order.buyer,
            units=order.units,
            deadline=order.deadline,
        )
        self._events.emit(RuntimeEventType.EXECUTION_STARTED, order_id, executor=executor.id)
        try:
            result = await executor.execute(task)
        except Exception as exc:
            logger.exception("Executor %s raised for order %s", executor.id, order_id)
            result = failed_result(executor, str(exc) or type(exc).__name__, task.start_time)

        if not result.success:
            self._audit(order_id, "error", "Execution failed", {"error": result.error, "executor": executor.id})
            self._events.emit(RuntimeEventType.EXECUTION_FAILED, order_id, error=result.error)
            return result

        output = result.output or {}
        proof = self._proofs.generate(result.proof_type, task.payload, output, result.evidence)
        record = ResultRecord(
            order_id=order_id,
            service_type=service_type,
            input=task.payload,
            output=output,
            proof=proof,
            metadata=result.metadata,
        )
        locator = await self._results.store(record.to_payload())
        result = result.model_copy(update={"proof": proof, "result_uri": locator})
        result_hash = result.result_hash_hex
        self._store.orders.record_settlement(order_id, locator, result_hash)
        self._audit(order_id, "info", "Result stored", {"resultURI": locator, "resultHash": result_hash})
        self._events.emit(RuntimeEventType.EXECUTION_COMPLETED, order_id, result=result)

        if self._auto_complete and self._settlement is not None:
            receipt = await self._settlement.complete_order(order_id, locator, result.result_hash)
            current = self._store.orders.get(order_id)
            if current is not None and current.can_transition(OrderStatus.COMPLETED):
                self._store.orders.transition(
                    order_id, OrderStatus.COMPLETED, result_uri=locator, result_hash=result_hash
                )
            self._audit(order_id, "info", "Order completed", {"txHash": receipt.tx_hash})
            self._events.emit(RuntimeEventType.ORDER_COMPLETED, order_id, tx_hash=receipt.tx_hash)
            logger.info("Order %s settled in tx %s", order_id, receipt.tx_hash)
        return result

    async def _run_one(self, order_id: str) -> None:
        try:
            await self.process_order(order_id)
        except Exception as exc:
            self._store.rollback()
            logger.exception("Order %s failed", order_id)
            self._audit(order_id, "error", "Processing failed", {"error": str(exc)})
            self._events.emit(RuntimeEventType.ERROR, order_id, error=str(exc))
        finally:
            self._in_flight.discard(order_id)
            self._semaphore.release()

    def _dispatch_next(self) -> None:
        order_id = self._queue.get_nowait()
        self._queued.discard(order_id)
        self._in_flight.add(order_id)
        task = asyncio.create_task(self._run_one(order_id), name=f"order-{order_id[:10]}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    # ------------------------------------------------------------------
    # Loop control
    # ------------------------------------------------------------------

    async def run(self, stop: asyncio.Event, *, idle_timeout: float = 0.5) -> None:
        """Dispatch queued orders until *stop* is set, then wait for in-flight work."""
        while not stop.is_set():
            try:
                await asyncio.wait_for(self._semaphore.acquire(), timeout=idle_timeout)
            except asyncio.TimeoutError:
                continue
            if self._queue.empty():
                getter = asyncio.ensure_future(self._queue.get())
                stopper = asyncio.ensure_future(stop.wait())
                done, _ = await asyncio.wait({getter, stopper}, return_when=asyncio.FIRST_COMPLETED)
                stopper.cancel()
                if getter not in done:
                    getter.cancel()
                    self._semaphore.release()
                    break
                # Hand the item back so dispatch goes through one path.
                self._queue.put_nowait(getter.result())
            self._dispatch_next()
        await self.drain()

    async def run_pending(self) -> None:
        """Dispatch everything currently queued and wait for it to finish."""
        while not self._queue.empty():
            await self._semaphore.acquire()
            self._dispatch_next()
        await self.drain()

    async def drain(self) -> None:
        """Wait for every in-flight execution to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
