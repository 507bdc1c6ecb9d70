"""AgentRuntime: assembles and drives the order pipeline.

Construction wires the ingestor to the worker loop. ``from_config`` builds
every component from a :class:`RuntimeConfig`; tests pass components
directly.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

from agent_runtime.config import RuntimeConfig
from agent_runtime.exceptions import ConfigurationError
from agent_runtime.executors.provider import ProviderExecutor
from agent_runtime.executors.registry import ExecutorRegistry
from agent_runtime.executors.stub import BenchmarkExecutor
from agent_runtime.executors.webhook import WebhookExecutor
from agent_runtime.ingest import MetadataPayloadResolver, OrderIngestor, PayloadResolver
from agent_runtime.ledger.gateway import LedgerGateway, Web3Ledger
from agent_runtime.ledger.settlement import SettlementClient
from agent_runtime.llm.client import create_provider_client
from agent_runtime.models.order import OrderStatus
from agent_runtime.orchestrator.events import EventBus, EventCallback, RuntimeEventType
from agent_runtime.orchestrator.loop import WorkerLoop
from agent_runtime.proof import ProofEngine
from agent_runtime.results import create_result_store
from agent_runtime.results.base import ResultStore
from agent_runtime.storage.engine import create_runtime_engine, create_session_factory, init_db
from agent_runtime.storage.store import RuntimeStore

logger = logging.getLogger(__name__)


def build_registry(config: RuntimeConfig) -> ExecutorRegistry:
    """One provider executor per configured API key, then webhook, then benchmark.

    Registration order is routing precedence.
    """
    registry = ExecutorRegistry()
    for provider, api_key in config.provider_keys.items():
        client = create_provider_client(
            provider, api_key, base_url=config.provider_base_urls.get(provider)
        )
        registry.register(ProviderExecutor(client))
        logger.info("Registered %s executor", provider)
    if config.webhook_url:
        registry.register(
            WebhookExecutor(
                config.webhook_url,
                config.webhook_service_types,
                api_key=config.webhook_api_key,
            )
        )
        logger.info("Registered webhook executor for %s", config.webhook_url)
    if config.enable_benchmark_executor:
        registry.register(BenchmarkExecutor())
    return registry


class AgentRuntime:
    """Long-running seller agent.

    Args:
        store: Repositories over the runtime database.
        registry: Executor routing.
        proof_engine: Proof signer.
        result_store: Result persistence.
        gateway: Ledger access for event polling.
        settlement: Ledger writes; None runs without settlement.
        resolver: Resolves order payloads from capability metadata.
        max_concurrent: Worker concurrency bound.
        auto_complete: Settle each stored result on the ledger.
        poll_interval_ms: Event polling interval.
        start_block: First block scanned on a fresh database.
    """

    def __init__(
        self,
        store: RuntimeStore,
        registry: ExecutorRegistry,
        proof_engine: ProofEngine,
        result_store: ResultStore,
        *,
        gateway: LedgerGateway | None = None,
        settlement: SettlementClient | None = None,
        resolver: PayloadResolver | None = None,
        max_concurrent: int = 5,
        auto_complete: bool = True,
        poll_interval_ms: int = 5000,
        start_block: int | None = None,
    ) -> None:
        self.store = store
        self.registry = registry
        self.proof_engine = proof_engine
        self.result_store = result_store
        self.gateway = gateway
        self.settlement = settlement
        self._resolver = resolver
        self.events = EventBus()
        self.worker = WorkerLoop(
            store,
            registry,
            proof_engine,
            result_store,
            settlement,
            max_concurrent=max_concurrent,
            auto_complete=auto_complete,
            events=self.events,
        )
        self.ingestor = OrderIngestor(
            store,
            self.worker.submit,
            gateway=gateway,
            settlement=settlement,
            resolver=resolver,
            seller_address=proof_engine.address,
            poll_interval_ms=poll_interval_ms,
            start_block=start_block,
        )
        self._poll_interval = poll_interval_ms / 1000
        self._stop = asyncio.Event()
        self._finished = asyncio.Event()
        self._finished.set()
        self._running = False
        self._closed = False

    @classmethod
    def from_config(cls, config: RuntimeConfig) -> AgentRuntime:
        """Build a runtime from configuration.

        Raises:
            ConfigurationError: If the config cannot run the agent.
        """
        config.validate_for_run()
        if config.private_key is None:
            raise ConfigurationError("AGENT_PRIVATE_KEY is required")

        engine = create_runtime_engine(config.db_path)
        init_db(engine)
        store = RuntimeStore.from_session(create_session_factory(engine)())

        gateway = Web3Ledger(config.rpc_url, config.private_key, config.contract_addresses())
        return cls(
            store,
            build_registry(config),
            ProofEngine(
                config.private_key,
                max_age_ms=config.proof_max_age_ms,
                strict_inputs=config.strict_proof_inputs,
            ),
            create_result_store(config),
            gateway=gateway,
            settlement=SettlementClient(gateway, chain_id=config.chain_id),
            resolver=MetadataPayloadResolver(config.ipfs_gateway),
            max_concurrent=config.max_concurrent,
            auto_complete=config.auto_complete,
            poll_interval_ms=config.poll_interval_ms,
            start_block=config.start_block,
        )

    @property
    def address(self) -> str:
        return self.proof_engine.address

    @property
    def running(self) -> bool:
        return self._running

    def on(self, callback: EventCallback) -> Callable[[], None]:
        """Subscribe to runtime events; returns an unsubscribe function."""
        return self.events.subscribe(callback)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> int:
        """Queue pending orders left over from a previous run. Returns how many."""
        if self._running:
            return 0
        self._running = True
        self._stop.clear()
        recovered = 0
        for order in self.store.orders.list_by_status(OrderStatus.PENDING):
            if self.worker.submit(order):
                recovered += 1
        if recovered:
            logger.info("Recovered %d pending order(s)", recovered)
        self.events.emit(RuntimeEventType.STARTED, address=self.address, recovered=recovered)
        return recovered

    async def run(self) -> None:
        """Ingest and execute orders until :meth:`stop` is called."""
        self.start()
        tasks = [self.worker.run(self._stop), self._retry_pending(self._stop)]
        if self.gateway is not None:
            tasks.append(self.ingestor.run(self._stop))
        logger.info("Agent %s running with %d executor(s)", self.address, len(self.registry))
        self._finished.clear()
        try:
            await asyncio.gather(*tasks)
        finally:
            self._running = False
            self._finished.set()

    async def _retry_pending(self, stop: asyncio.Event) -> None:
        """Re-queue pending orders every poll interval so failed ones are retried."""
        while not stop.is_set():
            try:
                await asyncio.wait_for(stop.wait(), timeout=self._poll_interval)
            except asyncio.TimeoutError:
                self.worker.resubmit_pending()

    async def stop(self) -> None:
        """Stop polling, wait for in-flight executions, then release clients."""
        self._stop.set()
        await self._finished.wait()
        await self.worker.drain()
        self._running = False
        await self.close()
        self.events.emit(RuntimeEventType.STOPPED, address=self.address)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        for executor in self.registry.list():
            aclose = getattr(executor, "aclose", None)
            if aclose is not None:
                await aclose()
        await self.result_store.aclose()
        if self._resolver is not None and hasattr(self._resolver, "aclose"):
            await self._resolver.aclose()
        self.store.close()

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    async def status(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "running": self._running,
            "inFlight": sorted(self.worker.in_flight),
            "queued": self.worker.queued,
            "orders": self.store.orders.count_by_status(),
            "executors": await self.registry.health_check(),
            "lastProcessedBlock": self.ingestor.last_processed_block,
        }
