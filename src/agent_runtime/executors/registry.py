"""Executor registry: capability-based routing of service types."""

from __future__ import annotations

import asyncio
import logging

from agent_runtime.executors.base import Executor

logger = logging.getLogger(__name__)


class ExecutorRegistry:
    """Ordered collection of executors keyed by id.

    Routing returns the first executor, in registration order, whose
    capability patterns match the service type. Re-registering an id
    replaces the executor in its original position.
    """

    def __init__(self, executors: list[Executor] | None = None) -> None:
        self._executors: dict[str, Executor] = {}
        for executor in executors or []:
            self.register(executor)

    def register(self, executor: Executor) -> None:
        if executor.id in self._executors:
            logger.info("Replacing executor %s", executor.id)
        self._executors[executor.id] = executor
        logger.info(
            "Registered executor %s (%s) for %s",
            executor.name, executor.id, ", ".join(executor.service_types),
        )

    def unregister(self, executor_id: str) -> Executor | None:
        return self._executors.pop(executor_id, None)

    def get(self, executor_id: str) -> Executor | None:
        return self._executors.get(executor_id)

    def list(self) -> list[Executor]:
        return list(self._executors.values())

    def find(self, service_type: str) -> Executor | None:
        for executor in self._executors.values():
            if executor.handles(service_type):
                return executor
        return None

    def find_all(self, service_type: str) -> list[Executor]:
        return [e for e in self._executors.values() if e.handles(service_type)]

    async def health_check(self) -> dict[str, bool]:
        """Probe every executor concurrently. A raised exception counts as unhealthy."""
        ids = list(self._executors)
        results = await asyncio.gather(
            *(self._executors[i].health_check() for i in ids),
            return_exceptions=True,
        )
        health: dict[str, bool] = {}
        for executor_id, outcome in zip(ids, results):
            if isinstance(outcome, BaseException):
                logger.warning("Health check for %s raised: %s", executor_id, outcome)
                health[executor_id] = False
            else:
                health[executor_id] = bool(outcome)
        return health

    def __len__(self) -> int:
        return len(self._executors)

    def __contains__(self, executor_id: object) -> bool:
        return executor_id in self._executors
