"""No-network executor for benchmarks and local smoke runs."""

from __future__ import annotations

import asyncio

from agent_runtime.executors.base import failed_result, handles_any, now_ms, succeeded_result
from agent_runtime.hashing import hex_digest
from agent_runtime.models.proof import ProofEvidence, ProofType
from agent_runtime.models.task import ExecutionEstimate, TaskInput, TaskResult

ALGORITHM = "sha256-echo"


class BenchmarkExecutor:
    """Echoes the payload with its digest after an optional simulated delay.

    Output depends only on the task, so proofs are of the deterministic
    kind. A payload with ``"fail": true`` yields a failed result.
    """

    id = "benchmark"
    name = "Benchmark Executor"
    version = "1.0.0"

    def __init__(self, service_types: list[str] | None = None, latency_ms: int = 0) -> None:
        self.service_types = list(service_types or ["benchmark", "echo"])
        self._latency_ms = latency_ms

    def handles(self, service_type: str) -> bool:
        return handles_any(self.service_types, service_type)

    async def execute(self, task: TaskInput) -> TaskResult:
        start_time = now_ms()
        if self._latency_ms:
            await asyncio.sleep(self._latency_ms / 1000)
        if task.payload.get("fail"):
            return failed_result(self, "Simulated failure", start_time, ProofType.DETERMINISTIC)
        output = {
            "serviceType": task.service_type,
            "echo": task.payload,
            "digest": hex_digest(task.payload),
        }
        return succeeded_result(
            self,
            output,
            start_time,
            evidence=ProofEvidence(algorithm=ALGORITHM, seed=task.order_id),
            proof_type=ProofType.DETERMINISTIC,
        )

    async def estimate(self, task: TaskInput) -> ExecutionEstimate:
        return ExecutionEstimate(
            estimated_duration_ms=self._latency_ms,
            estimated_cost=task.total_price,
            confidence=1.0,
        )

    async def health_check(self) -> bool:
        return True
