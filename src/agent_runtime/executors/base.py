"""Executor capability protocol and shared helpers.

An executor turns a TaskInput into exactly one TaskResult. Shared
behaviour (capability matching, default estimates, metadata and result
construction) lives in free functions rather than a base class.
"""

from __future__ import annotations

import time
from collections.abc import Iterable
from typing import Any, Protocol, runtime_checkable

from agent_runtime.hashing import digest
from agent_runtime.models.proof import ProofEvidence, ProofType
from agent_runtime.models.task import (
    EMPTY_RESULT_HASH,
    ExecutionEstimate,
    ExecutionMetadata,
    TaskInput,
    TaskResult,
)

DEFAULT_ESTIMATE_MS = 30_000
DEFAULT_CONFIDENCE = 0.1


@runtime_checkable
class Executor(Protocol):
    """Protocol for pluggable task executors."""

    id: str
    name: str
    version: str
    service_types: list[str]

    async def execute(self, task: TaskInput) -> TaskResult:
        """Run the task. Failures are returned as ``success=False`` results."""
        ...

    async def estimate(self, task: TaskInput) -> ExecutionEstimate:
        ...

    async def health_check(self) -> bool:
        ...

    def handles(self, service_type: str) -> bool:
        ...


def now_ms() -> int:
    return int(time.time() * 1000)


def matches_capability(pattern: str, service_type: str) -> bool:
    """Match a declared capability pattern against a service type.

    ``*`` matches everything, ``prefix*`` matches by prefix, anything else
    must match exactly. Comparison is case-insensitive.
    """
    pattern = pattern.lower()
    service_type = service_type.lower()
    if pattern == "*":
        return True
    if pattern.endswith("*"):
        return service_type.startswith(pattern[:-1])
    return pattern == service_type


def handles_any(patterns: Iterable[str], service_type: str) -> bool:
    return any(matches_capability(pattern, service_type) for pattern in patterns)


def default_estimate(task: TaskInput) -> ExecutionEstimate:
    return ExecutionEstimate(
        estimated_duration_ms=DEFAULT_ESTIMATE_MS,
        estimated_cost=task.total_price,
        confidence=DEFAULT_CONFIDENCE,
    )


def build_metadata(executor: Executor, start_time: int, **extra: Any) -> ExecutionMetadata:
    """Close the timing window opened at *start_time* for *executor*."""
    end_time = now_ms()
    return ExecutionMetadata(
        start_time=start_time,
        end_time=end_time,
        duration_ms=max(end_time - start_time, 0),
        executor_id=executor.id,
        executor_version=executor.version,
        **extra,
    )


def failed_result(
    executor: Executor,
    error: str,
    start_time: int,
    proof_type: ProofType = ProofType.LLM_COMPLETION,
) -> TaskResult:
    return TaskResult(
        success=False,
        result_hash=EMPTY_RESULT_HASH,
        error=error,
        metadata=build_metadata(executor, start_time),
        proof_type=proof_type,
    )


def succeeded_result(
    executor: Executor,
    output: dict[str, Any],
    start_time: int,
    *,
    evidence: ProofEvidence | None = None,
    proof_type: ProofType = ProofType.LLM_COMPLETION,
    **metadata: Any,
) -> TaskResult:
    """Successful result whose hash is the digest of *output*."""
    return TaskResult(
        success=True,
        result_hash=digest(output),
        output=output,
        evidence=evidence,
        proof_type=proof_type,
        metadata=build_metadata(executor, start_time, **metadata),
    )
