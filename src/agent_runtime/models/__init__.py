"""Domain models for the agent runtime."""

from agent_runtime.models.order import Order, OrderStatus, can_transition
from agent_runtime.models.proof import (
    ProofEvidence,
    ProofOfWork,
    ProofType,
    VerificationResult,
)
from agent_runtime.models.task import (
    EMPTY_RESULT_HASH,
    ExecutionEstimate,
    ExecutionMetadata,
    ResultRecord,
    TaskInput,
    TaskResult,
)

__all__ = [
    "EMPTY_RESULT_HASH",
    "ExecutionEstimate",
    "ExecutionMetadata",
    "Order",
    "OrderStatus",
    "ProofEvidence",
    "ProofOfWork",
    "ProofType",
    "ResultRecord",
    "TaskInput",
    "TaskResult",
    "VerificationResult",
    "can_transition",
]
