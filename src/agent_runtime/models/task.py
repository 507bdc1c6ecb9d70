"""Task execution models.

TaskInput is the unit handed to an executor, TaskResult is what comes back.
ExecutionMetadata and ExecutionEstimate describe timing and cost.
ResultRecord is the document persisted by a result store.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field, field_serializer, field_validator, model_validator
from pydantic.alias_generators import to_camel

from agent_runtime.models.proof import ProofEvidence, ProofOfWork, ProofType

RESULT_HASH_SIZE = 32
EMPTY_RESULT_HASH = bytes(RESULT_HASH_SIZE)


class TaskInput(BaseModel):
    """Immutable execution unit passed to an executor."""

    model_config = {"frozen": True, "alias_generator": to_camel, "populate_by_name": True}

    order_id: str
    service_type: str
    payload: dict = Field(default_factory=dict)
    total_price: int = 0
    start_time: int = 0  # epoch milliseconds
    service_id: Optional[str] = None
    buyer: Optional[str] = None
    units: Optional[int] = None
    deadline: Optional[int] = None

    @field_serializer("total_price", "units")
    def _serialize_wei(self, value: int | None) -> str | None:
        # Wei amounts travel as decimal strings.
        return None if value is None else str(value)


class ExecutionMetadata(BaseModel):
    """Timing and attribution for one execution."""

    model_config = {"alias_generator": to_camel, "populate_by_name": True}

    start_time: int
    end_time: int
    duration_ms: int
    executor_id: str
    executor_version: str
    model_used: Optional[str] = None
    tokens_used: Optional[int] = None
    cost_usd: Optional[float] = None


class ExecutionEstimate(BaseModel):
    """Predicted duration and cost of a task."""

    estimated_duration_ms: int
    estimated_cost: int
    confidence: float = Field(ge=0.0, le=1.0)


class TaskResult(BaseModel):
    """Outcome of executing one TaskInput.

    A failed result never carries a ``result_uri``. ``result_hash`` is the
    32-byte digest of ``output`` (all zeroes for failures).
    """

    model_config = {"arbitrary_types_allowed": True}

    success: bool
    metadata: ExecutionMetadata
    result_uri: Optional[str] = None
    result_hash: bytes = EMPTY_RESULT_HASH
    proof: Optional[ProofOfWork] = None
    error: Optional[str] = None
    output: Optional[dict] = None
    evidence: Optional[ProofEvidence] = None
    proof_type: ProofType = ProofType.LLM_COMPLETION

    @field_validator("result_hash", mode="before")
    @classmethod
    def _coerce_hash(cls, v: object) -> object:
        if isinstance(v, str):
            return bytes.fromhex(v.removeprefix("0x"))
        return v

    @model_validator(mode="after")
    def _check_invariants(self) -> "TaskResult":
        if len(self.result_hash) != RESULT_HASH_SIZE:
            raise ValueError(
                f"result_hash must be {RESULT_HASH_SIZE} bytes, got {len(self.result_hash)}"
            )
        if not self.success and self.result_uri:
            raise ValueError("a failed result cannot carry a result_uri")
        return self

    @field_serializer("result_hash")
    def _serialize_hash(self, value: bytes) -> str:
        return "0x" + value.hex()

    @property
    def result_hash_hex(self) -> str:
        return "0x" + self.result_hash.hex()


class ResultRecord(BaseModel):
    """Document persisted by a result store for a completed order."""

    model_config = {"alias_generator": to_camel, "populate_by_name": True}

    order_id: str
    service_type: str
    input: dict = Field(default_factory=dict)
    output: dict = Field(default_factory=dict)
    proof: ProofOfWork
    metadata: ExecutionMetadata

    def to_payload(self) -> dict[str, Any]:
        """Return the JSON-ready, camelCase form of this record."""
        return {
            "orderId": self.order_id,
            "serviceType": self.service_type,
            "input": self.input,
            "output": self.output,
            "proof": self.proof.to_wire(),
            "metadata": self.metadata.model_dump(mode="json", by_alias=True, exclude_none=True),
        }
