"""Proof-of-work models.

A ProofOfWork binds hashed input and output evidence to the agent's
signature. ``unsigned_body()`` is the exact structure the signature covers.
"""

from __future__ import annotations

import enum
from typing import Any, Optional

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


class ProofType(str, enum.Enum):
    """Kinds of evidence a proof can carry."""

    LLM_COMPLETION = "llm-completion"
    DETERMINISTIC = "deterministic"
    TEE_ATTESTATION = "tee-attestation"
    MULTI_PARTY = "multi-party"
    ORACLE_VERIFIED = "oracle-verified"

    def __str__(self) -> str:
        return self.value


class ProofEvidence(BaseModel):
    """Execution evidence attached to a proof. Unset fields are omitted."""

    model_config = {"alias_generator": to_camel, "populate_by_name": True}

    api_call_hash: Optional[str] = None
    seed: Optional[str] = None
    algorithm: Optional[str] = None
    attestation: Optional[str] = None
    verifier_signatures: Optional[list[str]] = None
    oracle_response: Optional[str] = None
    raw_log: Optional[str] = None

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class ProofOfWork(BaseModel):
    """Signed record binding input/output hashes to the executing agent."""

    model_config = {"alias_generator": to_camel, "populate_by_name": True}

    type: ProofType
    timestamp: int  # epoch milliseconds
    input_hash: str
    output_hash: str
    evidence: ProofEvidence = Field(default_factory=ProofEvidence)
    signature: str = ""

    def unsigned_body(self) -> dict[str, Any]:
        """Return the wire form of every field except the signature."""
        return {
            "type": self.type.value,
            "timestamp": self.timestamp,
            "inputHash": self.input_hash,
            "outputHash": self.output_hash,
            "evidence": self.evidence.to_wire(),
        }

    def to_wire(self) -> dict[str, Any]:
        return {**self.unsigned_body(), "signature": self.signature}


class VerificationResult(BaseModel):
    """Outcome of proof verification. ``errors`` lists every failed check."""

    valid: bool
    errors: list[str] = Field(default_factory=list)
