"""Proof-of-work generation and verification.

ProofEngine hashes task input and output into a ProofOfWork body and signs
the canonical JSON of that body as an EIP-191 personal message with the
agent's key. Verification recovers the signer and re-derives the hashes;
every failed check is reported, not just the first.
"""

from __future__ import annotations

import base64
import logging
import time
from typing import Any

from eth_account import Account
from eth_account.messages import encode_defunct

from agent_runtime.exceptions import ProofError
from agent_runtime.hashing import canonical_json, digest, hex_digest
from agent_runtime.models.proof import (
    ProofEvidence,
    ProofOfWork,
    ProofType,
    VerificationResult,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_AGE_MS = 3_600_000


class _Missing:
    """Sentinel type for verify() arguments that were not supplied."""

    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()


def _now_ms() -> int:
    return int(time.time() * 1000)


def _encode_body(body: dict[str, Any]) -> Any:
    return encode_defunct(text=canonical_json(body).decode("utf-8"))


class ProofEngine:
    """Signs and verifies proofs of work with a single agent key.

    Args:
        private_key: Hex private key of the agent (``0x``-prefixed or not).
        max_age_ms: Freshness window used by :meth:`verify`.
        strict_inputs: When True, generating a proof for a ``None`` input
            raises :class:`ProofError`. Otherwise ``None`` is hashed as the
            empty string and a warning is logged.
    """

    def __init__(
        self,
        private_key: str,
        *,
        max_age_ms: int = DEFAULT_MAX_AGE_MS,
        strict_inputs: bool = False,
    ) -> None:
        try:
            self._account = Account.from_key(private_key)
        except (ValueError, TypeError) as exc:
            raise ProofError(f"Invalid signing key: {exc}") from exc
        self._max_age_ms = max_age_ms
        self._strict_inputs = strict_inputs

    @property
    def address(self) -> str:
        """Checksummed address of the signing key."""
        return self._account.address

    @property
    def max_age_ms(self) -> int:
        return self._max_age_ms

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    def generate(
        self,
        kind: ProofType,
        input: Any,
        output: Any,
        evidence: ProofEvidence | None = None,
        *,
        timestamp: int | None = None,
    ) -> ProofOfWork:
        """Build and sign a proof binding *input* and *output*."""
        proof = ProofOfWork(
            type=ProofType(kind),
            timestamp=_now_ms() if timestamp is None else timestamp,
            input_hash=self._hash_input(input),
            output_hash=hex_digest(output),
            evidence=evidence or ProofEvidence(),
        )
        proof.signature = self._sign(proof.unsigned_body())
        return proof

    def generate_llm_proof(
        self,
        input: Any,
        output: Any,
        api_request: Any,
        api_response: Any = None,
    ) -> ProofOfWork:
        """Proof for an LLM completion, carrying the hashed API call and a raw log."""
        timestamp = _now_ms()
        raw_log = canonical_json(
            {"timestamp": timestamp, "request": api_request, "response": api_response}
        )
        evidence = ProofEvidence(
            api_call_hash=hex_digest(api_request),
            raw_log=base64.b64encode(raw_log).decode("ascii"),
        )
        return self.generate(
            ProofType.LLM_COMPLETION, input, output, evidence, timestamp=timestamp
        )

    def generate_deterministic_proof(
        self, input: Any, output: Any, algorithm: str, seed: str
    ) -> ProofOfWork:
        evidence = ProofEvidence(algorithm=algorithm, seed=seed)
        return self.generate(ProofType.DETERMINISTIC, input, output, evidence)

    def generate_multi_party_proof(
        self, input: Any, output: Any, verifier_signatures: list[str]
    ) -> ProofOfWork:
        evidence = ProofEvidence(verifier_signatures=list(verifier_signatures))
        return self.generate(ProofType.MULTI_PARTY, input, output, evidence)

    def result_hash(self, result: Any) -> bytes:
        """32-byte digest of *result*, as submitted with a completion."""
        return digest(result)

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    def verify(
        self,
        proof: ProofOfWork,
        expected_signer: str,
        input: Any = MISSING,
        output: Any = MISSING,
        now_ms: int | None = None,
    ) -> VerificationResult:
        """Verify *proof* within this engine's freshness window."""
        return verify_proof(
            proof, expected_signer, input, output, max_age_ms=self._max_age_ms, now_ms=now_ms
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _hash_input(self, input: Any) -> str:
        if input is None:
            if self._strict_inputs:
                raise ProofError("Cannot generate a proof without task input")
            logger.warning("Generating proof for missing input; hashing empty string")
            return hex_digest("")
        return hex_digest(input)

    def _sign(self, body: dict[str, Any]) -> str:
        signed = Account.sign_message(_encode_body(body), private_key=self._account.key)
        return "0x" + bytes(signed.signature).hex()


def _signature_matches(proof: ProofOfWork, expected_signer: str) -> bool:
    if not proof.signature:
        return False
    try:
        recovered = Account.recover_message(
            _encode_body(proof.unsigned_body()), signature=proof.signature
        )
    except Exception:  # noqa: BLE001
        logger.debug("Signature recovery failed for proof at %d", proof.timestamp)
        return False
    return recovered.lower() == expected_signer.lower()


def verify_proof(
    proof: ProofOfWork,
    expected_signer: str,
    input: Any = MISSING,
    output: Any = MISSING,
    *,
    max_age_ms: int = DEFAULT_MAX_AGE_MS,
    now_ms: int | None = None,
) -> VerificationResult:
    """Check signature, freshness and (when given) input and output hashes.

    The checks are independent. ``input``/``output`` left as ``MISSING``
    skip their hash check; a ``None`` input is compared as the empty string.
    No signing key is needed.
    """
    errors: list[str] = []

    if not _signature_matches(proof, expected_signer):
        errors.append("Invalid signature")

    age = (_now_ms() if now_ms is None else now_ms) - proof.timestamp
    if age < 0 or age > max_age_ms:
        errors.append("Proof timestamp out of range")

    if input is not MISSING:
        expected = hex_digest("" if input is None else input)
        if proof.input_hash != expected:
            errors.append("Input hash mismatch")

    if output is not MISSING and proof.output_hash != hex_digest(output):
        errors.append("Output hash mismatch")

    return VerificationResult(valid=not errors, errors=errors)
