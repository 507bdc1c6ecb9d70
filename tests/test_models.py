"""Tests for domain models: order lifecycle, task results and result records."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from agent_runtime.models import (
    EMPTY_RESULT_HASH,
    ExecutionEstimate,
    ExecutionMetadata,
    OrderStatus,
    ProofOfWork,
    ProofType,
    ResultRecord,
    TaskInput,
    TaskResult,
    can_transition,
)
from tests.conftest import make_order


def _metadata() -> ExecutionMetadata:
    return ExecutionMetadata(
        start_time=1, end_time=3, duration_ms=2, executor_id="x", executor_version="1.0.0"
    )


class TestOrderLifecycle:
    @pytest.mark.parametrize(
        "requested", [OrderStatus.COMPLETED, OrderStatus.CANCELLED, OrderStatus.DISPUTED]
    )
    def test_pending_moves_forward(self, requested: OrderStatus) -> None:
        assert can_transition(OrderStatus.PENDING, requested)

    def test_disputed_resolves(self) -> None:
        assert can_transition(OrderStatus.DISPUTED, OrderStatus.COMPLETED)
        assert can_transition(OrderStatus.DISPUTED, OrderStatus.CANCELLED)
        assert not can_transition(OrderStatus.DISPUTED, OrderStatus.PENDING)

    @pytest.mark.parametrize("terminal", [OrderStatus.COMPLETED, OrderStatus.CANCELLED])
    def test_terminal_states_are_final(self, terminal: OrderStatus) -> None:
        assert not any(can_transition(terminal, status) for status in OrderStatus)

    def test_expiry(self) -> None:
        order = make_order(deadline=1_000)
        assert not order.is_expired(1_000)
        assert order.is_expired(1_001)

    def test_no_deadline_never_expires(self) -> None:
        assert not make_order().is_expired(10**12)


class TestTaskInput:
    def test_frozen(self) -> None:
        task = TaskInput(order_id="0x1", service_type="echo")
        with pytest.raises(ValidationError):
            task.order_id = "0x2"

    def test_wei_serialized_as_string(self) -> None:
        task = TaskInput(order_id="0x1", service_type="echo", total_price=10**20, units=3)
        dumped = task.model_dump(by_alias=True)
        assert dumped["totalPrice"] == str(10**20)
        assert dumped["units"] == "3"


class TestTaskResult:
    def test_hash_must_be_32_bytes(self) -> None:
        with pytest.raises(ValidationError):
            TaskResult(success=True, metadata=_metadata(), result_hash=b"\x01" * 31)

    def test_hex_hash_coerced(self) -> None:
        result = TaskResult(success=True, metadata=_metadata(), result_hash="0x" + "ab" * 32)
        assert result.result_hash == bytes.fromhex("ab" * 32)
        assert result.result_hash_hex == "0x" + "ab" * 32

    def test_failed_result_cannot_carry_uri(self) -> None:
        with pytest.raises(ValidationError):
            TaskResult(success=False, metadata=_metadata(), result_uri="mem://1")

    def test_defaults_to_empty_hash(self) -> None:
        result = TaskResult(success=False, metadata=_metadata(), error="boom")
        assert result.result_hash == EMPTY_RESULT_HASH

    def test_hash_serialized_as_hex(self) -> None:
        result = TaskResult(success=False, metadata=_metadata())
        assert result.model_dump()["result_hash"] == "0x" + "00" * 32


class TestEstimate:
    def test_confidence_bounded(self) -> None:
        with pytest.raises(ValidationError):
            ExecutionEstimate(estimated_duration_ms=1, estimated_cost=0, confidence=1.5)


class TestResultRecord:
    def test_payload_is_camel_case(self) -> None:
        proof = ProofOfWork(
            type=ProofType.DETERMINISTIC, timestamp=5, input_hash="aa", output_hash="bb",
            signature="0xsig",
        )
        record = ResultRecord(
            order_id="0x1",
            service_type="echo",
            input={"a": 1},
            output={"b": 2},
            proof=proof,
            metadata=_metadata(),
        )
        payload = record.to_payload()
        assert set(payload) == {"orderId", "serviceType", "input", "output", "proof", "metadata"}
        assert payload["proof"]["inputHash"] == "aa"
        assert payload["proof"]["signature"] == "0xsig"
        assert payload["metadata"]["executorId"] == "x"
        assert "modelUsed" not in payload["metadata"]
