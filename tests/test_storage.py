"""Tests for runtime storage: schema, repositories and the store facade."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import inspect

from agent_runtime.exceptions import InvalidTransitionError, OrderNotFoundError
from agent_runtime.models import OrderStatus
from agent_runtime.storage import (
    SCHEMA_VERSION,
    RuntimeStore,
    create_runtime_engine,
    create_session_factory,
    init_db,
)
from tests.conftest import make_order, order_id


class TestSchema:
    def test_tables_created(self, engine) -> None:
        tables = set(inspect(engine).get_table_names())
        assert {"orders", "capabilities", "audit_log", "runtime_meta"} <= tables

    def test_schema_version_recorded(self, store: RuntimeStore) -> None:
        assert store.meta.get("schema_version") == SCHEMA_VERSION

    def test_init_db_idempotent(self, tmp_path) -> None:
        engine = create_runtime_engine(str(tmp_path / "runtime.db"))
        init_db(engine)
        init_db(engine)
        with create_session_factory(engine)() as session:
            assert RuntimeStore.from_session(session).meta.get("schema_version") == SCHEMA_VERSION
        engine.dispose()


class TestOrderRepository:
    def test_round_trip_preserves_wei(self, store: RuntimeStore) -> None:
        order = make_order(total_price=10**30, units=10**20, deadline=1_700_000_000)
        store.orders.add(order)
        loaded = store.orders.get(order.order_id)
        assert loaded.total_price == 10**30
        assert loaded.units == 10**20
        assert loaded.deadline == 1_700_000_000
        assert loaded.payload == {"text": "I love this product"}
        assert loaded.status is OrderStatus.PENDING
        assert loaded.created_at.tzinfo is not None

    def test_missing_order(self, store: RuntimeStore) -> None:
        assert store.orders.get(order_id(99)) is None
        assert not store.orders.exists(order_id(99))

    def test_empty_payload_loads_as_dict(self, store: RuntimeStore) -> None:
        store.orders.add(make_order(payload={}))
        assert store.orders.get(order_id(1)).payload == {}

    def test_forward_transition(self, store: RuntimeStore) -> None:
        store.orders.add(make_order())
        updated = store.orders.transition(
            order_id(1), OrderStatus.COMPLETED, result_uri="mem://1", result_hash="0xab"
        )
        assert updated.status is OrderStatus.COMPLETED
        assert updated.result_uri == "mem://1"
        assert store.orders.get(order_id(1)).result_hash == "0xab"

    def test_backward_transition_rejected(self, store: RuntimeStore) -> None:
        store.orders.add(make_order())
        store.orders.transition(order_id(1), OrderStatus.CANCELLED)
        with pytest.raises(InvalidTransitionError) as exc_info:
            store.orders.transition(order_id(1), OrderStatus.PENDING)
        assert exc_info.value.current == "cancelled"
        assert store.orders.get(order_id(1)).status is OrderStatus.CANCELLED

    def test_transition_unknown_order(self, store: RuntimeStore) -> None:
        with pytest.raises(OrderNotFoundError):
            store.orders.transition(order_id(5), OrderStatus.COMPLETED)

    def test_list_and_count_by_status(self, store: RuntimeStore) -> None:
        base = datetime(2025, 1, 1, tzinfo=timezone.utc)
        for n in range(1, 4):
            store.orders.add(make_order(n, created_at=base + timedelta(seconds=n)))
        store.orders.transition(order_id(2), OrderStatus.COMPLETED)

        pending = store.orders.list_by_status(OrderStatus.PENDING)
        assert [o.order_id for o in pending] == [order_id(1), order_id(3)]
        assert len(store.orders.list_by_status()) == 3
        assert store.orders.count_by_status() == {
            "pending": 2, "completed": 1, "cancelled": 0, "disputed": 0,
        }

    def test_record_settlement(self, store: RuntimeStore) -> None:
        store.orders.add(make_order())
        store.orders.record_settlement(order_id(1), "ipfs://Qm1", "0x" + "cd" * 32)
        loaded = store.orders.get(order_id(1))
        assert loaded.result_uri == "ipfs://Qm1"
        assert loaded.status is OrderStatus.PENDING

    def test_attach_payload(self, store: RuntimeStore) -> None:
        store.orders.add(make_order(payload={}))
        store.orders.attach_payload(order_id(1), {"text": "new"})
        assert store.orders.get(order_id(1)).payload == {"text": "new"}


class TestCapabilityRepository:
    def test_save_and_update(self, store: RuntimeStore) -> None:
        service_id = "0x" + "aa" * 32
        store.capabilities.save(service_id, "echo", 10**18, "ipfs://QmA")
        store.capabilities.save(service_id, "translation", 5, None)
        row = store.capabilities.get(service_id)
        assert row.service_type == "translation"
        assert int(row.price_per_unit) == 5
        assert row.metadata_uri is None
        assert len(store.capabilities.list()) == 1


class TestAuditLog:
    def test_entries_in_order(self, store: RuntimeStore) -> None:
        store.audit.append(order_id(1), "info", "first", {"a": 1})
        store.audit.append(order_id(2), "warn", "other")
        store.audit.append(order_id(1), "error", "second")
        entries = store.audit.for_order(order_id(1))
        assert [e.message for e in entries] == ["first", "second"]
        assert entries[0].data_json == {"a": 1}
        assert [e.message for e in store.audit.recent(2)] == ["second", "other"]


class TestMeta:
    def test_set_overwrites(self, store: RuntimeStore) -> None:
        store.meta.set("last_processed_block", "10")
        store.meta.set("last_processed_block", "12")
        assert store.meta.get("last_processed_block") == "12"
        assert store.meta.get("missing") is None


class TestStoreFacade:
    def test_rollback_discards_uncommitted(self, store: RuntimeStore) -> None:
        store.orders.add(make_order())
        store.rollback()
        assert not store.orders.exists(order_id(1))

    def test_commit_persists(self, store: RuntimeStore) -> None:
        store.orders.add(make_order())
        store.commit()
        store.rollback()
        assert store.orders.exists(order_id(1))
