"""Tests for the agent-runtime CLI (click + rich), driven through CliRunner."""

from __future__ import annotations

import json

import pytest
from click.testing import CliRunner

from agent_runtime.cli import cli
from agent_runtime.models import OrderStatus, ProofType
from agent_runtime.proof import ProofEngine
from agent_runtime.storage import RuntimeStore, create_runtime_engine, create_session_factory, init_db
from tests.conftest import OTHER_ADDRESS, SIGNER_ADDRESS, make_order, order_id

INPUT = {"text": "I love this product"}
OUTPUT = {"sentiment": "positive"}

# Blank out settings that would otherwise leak in from the caller's environment.
CLEAN_ENV = {
    "AGENT_PRIVATE_KEY": "",
    "PRIVATE_KEY": "",
    "OPENAI_API_KEY": "",
    "ANTHROPIC_API_KEY": "",
    "GOOGLE_API_KEY": "",
    "DEEPSEEK_API_KEY": "",
    "XAI_API_KEY": "",
    "MOONSHOT_API_KEY": "",
    "WEBHOOK_EXECUTOR_URL": "",
    "PROOF_MAX_AGE_MS": "",
    "AGENT_DB": "",
    "COLUMNS": "200",
}


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


def invoke(runner: CliRunner, *args: str, **env: str):
    return runner.invoke(cli, list(args), env={**CLEAN_ENV, **env})


def _write(path, document) -> str:
    path.write_text(json.dumps(document), encoding="utf-8")
    return str(path)


@pytest.fixture
def record(proof_engine: ProofEngine) -> dict:
    proof = proof_engine.generate(ProofType.LLM_COMPLETION, INPUT, OUTPUT)
    return {
        "orderId": order_id(1),
        "serviceType": "sentiment-analysis",
        "input": INPUT,
        "output": OUTPUT,
        "proof": proof.to_wire(),
    }


# ---------------------------------------------------------------------------
# verify
# ---------------------------------------------------------------------------


class TestVerify:
    def test_valid_record(self, runner: CliRunner, record: dict, tmp_path) -> None:
        path = _write(tmp_path / "record.json", record)
        result = invoke(runner, "verify", path, "--signer", SIGNER_ADDRESS)
        assert result.exit_code == 0, result.output
        assert "Proof valid" in result.output

    def test_bare_proof(self, runner: CliRunner, record: dict, tmp_path) -> None:
        path = _write(tmp_path / "proof.json", record["proof"])
        result = invoke(runner, "verify", path, "--signer", SIGNER_ADDRESS.lower())
        assert result.exit_code == 0, result.output

    def test_output_override_mismatch(self, runner: CliRunner, record: dict, tmp_path) -> None:
        path = _write(tmp_path / "record.json", record)
        other = _write(tmp_path / "output.json", {"sentiment": "negative"})
        result = invoke(runner, "verify", path, "--signer", SIGNER_ADDRESS, "--output", other)
        assert result.exit_code == 1
        assert "Proof invalid" in result.output
        assert "Output hash mismatch" in result.output

    def test_wrong_signer(self, runner: CliRunner, record: dict, tmp_path) -> None:
        path = _write(tmp_path / "record.json", record)
        result = invoke(runner, "verify", path, "--signer", OTHER_ADDRESS)
        assert result.exit_code == 1
        assert "Invalid signature" in result.output

    def test_stale_proof(self, runner: CliRunner, proof_engine: ProofEngine, tmp_path) -> None:
        proof = proof_engine.generate(ProofType.DETERMINISTIC, INPUT, OUTPUT, timestamp=1_000)
        path = _write(tmp_path / "proof.json", proof.to_wire())
        result = invoke(runner, "verify", path, "--signer", SIGNER_ADDRESS, "--max-age-ms", "60000")
        assert result.exit_code == 1
        assert "Proof timestamp out of range" in result.output

    def test_unreadable_document(self, runner: CliRunner, tmp_path) -> None:
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        result = invoke(runner, "verify", str(path), "--signer", SIGNER_ADDRESS)
        assert result.exit_code == 1
        assert "Error:" in result.output

    def test_signer_required(self, runner: CliRunner, record: dict, tmp_path) -> None:
        path = _write(tmp_path / "record.json", record)
        result = invoke(runner, "verify", path)
        assert result.exit_code == 2


# ---------------------------------------------------------------------------
# orders
# ---------------------------------------------------------------------------


@pytest.fixture
def db_path(tmp_path) -> str:
    path = str(tmp_path / "runtime.db")
    engine = create_runtime_engine(path)
    init_db(engine)
    with create_session_factory(engine)() as session:
        store = RuntimeStore.from_session(session)
        store.orders.add(make_order(1, service_type="sentiment-analysis"))
        store.orders.add(make_order(2, service_type="translation"))
        store.orders.transition(order_id(2), OrderStatus.COMPLETED, result_uri="mem://2")
        store.commit()
    engine.dispose()
    return path


class TestOrders:
    def test_lists_orders(self, runner: CliRunner, db_path: str) -> None:
        result = invoke(runner, "--db", db_path, "orders")
        assert result.exit_code == 0, result.output
        assert "sentiment-analysis" in result.output
        assert "translation" in result.output
        assert "pending" in result.output

    def test_status_filter(self, runner: CliRunner, db_path: str) -> None:
        result = invoke(runner, "--db", db_path, "orders", "--status", "completed")
        assert result.exit_code == 0, result.output
        assert "translation" in result.output
        assert "sentiment-analysis" not in result.output

    def test_no_matching_orders(self, runner: CliRunner, db_path: str) -> None:
        result = invoke(runner, "--db", db_path, "orders", "--status", "disputed")
        assert result.exit_code == 0
        assert "No orders." in result.output

    def test_db_from_environment(self, runner: CliRunner, db_path: str) -> None:
        result = invoke(runner, "orders", AGENT_DB=db_path)
        assert result.exit_code == 0, result.output
        assert "translation" in result.output

    def test_missing_database(self, runner: CliRunner, tmp_path) -> None:
        result = invoke(runner, "--db", str(tmp_path / "missing.db"), "orders")
        assert result.exit_code == 1
        assert "Database not found" in result.output


# ---------------------------------------------------------------------------
# result
# ---------------------------------------------------------------------------


class TestResult:
    def test_file_locator(self, runner: CliRunner, record: dict, tmp_path) -> None:
        path = _write(tmp_path / "result.json", record)
        result = invoke(runner, "result", f"file://{path}")
        assert result.exit_code == 0, result.output
        assert order_id(1) in result.output
        assert "sentiment-analysis" in result.output

    def test_missing_file(self, runner: CliRunner, tmp_path) -> None:
        result = invoke(runner, "result", f"file://{tmp_path}/nothing.json")
        assert result.exit_code == 1
        assert "No result found" in result.output

    def test_unsupported_locator(self, runner: CliRunner) -> None:
        result = invoke(runner, "result", "s3://bucket/key")
        assert result.exit_code == 1
        assert "Unsupported locator" in result.output


# ---------------------------------------------------------------------------
# health and ledger commands
# ---------------------------------------------------------------------------


class TestHealth:
    def test_benchmark_only(self, runner: CliRunner) -> None:
        result = invoke(runner, "health", ENABLE_BENCHMARK_EXECUTOR="true")
        assert result.exit_code == 0, result.output
        assert "benchmark" in result.output
        assert "ok" in result.output

    def test_no_executors(self, runner: CliRunner) -> None:
        result = invoke(runner, "health", ENABLE_BENCHMARK_EXECUTOR="false")
        assert result.exit_code == 0
        assert "No executors configured." in result.output


class TestLedgerCommands:
    def test_register_requires_configuration(self, runner: CliRunner) -> None:
        result = invoke(runner, "register", "ipfs://QmMeta")
        assert result.exit_code == 1
        assert "AGENT_PRIVATE_KEY is required" in result.output

    def test_offer_rejects_non_integer_price(self, runner: CliRunner) -> None:
        result = invoke(runner, "offer", "echo", "cheap", "ipfs://QmSvc")
        assert result.exit_code == 2
