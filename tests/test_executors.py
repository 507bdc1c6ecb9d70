"""Tests for executors and the capability-routing registry.

Provider and webhook traffic goes through httpx.MockTransport; no test
reaches the network.
"""

from __future__ import annotations

import base64
import json

import httpx
import pytest
import tenacity

from agent_runtime.executors import (
    BenchmarkExecutor,
    ExecutorRegistry,
    ProviderExecutor,
    WebhookExecutor,
    build_prompt,
    matches_capability,
)
from agent_runtime.hashing import digest, hex_digest
from agent_runtime.llm import OpenAICompatibleClient
from agent_runtime.models import EMPTY_RESULT_HASH, ProofType, TaskInput


def _task(service_type: str = "echo", **payload) -> TaskInput:
    return TaskInput(
        order_id="0x" + "ab" * 32,
        service_type=service_type,
        payload=payload or {"text": "hello"},
        total_price=10**18,
        units=1,
        buyer="0xbuyer",
        service_id="7",
    )


def _mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class _Named:
    """Minimal executor used to exercise routing."""

    version = "0.0.1"

    def __init__(self, executor_id: str, service_types: list[str], healthy=True) -> None:
        self.id = executor_id
        self.name = executor_id.title()
        self.service_types = service_types
        self._healthy = healthy

    def handles(self, service_type: str) -> bool:
        return any(matches_capability(p, service_type) for p in self.service_types)

    async def health_check(self) -> bool:
        if isinstance(self._healthy, Exception):
            raise self._healthy
        return self._healthy


# ---------------------------------------------------------------------------
# Capability matching and registry
# ---------------------------------------------------------------------------


class TestCapabilityMatching:
    @pytest.mark.parametrize(
        "pattern,service_type,expected",
        [
            ("*", "anything", True),
            ("text-*", "text-generation", True),
            ("text-*", "code-review", False),
            ("sentiment-analysis", "Sentiment-Analysis", True),
            ("translation", "translation-pro", False),
        ],
    )
    def test_patterns(self, pattern: str, service_type: str, expected: bool) -> None:
        assert matches_capability(pattern, service_type) is expected


class TestExecutorRegistry:
    def test_find_uses_registration_order(self) -> None:
        registry = ExecutorRegistry([_Named("first", ["text-*"]), _Named("second", ["*"])])
        assert registry.find("text-generation").id == "first"
        assert registry.find("code-review").id == "second"

    def test_find_none(self) -> None:
        registry = ExecutorRegistry([_Named("only", ["echo"])])
        assert registry.find("translation") is None

    def test_find_all(self) -> None:
        registry = ExecutorRegistry([_Named("a", ["echo"]), _Named("b", ["*"]), _Named("c", ["x"])])
        assert [e.id for e in registry.find_all("echo")] == ["a", "b"]

    def test_reregister_keeps_position(self) -> None:
        registry = ExecutorRegistry([_Named("a", ["*"]), _Named("b", ["*"])])
        registry.register(_Named("a", ["echo"]))
        assert [e.id for e in registry.list()] == ["a", "b"]
        assert registry.find("other").id == "b"

    def test_unregister(self) -> None:
        registry = ExecutorRegistry([_Named("a", ["*"])])
        assert registry.unregister("a").id == "a"
        assert "a" not in registry
        assert registry.unregister("a") is None
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_health_check_treats_exception_as_unhealthy(self) -> None:
        registry = ExecutorRegistry(
            [
                _Named("ok", ["*"]),
                _Named("down", ["*"], healthy=False),
                _Named("boom", ["*"], healthy=RuntimeError("probe failed")),
            ]
        )
        assert await registry.health_check() == {"ok": True, "down": False, "boom": False}


# ---------------------------------------------------------------------------
# Benchmark executor
# ---------------------------------------------------------------------------


class TestBenchmarkExecutor:
    @pytest.mark.asyncio
    async def test_echo_result(self) -> None:
        executor = BenchmarkExecutor()
        task = _task(text="hi")
        result = await executor.execute(task)
        assert result.success
        assert result.output["echo"] == {"text": "hi"}
        assert result.output["digest"] == hex_digest({"text": "hi"})
        assert result.result_hash == digest(result.output)
        assert result.proof_type is ProofType.DETERMINISTIC
        assert result.evidence.seed == task.order_id
        assert result.metadata.executor_id == "benchmark"

    @pytest.mark.asyncio
    async def test_simulated_failure(self) -> None:
        result = await BenchmarkExecutor().execute(_task(fail=True))
        assert not result.success
        assert result.error == "Simulated failure"
        assert result.result_hash == EMPTY_RESULT_HASH

    def test_default_capabilities(self) -> None:
        executor = BenchmarkExecutor()
        assert executor.handles("echo")
        assert not executor.handles("translation")

    @pytest.mark.asyncio
    async def test_estimate_is_confident(self) -> None:
        estimate = await BenchmarkExecutor(latency_ms=5).estimate(_task())
        assert estimate.confidence == 1.0
        assert estimate.estimated_duration_ms == 5
        assert estimate.estimated_cost == 10**18


# ---------------------------------------------------------------------------
# Webhook executor
# ---------------------------------------------------------------------------


class TestWebhookExecutor:
    @pytest.mark.asyncio
    async def test_success_mapping(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json={
                    "success": True,
                    "output": {"translated": "hola"},
                    "metadata": {"modelUsed": "m-1", "tokensUsed": 12},
                },
            )

        executor = WebhookExecutor(
            "https://hook.test/run", ["translation"], api_key="k",
            http_client=_mock_client(handler),
        )
        result = await executor.execute(_task("translation", text="hello"))
        assert result.success
        assert result.output == {"translated": "hola"}
        assert result.metadata.model_used == "m-1"
        assert result.metadata.tokens_used == 12

        body = json.loads(seen[0].content)
        assert body["totalPrice"] == str(10**18)
        assert body["units"] == "1"
        assert body["payload"] == {"text": "hello"}
        assert seen[0].headers["Authorization"] == "Bearer k"

    @pytest.mark.asyncio
    async def test_non_dict_output_wrapped(self) -> None:
        executor = WebhookExecutor(
            "https://hook.test/run", ["*"],
            http_client=_mock_client(
                lambda r: httpx.Response(200, json={"success": True, "output": "plain"})
            ),
        )
        result = await executor.execute(_task())
        assert result.output == {"result": "plain"}

    @pytest.mark.asyncio
    async def test_http_error_is_failed_result(self) -> None:
        executor = WebhookExecutor(
            "https://hook.test/run", ["*"],
            http_client=_mock_client(lambda r: httpx.Response(502)),
        )
        result = await executor.execute(_task())
        assert not result.success
        assert result.error.startswith("Webhook returned 502")

    @pytest.mark.asyncio
    async def test_reported_failure(self) -> None:
        executor = WebhookExecutor(
            "https://hook.test/run", ["*"],
            http_client=_mock_client(
                lambda r: httpx.Response(200, json={"success": False, "error": "bad input"})
            ),
        )
        result = await executor.execute(_task())
        assert not result.success
        assert result.error == "bad input"

    @pytest.mark.asyncio
    async def test_transport_error_is_failed_result(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        executor = WebhookExecutor(
            "https://hook.test/run", ["*"], http_client=_mock_client(handler)
        )
        result = await executor.execute(_task())
        assert not result.success
        assert "refused" in result.error

    def test_identity(self) -> None:
        executor = WebhookExecutor(
            "https://hook.test/run", ["*"],
            http_client=_mock_client(lambda r: httpx.Response(200)),
        )
        assert executor.id == "webhook-" + hex_digest("https://hook.test/run")[:8]
        assert executor.name == "Webhook Executor (hook.test)"

    def test_distinct_urls_register_separately(self) -> None:
        client = _mock_client(lambda r: httpx.Response(200))
        first = WebhookExecutor("https://a.test/run", ["translation"], http_client=client)
        second = WebhookExecutor("https://b.test/run", ["code-review"], http_client=client)
        registry = ExecutorRegistry([first, second])
        assert first.id != second.id
        assert registry.list() == [first, second]
        assert registry.find("code-review") is second

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status,expected", [(200, True), (404, True), (500, False)])
    async def test_health_check(self, status: int, expected: bool) -> None:
        urls: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            urls.append(str(request.url))
            return httpx.Response(status)

        executor = WebhookExecutor(
            "https://hook.test/api/run", ["*"], http_client=_mock_client(handler)
        )
        assert await executor.health_check() is expected
        assert urls == ["https://hook.test/health"]

    @pytest.mark.asyncio
    async def test_health_check_transport_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("down", request=request)

        executor = WebhookExecutor(
            "https://hook.test/run", ["*"], http_client=_mock_client(handler)
        )
        assert await executor.health_check() is False


# ---------------------------------------------------------------------------
# Provider executor
# ---------------------------------------------------------------------------


def _openai_response(content: str = "positive") -> dict:
    return {
        "id": "chatcmpl-1",
        "choices": [{"message": {"role": "assistant", "content": content}}],
        "usage": {"prompt_tokens": 1_000_000, "completion_tokens": 1_000_000},
    }


class TestProviderExecutor:
    def test_build_prompt_precedence(self) -> None:
        assert build_prompt({"prompt": "p", "text": "t"}) == "p"
        assert build_prompt({"text": "t"}) == "t"
        assert build_prompt({"b": 1, "a": 2}) == '{"a":2,"b":1}'

    def test_default_service_types(self) -> None:
        client = OpenAICompatibleClient(
            "openai", api_key="sk", http_client=_mock_client(lambda r: httpx.Response(200))
        )
        executor = ProviderExecutor(client)
        assert executor.id == "openai"
        assert executor.name == "OpenAI GPT"
        assert executor.handles("sentiment-analysis")
        assert not executor.handles("benchmark")

    @pytest.mark.asyncio
    async def test_execute_records_evidence_and_cost(self) -> None:
        seen: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(json.loads(request.content))
            return httpx.Response(200, json=_openai_response())

        client = OpenAICompatibleClient("openai", api_key="sk", http_client=_mock_client(handler))
        executor = ProviderExecutor(client)
        task = _task("sentiment-analysis", text="I love this product")
        result = await executor.execute(task)

        assert result.success
        assert result.proof_type is ProofType.LLM_COMPLETION
        assert result.output["content"] == "positive"
        assert result.output["model"] == "gpt-4o"
        assert result.output["cost"]["total"] == pytest.approx(12.5)
        assert result.metadata.tokens_used == 2_000_000
        assert result.metadata.model_used == "gpt-4o"

        request_body = seen[0]
        assert request_body["messages"][0] == {
            "role": "system",
            "content": f"Process sentiment-analysis order {task.order_id}",
        }
        assert request_body["messages"][1]["content"] == "I love this product"
        assert result.evidence.api_call_hash == hex_digest(request_body)
        raw = json.loads(base64.b64decode(result.evidence.raw_log))
        assert raw["response"]["id"] == "chatcmpl-1"

    @pytest.mark.asyncio
    async def test_provider_failure_is_failed_result(self) -> None:
        client = OpenAICompatibleClient(
            "openai", api_key="sk",
            http_client=_mock_client(lambda r: httpx.Response(401, text="bad key")),
        )
        result = await ProviderExecutor(client).execute(_task("text-generation"))
        assert not result.success
        assert "authentication failed" in result.error

    @pytest.mark.asyncio
    async def test_retry_exhaustion_is_failed_result(self) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(503)

        client = OpenAICompatibleClient(
            "openai", api_key="sk", http_client=_mock_client(handler),
            retry_wait=tenacity.wait_none(),
        )
        result = await ProviderExecutor(client).execute(_task("text-generation"))
        assert not result.success
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_images_forwarded(self) -> None:
        seen: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(json.loads(request.content))
            return httpx.Response(200, json=_openai_response("a cat"))

        client = OpenAICompatibleClient("openai", api_key="sk", http_client=_mock_client(handler))
        task = _task("image-analysis", prompt="describe", images="https://img.test/cat.jpg")
        await ProviderExecutor(client).execute(task)
        content = seen[0]["messages"][1]["content"]
        assert content[1] == {"type": "image_url", "image_url": {"url": "https://img.test/cat.jpg"}}

    @pytest.mark.asyncio
    async def test_malformed_images_is_failed_result(self) -> None:
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, json=_openai_response())

        client = OpenAICompatibleClient("openai", api_key="sk", http_client=_mock_client(handler))
        result = await ProviderExecutor(client).execute(_task("image-analysis", prompt="x", images=5))
        assert not result.success
        assert "images must be a string or a list" in result.error
        assert calls == []

    @pytest.mark.asyncio
    async def test_unpriced_default_model_costs_nothing(self) -> None:
        client = OpenAICompatibleClient(
            "openai", api_key="sk", default_model="gpt-5",
            http_client=_mock_client(lambda r: httpx.Response(200, json=_openai_response())),
        )
        result = await ProviderExecutor(client).execute(_task("text-generation", prompt="x"))
        assert result.success
        assert result.output["cost"] == {"input": 0.0, "output": 0.0, "total": 0.0}
        assert result.metadata.cost_usd == 0.0

    @pytest.mark.asyncio
    async def test_health_check(self) -> None:
        client = OpenAICompatibleClient(
            "openai", api_key="sk", http_client=_mock_client(lambda r: httpx.Response(500))
        )
        assert await ProviderExecutor(client).health_check() is True
