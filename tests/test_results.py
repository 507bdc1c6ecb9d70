"""Tests for result store backends and the backend factory.

HTTP and IPFS gateway traffic goes through httpx.MockTransport.
"""

from __future__ import annotations

import json
from types import SimpleNamespace

import httpx
import pytest

from agent_runtime.exceptions import ConfigurationError, StorageError
from agent_runtime.results import (
    HTTPResultStore,
    IPFSResultStore,
    LocalResultStore,
    MemoryResultStore,
    content_id,
    create_result_store,
)

PAYLOAD = {
    "orderId": "0x" + "12" * 32,
    "serviceType": "sentiment-analysis",
    "input": {"text": "great"},
    "output": {"sentiment": "positive"},
}


def _mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


# ---------------------------------------------------------------------------
# Memory
# ---------------------------------------------------------------------------


class TestMemoryResultStore:
    @pytest.mark.asyncio
    async def test_round_trip(self, memory_store: MemoryResultStore) -> None:
        locator = await memory_store.store(PAYLOAD)
        assert locator == "mem://1"
        assert await memory_store.retrieve(locator) == PAYLOAD

    @pytest.mark.asyncio
    async def test_stored_copy_is_isolated(self, memory_store: MemoryResultStore) -> None:
        payload = {"output": {"x": 1}}
        locator = await memory_store.store(payload)
        payload["output"]["x"] = 2
        assert (await memory_store.retrieve(locator))["output"]["x"] == 1

    @pytest.mark.asyncio
    async def test_foreign_scheme_is_none(self, memory_store: MemoryResultStore) -> None:
        await memory_store.store(PAYLOAD)
        assert await memory_store.retrieve("ipfs://Qm123") is None

    @pytest.mark.asyncio
    async def test_unknown_locator_is_none(self, memory_store: MemoryResultStore) -> None:
        assert await memory_store.retrieve("mem://99") is None

    @pytest.mark.asyncio
    async def test_clear(self, memory_store: MemoryResultStore) -> None:
        await memory_store.store(PAYLOAD)
        memory_store.clear()
        assert len(memory_store) == 0
        assert await memory_store.store(PAYLOAD) == "mem://1"


# ---------------------------------------------------------------------------
# Local filesystem
# ---------------------------------------------------------------------------


class TestLocalResultStore:
    @pytest.mark.asyncio
    async def test_round_trip(self, tmp_path) -> None:
        store = LocalResultStore(tmp_path / "results")
        locator = await store.store(PAYLOAD)
        assert locator.startswith("file://")
        assert await store.retrieve(locator) == PAYLOAD

    @pytest.mark.asyncio
    async def test_file_name_uses_order_prefix(self, tmp_path) -> None:
        store = LocalResultStore(tmp_path)
        locator = await store.store(PAYLOAD)
        name = locator.rsplit("/", 1)[-1]
        assert name.startswith(PAYLOAD["orderId"][:10] + "-")
        assert name.endswith(".json")

    @pytest.mark.asyncio
    async def test_file_is_indented_json(self, tmp_path) -> None:
        store = LocalResultStore(tmp_path)
        locator = await store.store({"orderId": "0x1", "amount": 10**20})
        text = open(locator[len("file://"):], encoding="utf-8").read()
        assert "\n  " in text
        assert json.loads(text)["amount"] == 10**20

    @pytest.mark.asyncio
    async def test_wei_amounts_survive_round_trip(self, tmp_path) -> None:
        store = LocalResultStore(tmp_path)
        payload = {**PAYLOAD, "input": {"amount": 10**18}, "output": {"refund": -(2**60)}}
        locator = await store.store(payload)
        assert await store.retrieve(locator) == payload

    @pytest.mark.asyncio
    async def test_unserializable_payload_raises(self, tmp_path) -> None:
        with pytest.raises(StorageError):
            await LocalResultStore(tmp_path).store({**PAYLOAD, "output": {"blob": object()}})

    @pytest.mark.asyncio
    async def test_missing_file_is_none(self, tmp_path) -> None:
        store = LocalResultStore(tmp_path)
        assert await store.retrieve(f"file://{tmp_path}/missing.json") is None

    @pytest.mark.asyncio
    async def test_foreign_scheme_is_none(self, tmp_path) -> None:
        assert await LocalResultStore(tmp_path).retrieve("mem://1") is None

    @pytest.mark.asyncio
    async def test_unwritable_directory_raises(self, tmp_path) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        store = LocalResultStore(blocker / "results")
        with pytest.raises(StorageError):
            await store.store(PAYLOAD)


# ---------------------------------------------------------------------------
# HTTP sink
# ---------------------------------------------------------------------------


class TestHTTPResultStore:
    @pytest.mark.asyncio
    async def test_store_posts_canonical_json(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"uri": "https://sink.test/r/1"})

        store = HTTPResultStore(
            "https://sink.test/store", "secret", http_client=_mock_client(handler)
        )
        locator = await store.store({"b": 1, "a": 2})
        assert locator == "https://sink.test/r/1"
        assert seen[0].content == b'{"a":2,"b":1}'
        assert seen[0].headers["Authorization"] == "Bearer secret"

    @pytest.mark.asyncio
    async def test_non_2xx_raises_with_status(self) -> None:
        store = HTTPResultStore(
            "https://sink.test/store",
            http_client=_mock_client(lambda r: httpx.Response(503)),
        )
        with pytest.raises(StorageError) as exc_info:
            await store.store(PAYLOAD)
        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_missing_uri_raises(self) -> None:
        store = HTTPResultStore(
            "https://sink.test/store",
            http_client=_mock_client(lambda r: httpx.Response(200, json={"ok": True})),
        )
        with pytest.raises(StorageError):
            await store.store(PAYLOAD)

    @pytest.mark.asyncio
    async def test_retrieve(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/r/1":
                return httpx.Response(200, json=PAYLOAD)
            return httpx.Response(404)

        store = HTTPResultStore("https://sink.test/store", http_client=_mock_client(handler))
        assert await store.retrieve("https://sink.test/r/1") == PAYLOAD
        assert await store.retrieve("https://sink.test/r/2") is None

    @pytest.mark.asyncio
    async def test_wei_amounts_survive_round_trip(self) -> None:
        documents: dict[str, bytes] = {}

        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "POST":
                documents["/r/1"] = request.content
                return httpx.Response(200, json={"uri": "https://sink.test/r/1"})
            return httpx.Response(200, content=documents[request.url.path])

        store = HTTPResultStore("https://sink.test/store", http_client=_mock_client(handler))
        payload = {**PAYLOAD, "input": {"amount": 10**18}}
        locator = await store.store(payload)
        assert await store.retrieve(locator) == payload

    @pytest.mark.asyncio
    async def test_foreign_scheme_is_none(self) -> None:
        store = HTTPResultStore(
            "https://sink.test/store",
            http_client=_mock_client(lambda r: httpx.Response(500)),
        )
        assert await store.retrieve("ipfs://Qm1") is None


# ---------------------------------------------------------------------------
# IPFS
# ---------------------------------------------------------------------------


class TestIPFSResultStore:
    def test_content_id_format(self) -> None:
        cid = content_id(PAYLOAD)
        assert cid.startswith("Qm")
        assert len(cid) == 48
        assert content_id(dict(reversed(list(PAYLOAD.items())))) == cid

    @pytest.mark.asyncio
    async def test_round_trip_pinned(self) -> None:
        store = IPFSResultStore(http_client=_mock_client(lambda r: httpx.Response(500)))
        locator = await store.store(PAYLOAD)
        assert locator == f"ipfs://{content_id(PAYLOAD)}"
        assert await store.retrieve(locator) == PAYLOAD

    @pytest.mark.asyncio
    async def test_unknown_cid_fetched_from_gateway(self) -> None:
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(str(request.url))
            return httpx.Response(200, json={"remote": True})

        store = IPFSResultStore("https://gw.test/", http_client=_mock_client(handler))
        assert await store.retrieve("ipfs://QmRemote") == {"remote": True}
        assert seen == ["https://gw.test/ipfs/QmRemote"]

    @pytest.mark.asyncio
    async def test_gateway_failure_is_none(self) -> None:
        store = IPFSResultStore(http_client=_mock_client(lambda r: httpx.Response(404)))
        assert await store.retrieve("ipfs://QmMissing") is None

    @pytest.mark.asyncio
    async def test_foreign_scheme_is_none(self) -> None:
        store = IPFSResultStore(http_client=_mock_client(lambda r: httpx.Response(500)))
        assert await store.retrieve("file:///tmp/x.json") is None


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def _config(backend: str, target: str = "./data/results", api_key: str | None = None):
    return SimpleNamespace(storage_backend=backend, storage_target=target, storage_api_key=api_key)


class TestCreateResultStore:
    def test_local(self, tmp_path) -> None:
        store = create_result_store(_config("local", str(tmp_path)))
        assert isinstance(store, LocalResultStore)
        assert store.base_dir == tmp_path

    def test_ipfs_defaults_gateway(self) -> None:
        store = create_result_store(_config("ipfs"))
        assert isinstance(store, IPFSResultStore)
        assert store.gateway == "https://ipfs.io"

    def test_http_requires_url(self) -> None:
        with pytest.raises(ConfigurationError):
            create_result_store(_config("http", "./data/results"))

    def test_http(self) -> None:
        store = create_result_store(_config("http", "https://sink.test/store", "k"))
        assert isinstance(store, HTTPResultStore)

    def test_memory(self) -> None:
        assert isinstance(create_result_store(_config("memory")), MemoryResultStore)

    def test_unknown_backend(self) -> None:
        with pytest.raises(ConfigurationError, match="Unknown storage backend"):
            create_result_store(_config("s3"))
