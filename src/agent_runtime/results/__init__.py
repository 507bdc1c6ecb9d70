"""Result storage backends and the factory that selects one."""

from __future__ import annotations

from typing import Any

from agent_runtime.exceptions import ConfigurationError
from agent_runtime.results.base import ResultStore, owns
from agent_runtime.results.http import HTTPResultStore
from agent_runtime.results.ipfs import DEFAULT_GATEWAY, IPFSResultStore, content_id
from agent_runtime.results.local import DEFAULT_RESULTS_DIR, LocalResultStore
from agent_runtime.results.memory import MemoryResultStore

STORAGE_BACKENDS = ("local", "ipfs", "http", "memory")


def create_result_store(config: Any) -> ResultStore:
    """Build the result store named by ``config.storage_backend``.

    ``config.storage_target`` is the directory (local), gateway (ipfs) or
    endpoint (http). ``config.storage_api_key`` is sent as a bearer token to
    an HTTP sink.
    """
    backend = config.storage_backend
    target = config.storage_target
    if backend == "local":
        return LocalResultStore(target or DEFAULT_RESULTS_DIR)
    if backend == "ipfs":
        if not target or target == DEFAULT_RESULTS_DIR:
            target = DEFAULT_GATEWAY
        return IPFSResultStore(target)
    if backend == "http":
        if not target or not target.startswith(("http://", "https://")):
            raise ConfigurationError("STORAGE_TARGET must be an http(s) endpoint for the http backend")
        return HTTPResultStore(target, config.storage_api_key)
    if backend == "memory":
        return MemoryResultStore()
    raise ConfigurationError(
        f"Unknown storage backend '{backend}'; expected one of {', '.join(STORAGE_BACKENDS)}"
    )


__all__ = [
    "HTTPResultStore",
    "IPFSResultStore",
    "LocalResultStore",
    "MemoryResultStore",
    "ResultStore",
    "STORAGE_BACKENDS",
    "content_id",
    "create_result_store",
    "owns",
]
