"""IPFS-addressed result store.

Payloads are addressed by a content identifier derived from the SHA-256 of
their canonical JSON. Pinned payloads are held in-process until a pinning
service is wired in; unknown identifiers are fetched from the gateway.
"""

from __future__ import annotations

import copy
import logging
from typing import Any

import httpx

from agent_runtime.hashing import hex_digest
from agent_runtime.results.base import owns

logger = logging.getLogger(__name__)

DEFAULT_GATEWAY = "https://ipfs.io"


def content_id(payload: Any) -> str:
    """Return the ``Qm``-prefixed identifier for *payload*."""
    return "Qm" + hex_digest(payload)[:46]


class IPFSResultStore:
    scheme = "ipfs://"

    def __init__(
        self,
        gateway: str = DEFAULT_GATEWAY,
        *,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._gateway = gateway.rstrip("/")
        self._pinned: dict[str, dict[str, Any]] = {}
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    @property
    def gateway(self) -> str:
        return self._gateway

    async def store(self, payload: dict[str, Any]) -> str:
        cid = content_id(payload)
        # TODO: pin through an IPFS HTTP API instead of holding payloads in memory.
        self._pinned[cid] = copy.deepcopy(payload)
        logger.info("Pinned result for order %s as %s", payload.get("orderId"), cid)
        return f"{self.scheme}{cid}"

    async def retrieve(self, locator: str) -> dict[str, Any] | None:
        if not owns(self, locator):
            return None
        cid = locator[len(self.scheme):]
        if cid in self._pinned:
            return copy.deepcopy(self._pinned[cid])
        try:
            response = await self._client.get(f"{self._gateway}/ipfs/{cid}")
            if not response.is_success:
                return None
            return response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.debug("Gateway fetch failed for %s: %s", cid, exc)
            return None

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
