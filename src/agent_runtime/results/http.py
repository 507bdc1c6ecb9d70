"""Result store backed by a remote HTTP sink."""

from __future__ import annotations

import json
import logging
from typing import Any
from urllib.parse import urlsplit

import httpx

from agent_runtime.exceptions import StorageError

logger = logging.getLogger(__name__)


class HTTPResultStore:
    """POSTs payloads to an endpoint that answers ``{"uri": ...}``.

    Retrieval GETs the returned URI. Non-2xx responses on store raise
    :class:`StorageError`; on retrieve they yield None.
    """

    scheme = "http"

    def __init__(
        self,
        endpoint: str,
        api_key: str | None = None,
        *,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._endpoint = endpoint
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._headers = headers
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    async def store(self, payload: dict[str, Any]) -> str:
        try:
            body = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
        except (TypeError, ValueError) as exc:
            raise StorageError(f"Result is not JSON serializable: {exc}") from exc
        try:
            response = await self._client.post(
                self._endpoint, content=body.encode("utf-8"), headers=self._headers
            )
        except httpx.HTTPError as exc:
            raise StorageError(f"Failed to store result at {self._endpoint}: {exc}") from exc
        if not response.is_success:
            raise StorageError(
                f"Failed to store result: {response.reason_phrase}",
                status_code=response.status_code,
            )
        try:
            uri = response.json()["uri"]
        except (ValueError, KeyError, TypeError) as exc:
            raise StorageError(f"Storage sink returned no uri: {response.text}") from exc
        logger.info("Stored result at %s", uri)
        return uri

    async def retrieve(self, locator: str) -> dict[str, Any] | None:
        if urlsplit(locator).scheme not in ("http", "https"):
            return None
        try:
            response = await self._client.get(locator, headers=self._headers)
            if not response.is_success:
                return None
            return response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.debug("Could not retrieve %s: %s", locator, exc)
            return None

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
