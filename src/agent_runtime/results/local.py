"""Filesystem result store for development setups."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any

from agent_runtime.exceptions import StorageError
from agent_runtime.hashing import hex_digest
from agent_runtime.results.base import owns

logger = logging.getLogger(__name__)

DEFAULT_RESULTS_DIR = "./data/results"


class LocalResultStore:
    """Writes each payload to ``<dir>/<order_id[:10]>-<hash[:16]>.json``.

    The directory is created on first write. Locators are ``file://<path>``.
    """

    scheme = "file://"

    def __init__(self, base_dir: str | Path = DEFAULT_RESULTS_DIR) -> None:
        self._base_dir = Path(base_dir)

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    async def store(self, payload: dict[str, Any]) -> str:
        order_id = str(payload.get("orderId", "result"))
        try:
            text = json.dumps(payload, indent=2, ensure_ascii=False)
            filename = f"{order_id[:10]}-{hex_digest(payload)[:16]}.json"
        except (TypeError, ValueError) as exc:
            raise StorageError(f"Result for {order_id} is not JSON serializable: {exc}") from exc
        path = self._base_dir / filename
        try:
            await asyncio.to_thread(self._write, path, text)
        except OSError as exc:
            raise StorageError(f"Failed to write result file {path}: {exc}") from exc
        logger.info("Stored result: %s", path)
        return f"{self.scheme}{path}"

    def _write(self, path: Path, text: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")

    async def retrieve(self, locator: str) -> dict[str, Any] | None:
        if not owns(self, locator):
            return None
        path = Path(locator[len(self.scheme):])
        try:
            text = await asyncio.to_thread(path.read_text, encoding="utf-8")
            return json.loads(text)
        except (OSError, ValueError) as exc:
            logger.debug("Could not read result %s: %s", path, exc)
            return None

    async def aclose(self) -> None:
        return None
