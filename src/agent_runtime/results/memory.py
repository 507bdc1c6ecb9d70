"""In-process result store for tests and dry runs."""

from __future__ import annotations

import copy
import itertools
from typing import Any

from agent_runtime.results.base import owns


class MemoryResultStore:
    """Keeps payloads in a dict keyed by ``mem://<n>`` locators."""

    scheme = "mem://"

    def __init__(self) -> None:
        self._items: dict[str, dict[str, Any]] = {}
        self._counter = itertools.count(1)

    async def store(self, payload: dict[str, Any]) -> str:
        locator = f"{self.scheme}{next(self._counter)}"
        self._items[locator] = copy.deepcopy(payload)
        return locator

    async def retrieve(self, locator: str) -> dict[str, Any] | None:
        if not owns(self, locator):
            return None
        item = self._items.get(locator)
        return copy.deepcopy(item) if item is not None else None

    def clear(self) -> None:
        """Drop every stored payload and restart numbering."""
        self._items.clear()
        self._counter = itertools.count(1)

    def __len__(self) -> int:
        return len(self._items)

    async def aclose(self) -> None:
        return None
