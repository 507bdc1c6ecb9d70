"""Result store protocol.

A result store persists a completed order's ResultRecord payload and hands
back a locator string (``ipfs://``, ``file://``, ``mem://`` or an HTTP URL).
Stores only answer for locators in their own scheme; anything else
retrieves as None.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class ResultStore(Protocol):
    """Protocol for pluggable result persistence backends."""

    scheme: str

    async def store(self, payload: dict[str, Any]) -> str:
        """Persist *payload* and return its locator.

        Raises:
            StorageError: If the backend could not persist the payload.
        """
        ...

    async def retrieve(self, locator: str) -> dict[str, Any] | None:
        """Return the payload stored at *locator*, or None."""
        ...

    async def aclose(self) -> None:
        """Release underlying resources."""
        ...


def owns(store: ResultStore, locator: str) -> bool:
    """True if *locator* uses the store's scheme."""
    return locator.startswith(store.scheme)
