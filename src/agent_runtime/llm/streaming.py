"""Single-pass streaming of provider text deltas."""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator, Callable
from typing import Any

import httpx

from agent_runtime.llm.errors import StreamConsumedError

logger = logging.getLogger(__name__)

DONE_SENTINEL = "[DONE]"


class TextStream:
    """Async iterator over text chunks that can be consumed exactly once.

    Iterating a second time raises :class:`StreamConsumedError`. ``aclose()``
    releases the underlying HTTP stream early; it is safe to call repeatedly.

    Usage::

        stream = client.stream(request)
        async for chunk in stream:
            print(chunk, end="")
    """

    def __init__(self, chunks: AsyncIterator[str]) -> None:
        self._chunks = chunks
        self._started = False
        self._closed = False

    def __aiter__(self) -> AsyncIterator[str]:
        if self._started:
            raise StreamConsumedError("Stream has already been consumed")
        self._started = True
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[str]:
        try:
            async for chunk in self._chunks:
                yield chunk
        finally:
            await self.aclose()

    @property
    def consumed(self) -> bool:
        return self._started

    async def text(self) -> str:
        """Drain the stream and return the concatenated text."""
        return "".join([chunk async for chunk in self])

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        closer = getattr(self._chunks, "aclose", None)
        if closer is not None:
            await closer()

    async def __aenter__(self) -> TextStream:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()


async def iter_sse_events(
    response: httpx.Response,
    extract: Callable[[dict[str, Any]], str | None],
) -> AsyncIterator[str]:
    """Yield text extracted from each ``data:`` event of a server-sent stream.

    Stops at the ``[DONE]`` sentinel or when the response ends. Lines that
    are not valid JSON are skipped.
    """
    async for line in response.aiter_lines():
        if not line.startswith("data: "):
            continue
        data = line[len("data: "):].strip()
        if data == DONE_SENTINEL:
            return
        try:
            parsed = json.loads(data)
        except ValueError:
            logger.debug("Skipping malformed stream event: %r", data[:80])
            continue
        text = extract(parsed)
        if text:
            yield text
