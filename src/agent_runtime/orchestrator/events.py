"""Runtime events and the callback bus that delivers them.

Callbacks run synchronously in the emitting task. A callback that raises
is logged and skipped; it never interrupts order processing.
"""

from __future__ import annotations

import enum
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)


class RuntimeEventType(str, enum.Enum):
    """Lifecycle notifications emitted by the runtime."""

    STARTED = "started"
    STOPPED = "stopped"
    ORDER_RECEIVED = "order_received"
    EXECUTION_STARTED = "execution_started"
    EXECUTION_COMPLETED = "execution_completed"
    EXECUTION_FAILED = "execution_failed"
    ORDER_COMPLETED = "order_completed"
    ERROR = "error"


@dataclass(frozen=True)
class RuntimeEvent:
    type: RuntimeEventType
    order_id: str | None = None
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)


EventCallback = Callable[[RuntimeEvent], None]


class EventBus:
    """Fan-out of runtime events to registered callbacks."""

    def __init__(self) -> None:
        self._callbacks: list[EventCallback] = []

    def subscribe(self, callback: EventCallback) -> Callable[[], None]:
        """Register *callback*; returns a function that unregisters it."""
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe

    def emit(
        self,
        type: RuntimeEventType,
        order_id: str | None = None,
        **data: Any,
    ) -> RuntimeEvent:
        event = RuntimeEvent(type=type, order_id=order_id, data=data)
        for callback in list(self._callbacks):
            try:
                callback(event)
            except Exception:
                logger.warning("Runtime event callback failed for %s", type.value, exc_info=True)
        return event
