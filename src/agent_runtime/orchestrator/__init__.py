"""Order execution: the worker loop and runtime event bus."""

from agent_runtime.orchestrator.events import EventBus, EventCallback, RuntimeEvent, RuntimeEventType
from agent_runtime.orchestrator.loop import DEFAULT_MAX_CONCURRENT, WorkerLoop

__all__ = [
    "DEFAULT_MAX_CONCURRENT",
    "EventBus",
    "EventCallback",
    "RuntimeEvent",
    "RuntimeEventType",
    "WorkerLoop",
]
