"""Task executors and capability routing."""

from agent_runtime.executors.base import (
    Executor,
    build_metadata,
    default_estimate,
    failed_result,
    handles_any,
    matches_capability,
    succeeded_result,
)
from agent_runtime.executors.provider import ProviderExecutor, build_prompt
from agent_runtime.executors.registry import ExecutorRegistry
from agent_runtime.executors.stub import BenchmarkExecutor
from agent_runtime.executors.webhook import WebhookExecutor

__all__ = [
    "BenchmarkExecutor",
    "Executor",
    "ExecutorRegistry",
    "ProviderExecutor",
    "WebhookExecutor",
    "build_metadata",
    "build_prompt",
    "default_estimate",
    "failed_result",
    "handles_any",
    "matches_capability",
    "succeeded_result",
]
