"""Provider client protocol and request/response value types."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from agent_runtime.llm.pricing import ModelRate
from agent_runtime.llm.streaming import TextStream


@dataclass(frozen=True)
class CompletionRequest:
    """Provider-neutral completion request.

    ``images`` entries are either ``http(s)`` URLs or bare base64 JPEG data.
    """

    prompt: str
    system_prompt: str | None = None
    model: str | None = None
    max_tokens: int = 4096
    temperature: float | None = None
    images: tuple[str, ...] = ()


@dataclass(frozen=True)
class Usage:
    prompt_tokens: int = 0
    completion_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens

    def as_dict(self) -> dict[str, int]:
        return {
            "promptTokens": self.prompt_tokens,
            "completionTokens": self.completion_tokens,
            "totalTokens": self.total_tokens,
        }


@dataclass
class Completion:
    """Normalized provider answer plus the exact wire request and response."""

    content: str
    model: str
    usage: Usage
    request_body: dict[str, Any] = field(default_factory=dict)
    raw: dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class ProviderClient(Protocol):
    """Protocol for pluggable model provider clients.

    The built-in OpenAI-compatible, Anthropic and Google clients implement it.
    """

    provider: str
    default_model: str
    pricing: dict[str, ModelRate]

    async def complete(self, request: CompletionRequest) -> Completion:
        """Send one completion request and return the normalized answer."""
        ...

    def stream(self, request: CompletionRequest) -> TextStream:
        """Return a single-pass stream of text deltas."""
        ...

    async def aclose(self) -> None:
        """Release underlying resources."""
        ...
