"""Model provider client infrastructure.

Provides async httpx clients for OpenAI-compatible, Anthropic and Google
APIs, the provider protocol, pricing tables and single-pass text streams.
"""

from agent_runtime.llm.client import (
    PROVIDER_PRESETS,
    AnthropicClient,
    GoogleClient,
    OpenAICompatibleClient,
    create_provider_client,
)
from agent_runtime.llm.errors import (
    ProviderAuthError,
    ProviderConfigError,
    ProviderError,
    ProviderRateLimitError,
    ProviderResponseError,
    StreamConsumedError,
)
from agent_runtime.llm.pricing import Cost, ModelRate, calculate_cost
from agent_runtime.llm.protocols import Completion, CompletionRequest, ProviderClient, Usage
from agent_runtime.llm.streaming import TextStream

__all__ = [
    "PROVIDER_PRESETS",
    "AnthropicClient",
    "GoogleClient",
    "OpenAICompatibleClient",
    "create_provider_client",
    "ProviderClient",
    "CompletionRequest",
    "Completion",
    "Usage",
    "TextStream",
    "Cost",
    "ModelRate",
    "calculate_cost",
    "ProviderError",
    "ProviderConfigError",
    "ProviderAuthError",
    "ProviderRateLimitError",
    "ProviderResponseError",
    "StreamConsumedError",
]
