"""Provider-specific error hierarchy.

All provider errors inherit from AgentRuntimeError for consistent exception handling.
"""

from __future__ import annotations

from agent_runtime.exceptions import AgentRuntimeError


class ProviderError(AgentRuntimeError):
    """Base for all model provider client errors."""


class ProviderConfigError(ProviderError):
    """Missing or invalid provider configuration (e.g., no API key)."""


class ProviderRateLimitError(ProviderError):
    """Rate limited by the API (429).

    Attributes:
        retry_after: Seconds to wait before retrying (from Retry-After header),
            or None if not provided.
    """

    def __init__(self, message: str = "Rate limited", retry_after: float | None = None) -> None:
        self.retry_after = retry_after
        if retry_after is not None:
            message = f"{message} (retry after {retry_after}s)"
        super().__init__(message)


class ProviderAuthError(ProviderError):
    """Authentication failed (401/403)."""


class ProviderResponseError(ProviderError):
    """Unexpected response format from a provider API."""


class StreamConsumedError(ProviderError):
    """A TextStream was iterated a second time."""
