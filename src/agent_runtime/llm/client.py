"""Built-in async httpx provider clients with tenacity retry.

Three wire formats are covered: OpenAI-compatible chat completions (OpenAI,
DeepSeek, Grok, Kimi), Anthropic messages and Google Gemini
generateContent. Configuration comes from constructor arguments or the
provider's environment variables.
"""

from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any

import httpx
import tenacity

from agent_runtime.llm.errors import (
    ProviderAuthError,
    ProviderConfigError,
    ProviderError,
    ProviderRateLimitError,
    ProviderResponseError,
)
from agent_runtime.llm.pricing import (
    ANTHROPIC_PRICING,
    DEEPSEEK_PRICING,
    GOOGLE_PRICING,
    GROK_PRICING,
    KIMI_PRICING,
    OPENAI_PRICING,
    ModelRate,
)
from agent_runtime.llm.protocols import Completion, CompletionRequest, Usage
from agent_runtime.llm.streaming import TextStream, iter_sse_events

logger = logging.getLogger(__name__)

_RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}
_AUTH_ERROR_STATUS_CODES = {401, 403}

DEFAULT_TEMPERATURE = 0.7
ANTHROPIC_VERSION = "2023-06-01"


def _is_retryable(exc: BaseException) -> bool:
    """Check if an exception is retryable.

    Retryable: 429, 500, 502, 503, 504, connection errors.
    Not retryable: 401, 403, 400, other client errors.
    """
    if isinstance(exc, ProviderAuthError):
        return False
    if isinstance(exc, ProviderRateLimitError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in _RETRYABLE_STATUS_CODES
    return isinstance(exc, (httpx.ConnectError, httpx.ConnectTimeout))


def _check_response(response: httpx.Response, provider: str) -> None:
    """Raise the matching provider error for a non-2xx response."""
    if response.status_code in _AUTH_ERROR_STATUS_CODES:
        raise ProviderAuthError(
            f"{provider} authentication failed: HTTP {response.status_code} - {response.text}"
        )

    if response.status_code == 429:
        retry_after_raw = response.headers.get("Retry-After")
        retry_after: float | None = None
        if retry_after_raw is not None:
            try:
                retry_after = float(retry_after_raw)
            except (ValueError, TypeError):
                retry_after = None
        raise ProviderRateLimitError(
            f"{provider} rate limited: HTTP 429 - {response.text}",
            retry_after=retry_after,
        )

    response.raise_for_status()


def _is_url(image: str) -> bool:
    return image.startswith(("http://", "https://"))


@dataclass(frozen=True)
class ProviderPreset:
    """Static description of one provider endpoint."""

    provider: str
    api_key_env: str
    base_url_env: str
    default_base_url: str
    default_model: str
    pricing: dict[str, ModelRate]
    supports_images: bool = False


PROVIDER_PRESETS: dict[str, ProviderPreset] = {
    "openai": ProviderPreset(
        "openai", "OPENAI_API_KEY", "OPENAI_BASE_URL",
        "https://api.openai.com/v1", "gpt-4o", OPENAI_PRICING, supports_images=True,
    ),
    "anthropic": ProviderPreset(
        "anthropic", "ANTHROPIC_API_KEY", "ANTHROPIC_BASE_URL",
        "https://api.anthropic.com", "claude-sonnet-4-20250514", ANTHROPIC_PRICING,
        supports_images=True,
    ),
    "google": ProviderPreset(
        "google", "GOOGLE_API_KEY", "GOOGLE_BASE_URL",
        "https://generativelanguage.googleapis.com/v1beta", "gemini-2.0-flash",
        GOOGLE_PRICING, supports_images=True,
    ),
    "deepseek": ProviderPreset(
        "deepseek", "DEEPSEEK_API_KEY", "DEEPSEEK_BASE_URL",
        "https://api.deepseek.com", "deepseek-chat", DEEPSEEK_PRICING,
    ),
    "grok": ProviderPreset(
        "grok", "XAI_API_KEY", "XAI_BASE_URL",
        "https://api.x.ai/v1", "grok-2", GROK_PRICING, supports_images=True,
    ),
    "kimi": ProviderPreset(
        "kimi", "MOONSHOT_API_KEY", "MOONSHOT_BASE_URL",
        "https://api.moonshot.cn/v1", "moonshot-v1-32k", KIMI_PRICING,
    ),
}


class _HTTPProviderClient:
    """Shared transport: key resolution, retrying POST, SSE streaming."""

    def __init__(
        self,
        preset: ProviderPreset,
        api_key: str | None = None,
        base_url: str | None = None,
        default_model: str | None = None,
        *,
        timeout: float = 120.0,
        max_retries: int = 3,
        http_client: httpx.AsyncClient | None = None,
        retry_wait: tenacity.wait.wait_base | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            preset: Provider endpoint description.
            api_key: API key. Falls back to the preset's key env var.
            base_url: API base URL. Falls back to the preset's base URL env
                var, then to the provider's public endpoint.
            default_model: Model used when a request names none.
            timeout: Request timeout in seconds.
            max_retries: Maximum number of attempts for retryable errors.
            http_client: Pre-built AsyncClient (tests inject a MockTransport).
            retry_wait: Override of the backoff strategy.

        Raises:
            ProviderConfigError: If no API key is provided or found in environment.
        """
        self._preset = preset
        self.provider = preset.provider
        self.pricing = preset.pricing
        self._api_key = api_key or os.environ.get(preset.api_key_env, "")
        if not self._api_key:
            raise ProviderConfigError(
                f"No API key provided for {preset.provider}. Pass api_key= or set "
                f"{preset.api_key_env} environment variable."
            )
        self._base_url = (
            base_url or os.environ.get(preset.base_url_env) or preset.default_base_url
        ).rstrip("/")
        self.default_model = default_model or preset.default_model
        self._max_retries = max_retries
        self._retry_wait = retry_wait
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    @property
    def base_url(self) -> str:
        return self._base_url

    # -- subclass hooks -------------------------------------------------

    def _headers(self) -> dict[str, str]:
        return {"Content-Type": "application/json"}

    def _url(self, model: str, *, stream: bool) -> str:
        raise NotImplementedError

    def _build_body(self, request: CompletionRequest, model: str, *, stream: bool) -> dict[str, Any]:
        raise NotImplementedError

    def _extract_content(self, data: dict[str, Any]) -> str:
        raise NotImplementedError

    def _extract_usage(self, data: dict[str, Any]) -> Usage:
        raise NotImplementedError

    def _extract_delta(self, event: dict[str, Any]) -> str | None:
        raise NotImplementedError

    # -- transport ------------------------------------------------------

    def _retryer(self) -> tenacity.AsyncRetrying:
        wait = self._retry_wait or (
            tenacity.wait_exponential(multiplier=1, min=1, max=30)
            + tenacity.wait_random(0, 2)
        )
        return tenacity.AsyncRetrying(
            retry=tenacity.retry_if_exception(_is_retryable),
            wait=wait,
            stop=tenacity.stop_after_attempt(self._max_retries),
            before_sleep=tenacity.before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

    async def _do_post(self, url: str, body: dict[str, Any]) -> dict[str, Any]:
        """Execute a single request (no retry)."""
        response = await self._client.post(url, json=body, headers=self._headers())
        _check_response(response, self.provider)
        try:
            return response.json()
        except ValueError as exc:
            raise ProviderResponseError(
                f"{self.provider} returned non-JSON body: {response.text[:200]}"
            ) from exc

    async def complete(self, request: CompletionRequest) -> Completion:
        """Send a completion request with retry.

        Raises:
            ProviderAuthError: On 401/403 (no retry).
            ProviderRateLimitError: On 429 after all retries exhausted.
            ProviderResponseError: On unexpected response format.
            httpx.HTTPStatusError: On other non-retryable HTTP errors.
        """
        model = request.model or self.default_model
        body = self._build_body(request, model, stream=False)
        data = await self._retryer()(self._do_post, self._url(model, stream=False), body)
        return Completion(
            content=self._extract_content(data),
            model=model,
            usage=self._extract_usage(data),
            request_body=body,
            raw=data,
        )

    def stream(self, request: CompletionRequest) -> TextStream:
        """Stream text deltas. The request is sent on first iteration."""
        model = request.model or self.default_model
        body = self._build_body(request, model, stream=True)
        return TextStream(self._stream_chunks(self._url(model, stream=True), body))

    async def _stream_chunks(self, url: str, body: dict[str, Any]) -> AsyncIterator[str]:
        async with self._client.stream("POST", url, json=body, headers=self._headers()) as response:
            if response.is_error:
                await response.aread()
                _check_response(response, self.provider)
            async for text in iter_sse_events(response, self._extract_delta):
                yield text

    async def aclose(self) -> None:
        """Close the underlying httpx client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> _HTTPProviderClient:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()


class OpenAICompatibleClient(_HTTPProviderClient):
    """Client for OpenAI-style ``/chat/completions`` endpoints.

    Serves OpenAI itself and the compatible DeepSeek, Grok and Kimi APIs.

    Usage::

        async with OpenAICompatibleClient("deepseek", api_key="sk-...") as client:
            completion = await client.complete(CompletionRequest(prompt="Hello"))
            print(completion.content)
    """

    def __init__(self, provider: str = "openai", api_key: str | None = None, **kwargs: Any) -> None:
        if provider not in PROVIDER_PRESETS or provider in ("anthropic", "google"):
            raise ProviderConfigError(f"'{provider}' is not an OpenAI-compatible provider")
        super().__init__(PROVIDER_PRESETS[provider], api_key, **kwargs)

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._api_key}",
        }

    def _url(self, model: str, *, stream: bool) -> str:
        return f"{self._base_url}/chat/completions"

    def _build_body(self, request: CompletionRequest, model: str, *, stream: bool) -> dict[str, Any]:
        messages: list[dict[str, Any]] = []
        if request.system_prompt:
            messages.append({"role": "system", "content": request.system_prompt})
        if request.images and self._preset.supports_images:
            content: list[dict[str, Any]] = [{"type": "text", "text": request.prompt}]
            for image in request.images:
                url = image if _is_url(image) else f"data:image/jpeg;base64,{image}"
                content.append({"type": "image_url", "image_url": {"url": url}})
            messages.append({"role": "user", "content": content})
        else:
            messages.append({"role": "user", "content": request.prompt})

        body: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "max_tokens": request.max_tokens,
        }
        # Reasoning models reject a temperature parameter.
        if not model.startswith(("o1", "o3")):
            body["temperature"] = (
                DEFAULT_TEMPERATURE if request.temperature is None else request.temperature
            )
        if stream:
            body["stream"] = True
        return body

    def _extract_content(self, data: dict[str, Any]) -> str:
        try:
            return data["choices"][0]["message"].get("content") or ""
        except (KeyError, IndexError, TypeError, AttributeError) as exc:
            raise ProviderResponseError(
                f"Cannot extract content from response: {exc}. Response: {data}"
            ) from exc

    def _extract_usage(self, data: dict[str, Any]) -> Usage:
        usage = data.get("usage") or {}
        return Usage(
            prompt_tokens=usage.get("prompt_tokens", 0),
            completion_tokens=usage.get("completion_tokens", 0),
        )

    def _extract_delta(self, event: dict[str, Any]) -> str | None:
        try:
            return event["choices"][0]["delta"].get("content")
        except (KeyError, IndexError, TypeError, AttributeError):
            return None


class AnthropicClient(_HTTPProviderClient):
    """Client for the Anthropic ``/v1/messages`` API."""

    def __init__(self, api_key: str | None = None, **kwargs: Any) -> None:
        super().__init__(PROVIDER_PRESETS["anthropic"], api_key, **kwargs)

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "x-api-key": self._api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        }

    def _url(self, model: str, *, stream: bool) -> str:
        return f"{self._base_url}/v1/messages"

    def _build_body(self, request: CompletionRequest, model: str, *, stream: bool) -> dict[str, Any]:
        if request.images:
            content: list[dict[str, Any]] = []
            for image in request.images:
                source = (
                    {"type": "url", "url": image}
                    if _is_url(image)
                    else {"type": "base64", "media_type": "image/jpeg", "data": image}
                )
                content.append({"type": "image", "source": source})
            content.append({"type": "text", "text": request.prompt})
            messages: list[dict[str, Any]] = [{"role": "user", "content": content}]
        else:
            messages = [{"role": "user", "content": request.prompt}]

        body: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "max_tokens": request.max_tokens,
            "temperature": DEFAULT_TEMPERATURE if request.temperature is None else request.temperature,
        }
        if request.system_prompt:
            body["system"] = request.system_prompt
        if stream:
            body["stream"] = True
        return body

    def _extract_content(self, data: dict[str, Any]) -> str:
        blocks = data.get("content")
        if not isinstance(blocks, list):
            raise ProviderResponseError(f"Unexpected response format: missing 'content'. Response: {data}")
        return "".join(
            block.get("text", "")
            for block in blocks
            if isinstance(block, dict) and block.get("type") == "text"
        )

    def _extract_usage(self, data: dict[str, Any]) -> Usage:
        usage = data.get("usage") or {}
        return Usage(
            prompt_tokens=usage.get("input_tokens", 0),
            completion_tokens=usage.get("output_tokens", 0),
        )

    def _extract_delta(self, event: dict[str, Any]) -> str | None:
        if event.get("type") != "content_block_delta":
            return None
        return (event.get("delta") or {}).get("text")


class GoogleClient(_HTTPProviderClient):
    """Client for the Gemini ``generateContent`` API."""

    def __init__(self, api_key: str | None = None, **kwargs: Any) -> None:
        super().__init__(PROVIDER_PRESETS["google"], api_key, **kwargs)

    def _url(self, model: str, *, stream: bool) -> str:
        if stream:
            return f"{self._base_url}/models/{model}:streamGenerateContent?key={self._api_key}&alt=sse"
        return f"{self._base_url}/models/{model}:generateContent?key={self._api_key}"

    def _build_body(self, request: CompletionRequest, model: str, *, stream: bool) -> dict[str, Any]:
        parts: list[dict[str, Any]] = [
            {"inlineData": {"mimeType": "image/jpeg", "data": image}} for image in request.images
        ]
        parts.append({"text": request.prompt})
        body: dict[str, Any] = {
            "contents": [{"role": "user", "parts": parts}],
            "generationConfig": {
                "maxOutputTokens": request.max_tokens,
                "temperature": DEFAULT_TEMPERATURE if request.temperature is None else request.temperature,
            },
        }
        if request.system_prompt:
            body["systemInstruction"] = {"parts": [{"text": request.system_prompt}]}
        return body

    @staticmethod
    def _candidate_parts(data: dict[str, Any]) -> list[dict[str, Any]]:
        try:
            return data["candidates"][0]["content"]["parts"] or []
        except (KeyError, IndexError, TypeError):
            return []

    def _extract_content(self, data: dict[str, Any]) -> str:
        if "candidates" not in data:
            raise ProviderResponseError(
                f"Unexpected response format: missing 'candidates' key. Response: {data}"
            )
        return "".join(part.get("text", "") for part in self._candidate_parts(data))

    def _extract_usage(self, data: dict[str, Any]) -> Usage:
        usage = data.get("usageMetadata") or {}
        return Usage(
            prompt_tokens=usage.get("promptTokenCount", 0),
            completion_tokens=usage.get("candidatesTokenCount", 0),
        )

    def _extract_delta(self, event: dict[str, Any]) -> str | None:
        parts = self._candidate_parts(event)
        return parts[0].get("text") if parts else None


def create_provider_client(provider: str, api_key: str | None = None, **kwargs: Any) -> _HTTPProviderClient:
    """Build the client for a provider name from :data:`PROVIDER_PRESETS`."""
    if provider == "anthropic":
        return AnthropicClient(api_key, **kwargs)
    if provider == "google":
        return GoogleClient(api_key, **kwargs)
    if provider in PROVIDER_PRESETS:
        return OpenAICompatibleClient(provider, api_key, **kwargs)
    raise ProviderError(f"Unknown provider '{provider}'")
