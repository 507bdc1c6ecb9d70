"""Executor backed by a model provider client."""

from __future__ import annotations

import base64
import logging
from typing import Any

import httpx

from agent_runtime.executors.base import (
    default_estimate,
    failed_result,
    handles_any,
    now_ms,
    succeeded_result,
)
from agent_runtime.hashing import canonical_json, hex_digest
from agent_runtime.llm.errors import ProviderError
from agent_runtime.llm.pricing import calculate_cost
from agent_runtime.llm.protocols import Completion, CompletionRequest, ProviderClient
from agent_runtime.llm.streaming import TextStream
from agent_runtime.models.proof import ProofEvidence, ProofType
from agent_runtime.models.task import ExecutionEstimate, TaskInput, TaskResult

logger = logging.getLogger(__name__)

# Service types each provider serves out of the box.
DEFAULT_SERVICE_TYPES: dict[str, list[str]] = {
    "openai": [
        "text-generation", "code-review", "sentiment-analysis",
        "translation", "image-analysis", "reasoning",
    ],
    "anthropic": [
        "text-generation", "code-review", "sentiment-analysis",
        "image-analysis", "reasoning",
    ],
    "google": ["text-generation", "sentiment-analysis", "translation", "image-analysis"],
    "deepseek": ["text-generation", "code-review", "translation", "reasoning"],
    "grok": ["text-generation", "reasoning"],
    "kimi": ["text-generation", "translation"],
}

_DISPLAY_NAMES = {
    "openai": "OpenAI GPT",
    "anthropic": "Anthropic Claude",
    "google": "Google Gemini",
    "deepseek": "DeepSeek",
    "grok": "xAI Grok",
    "kimi": "Moonshot Kimi",
}


def build_prompt(payload: dict[str, Any]) -> str:
    """Prompt text for a payload: ``prompt``, else ``text``, else its canonical JSON."""
    for key in ("prompt", "text"):
        value = payload.get(key)
        if isinstance(value, str) and value:
            return value
    return canonical_json(payload).decode("utf-8")


class ProviderExecutor:
    """Runs tasks as single-turn completions against a provider.

    Args:
        client: Provider client (OpenAI-compatible, Anthropic, Google, ...).
        service_types: Capability patterns; defaults per provider.
        system_prompt: Fixed system prompt. When None each task gets
            ``"Process <service_type> order <order_id>"``.
        model: Model override; defaults to the client's default model.
    """

    version = "1.0.0"

    def __init__(
        self,
        client: ProviderClient,
        *,
        service_types: list[str] | None = None,
        system_prompt: str | None = None,
        model: str | None = None,
        max_tokens: int = 4096,
        executor_id: str | None = None,
    ) -> None:
        self._client = client
        self.id = executor_id or client.provider
        self.name = _DISPLAY_NAMES.get(client.provider, client.provider)
        self.service_types = list(
            service_types or DEFAULT_SERVICE_TYPES.get(client.provider, ["text-generation"])
        )
        self._system_prompt = system_prompt
        self._model = model
        self._max_tokens = max_tokens

    @property
    def client(self) -> ProviderClient:
        return self._client

    def handles(self, service_type: str) -> bool:
        return handles_any(self.service_types, service_type)

    def build_request(self, task: TaskInput) -> CompletionRequest:
        payload = task.payload
        images = payload.get("images") or ()
        if isinstance(images, str):
            images = (images,)
        elif not isinstance(images, (list, tuple)):
            raise ValueError(f"images must be a string or a list, got {type(images).__name__}")
        return CompletionRequest(
            prompt=build_prompt(payload),
            system_prompt=self._system_prompt
            or f"Process {task.service_type} order {task.order_id}",
            model=self._model or payload.get("model"),
            max_tokens=self._max_tokens,
            temperature=payload.get("temperature"),
            images=tuple(str(image) for image in images),
        )

    async def execute(self, task: TaskInput) -> TaskResult:
        start_time = now_ms()
        try:
            completion = await self._client.complete(self.build_request(task))
            return self._completed(completion, start_time)
        except (ProviderError, httpx.HTTPError) as exc:
            logger.warning("%s execution failed for %s: %s", self.id, task.order_id, exc)
            return failed_result(self, str(exc), start_time)
        except Exception as exc:
            logger.exception("%s could not process order %s", self.id, task.order_id)
            return failed_result(self, str(exc) or type(exc).__name__, start_time)

    def _completed(self, completion: Completion, start_time: int) -> TaskResult:
        usage = completion.usage
        cost = calculate_cost(
            self._client.pricing,
            self._client.default_model,
            completion.model,
            usage.prompt_tokens,
            usage.completion_tokens,
        )
        output = {
            "content": completion.content,
            "model": completion.model,
            "usage": usage.as_dict(),
            "cost": cost.as_dict(),
        }
        raw_log = canonical_json({"request": completion.request_body, "response": completion.raw})
        evidence = ProofEvidence(
            api_call_hash=hex_digest(completion.request_body),
            raw_log=base64.b64encode(raw_log).decode("ascii"),
        )
        return succeeded_result(
            self,
            output,
            start_time,
            evidence=evidence,
            proof_type=ProofType.LLM_COMPLETION,
            model_used=completion.model,
            tokens_used=usage.total_tokens,
            cost_usd=cost.total,
        )

    def stream(self, task: TaskInput) -> TextStream:
        """Stream the completion for *task* as text deltas."""
        return self._client.stream(self.build_request(task))

    async def estimate(self, task: TaskInput) -> ExecutionEstimate:
        return default_estimate(task)

    async def health_check(self) -> bool:
        # Providers expose no cheap health endpoint; a constructed client has a key.
        return True

    async def aclose(self) -> None:
        await self._client.aclose()
