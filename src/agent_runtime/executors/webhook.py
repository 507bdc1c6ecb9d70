"""Executor that delegates tasks to an external HTTP service."""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import urljoin, urlsplit

import httpx

from agent_runtime.executors.base import failed_result, handles_any, now_ms, succeeded_result
from agent_runtime.hashing import hex_digest
from agent_runtime.models.proof import ProofEvidence
from agent_runtime.models.task import ExecutionEstimate, TaskInput, TaskResult

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 60_000


class WebhookExecutor:
    """POSTs each task to a webhook and maps its JSON answer to a TaskResult.

    The webhook answers ``{"success": bool, "output": ..., "error": str?,
    "metadata": {"modelUsed"?, "tokensUsed"?}?}``.
    """

    version = "1.0.0"

    def __init__(
        self,
        webhook_url: str,
        service_types: list[str],
        *,
        api_key: str | None = None,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        headers: dict[str, str] | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = webhook_url
        self.service_types = list(service_types)
        self._api_key = api_key
        self._timeout_ms = timeout_ms
        self._headers = {"Content-Type": "application/json", **(headers or {})}
        if api_key:
            self._headers["Authorization"] = f"Bearer {api_key}"
        self.id = f"webhook-{hex_digest(webhook_url)[:8]}"
        self.name = f"Webhook Executor ({urlsplit(webhook_url).hostname})"
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout_ms / 1000)

    def handles(self, service_type: str) -> bool:
        return handles_any(self.service_types, service_type)

    @staticmethod
    def request_body(task: TaskInput) -> dict[str, Any]:
        return {
            "orderId": task.order_id,
            "serviceId": task.service_id,
            "serviceType": task.service_type,
            "buyer": task.buyer,
            "units": None if task.units is None else str(task.units),
            "totalPrice": str(task.total_price),
            "deadline": task.deadline,
            "payload": task.payload,
        }

    async def execute(self, task: TaskInput) -> TaskResult:
        start_time = now_ms()
        try:
            response = await self._client.post(
                self._url, json=self.request_body(task), headers=self._headers
            )
            if not response.is_success:
                return failed_result(
                    self,
                    f"Webhook returned {response.status_code}: {response.reason_phrase}",
                    start_time,
                )
            answer = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Webhook %s failed for %s: %s", self._url, task.order_id, exc)
            return failed_result(self, str(exc) or type(exc).__name__, start_time)

        if not isinstance(answer, dict) or not answer.get("success"):
            error = answer.get("error") if isinstance(answer, dict) else None
            return failed_result(self, error or "Webhook execution failed", start_time)

        output = answer.get("output")
        if not isinstance(output, dict):
            output = {"result": output}
        meta = answer.get("metadata") or {}
        evidence = ProofEvidence(api_call_hash=hex_digest({"url": self._url, "response": output}))
        return succeeded_result(
            self,
            output,
            start_time,
            evidence=evidence,
            model_used=meta.get("modelUsed"),
            tokens_used=meta.get("tokensUsed"),
        )

    async def estimate(self, task: TaskInput) -> ExecutionEstimate:
        return ExecutionEstimate(
            estimated_duration_ms=self._timeout_ms // 2,
            estimated_cost=task.total_price,
            confidence=0.5,
        )

    async def health_check(self) -> bool:
        """GET ``/health`` on the webhook host. A missing endpoint (404) counts as healthy."""
        health_url = urljoin(self._url, "/health")
        auth = {"Authorization": f"Bearer {self._api_key}"} if self._api_key else {}
        try:
            response = await self._client.get(health_url, headers=auth)
        except httpx.HTTPError as exc:
            logger.warning("Webhook health check failed: %s", exc)
            return False
        return response.is_success or response.status_code == 404

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
