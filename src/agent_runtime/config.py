"""Runtime configuration.

RuntimeConfig holds every setting the runtime reads from its environment.
``RuntimeConfig.from_env()`` loads a ``.env`` file first (python-dotenv),
then maps environment variables onto fields. Nothing is validated for
running until :meth:`RuntimeConfig.validate_for_run`, so read-only commands
work with a partial configuration.
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

from agent_runtime.exceptions import ConfigurationError
from agent_runtime.llm.client import PROVIDER_PRESETS
from agent_runtime.proof import DEFAULT_MAX_AGE_MS
from agent_runtime.results import STORAGE_BACKENDS
from agent_runtime.results.ipfs import DEFAULT_GATEWAY
from agent_runtime.results.local import DEFAULT_RESULTS_DIR

DEFAULT_RPC_URL = "http://127.0.0.1:8545"
DEFAULT_DB_PATH = ".agent-runtime.db"

_PRIVATE_KEY_RE = re.compile(r"^(0x)?[0-9a-fA-F]{64}$")

# Environment variable -> field name, for scalar settings.
_ENV_FIELDS: dict[str, str] = {
    "RPC_URL": "rpc_url",
    "CHAIN_ID": "chain_id",
    "REGISTRY_ADDRESS": "registry_address",
    "MARKETPLACE_ADDRESS": "marketplace_address",
    "BRIDGE_ADDRESS": "bridge_address",
    "POLL_INTERVAL_MS": "poll_interval_ms",
    "START_BLOCK": "start_block",
    "MAX_CONCURRENT": "max_concurrent",
    "AUTO_COMPLETE": "auto_complete",
    "AGENT_DB": "db_path",
    "STORAGE_BACKEND": "storage_backend",
    "STORAGE_TARGET": "storage_target",
    "STORAGE_API_KEY": "storage_api_key",
    "IPFS_GATEWAY": "ipfs_gateway",
    "WEBHOOK_EXECUTOR_URL": "webhook_url",
    "WEBHOOK_EXECUTOR_API_KEY": "webhook_api_key",
    "ENABLE_BENCHMARK_EXECUTOR": "enable_benchmark_executor",
    "PROOF_MAX_AGE_MS": "proof_max_age_ms",
    "STRICT_PROOF_INPUTS": "strict_proof_inputs",
}


class RuntimeConfig(BaseModel):
    """All runtime settings. Amounts are wei, durations milliseconds."""

    private_key: Optional[str] = Field(default=None, repr=False)
    rpc_url: str = DEFAULT_RPC_URL
    chain_id: Optional[int] = None
    registry_address: Optional[str] = None
    marketplace_address: Optional[str] = None
    bridge_address: Optional[str] = None

    poll_interval_ms: int = Field(default=5000, gt=0)
    start_block: Optional[int] = Field(default=None, ge=0)
    max_concurrent: int = Field(default=5, ge=1)
    auto_complete: bool = True
    db_path: str = DEFAULT_DB_PATH

    storage_backend: str = "local"
    storage_target: str = DEFAULT_RESULTS_DIR
    storage_api_key: Optional[str] = Field(default=None, repr=False)
    ipfs_gateway: str = DEFAULT_GATEWAY

    # provider name -> key / base URL override
    provider_keys: dict[str, str] = Field(default_factory=dict, repr=False)
    provider_base_urls: dict[str, str] = Field(default_factory=dict)

    webhook_url: Optional[str] = None
    webhook_service_types: list[str] = Field(default_factory=list)
    webhook_api_key: Optional[str] = Field(default=None, repr=False)
    enable_benchmark_executor: bool = False

    proof_max_age_ms: int = Field(default=DEFAULT_MAX_AGE_MS, gt=0)
    strict_proof_inputs: bool = False

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> RuntimeConfig:
        """Build a config from *env* (default: ``.env`` merged into ``os.environ``).

        Empty values count as unset.

        Raises:
            ConfigurationError: If a value cannot be parsed into its field.
        """
        if env is None:
            load_dotenv()
            env = os.environ

        def get(name: str) -> str | None:
            value = env.get(name)
            if value is None or not value.strip():
                return None
            return value.strip()

        values: dict[str, object] = {}
        private_key = get("AGENT_PRIVATE_KEY") or get("PRIVATE_KEY")
        if private_key:
            values["private_key"] = private_key
        for name, field_name in _ENV_FIELDS.items():
            value = get(name)
            if value is not None:
                values[field_name] = value

        service_types = get("WEBHOOK_EXECUTOR_SERVICE_TYPES")
        if service_types:
            values["webhook_service_types"] = [
                s.strip() for s in service_types.split(",") if s.strip()
            ]

        keys: dict[str, str] = {}
        base_urls: dict[str, str] = {}
        for provider, preset in PROVIDER_PRESETS.items():
            key = get(preset.api_key_env)
            if key:
                keys[provider] = key
            base_url = get(preset.base_url_env)
            if base_url:
                base_urls[provider] = base_url
        values["provider_keys"] = keys
        values["provider_base_urls"] = base_urls

        try:
            return cls.model_validate(values)
        except ValidationError as exc:
            problems = [
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
            ]
            raise ConfigurationError(problems) from exc

    def contract_addresses(self) -> dict[str, str | None]:
        return {
            "registry": self.registry_address,
            "marketplace": self.marketplace_address,
            "bridge": self.bridge_address,
        }

    def problems(self) -> list[str]:
        """Every reason this config cannot run the agent (empty when it can)."""
        problems: list[str] = []
        if not self.private_key:
            problems.append("AGENT_PRIVATE_KEY is required")
        elif not _PRIVATE_KEY_RE.match(self.private_key):
            problems.append("AGENT_PRIVATE_KEY must be 32 bytes of hex")
        if not self.rpc_url:
            problems.append("RPC_URL is required")
        if not self.registry_address:
            problems.append("REGISTRY_ADDRESS is required")
        if not self.marketplace_address:
            problems.append("MARKETPLACE_ADDRESS is required")
        if self.storage_backend not in STORAGE_BACKENDS:
            problems.append(
                f"STORAGE_BACKEND must be one of {', '.join(STORAGE_BACKENDS)}, "
                f"got '{self.storage_backend}'"
            )
        if self.webhook_url and not self.webhook_service_types:
            problems.append("WEBHOOK_EXECUTOR_SERVICE_TYPES is required with WEBHOOK_EXECUTOR_URL")
        return problems

    def validate_for_run(self) -> None:
        """Raise a single ConfigurationError listing every problem found."""
        problems = self.problems()
        if problems:
            raise ConfigurationError(problems)
