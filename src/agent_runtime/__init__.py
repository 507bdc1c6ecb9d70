"""Agent runtime: an autonomous seller agent for an on-chain service marketplace.

The runtime watches the marketplace for orders addressed to its agent,
executes them with a matching executor, signs a proof of work, stores the
result and settles the order on the ledger.
"""

__version__ = "0.1.0"

# Runtime assembly
from agent_runtime.runtime import AgentRuntime, build_registry
from agent_runtime.config import RuntimeConfig

# Models
from agent_runtime.models import (
    ExecutionEstimate,
    ExecutionMetadata,
    Order,
    OrderStatus,
    ProofEvidence,
    ProofOfWork,
    ProofType,
    ResultRecord,
    TaskInput,
    TaskResult,
    VerificationResult,
)

# Hashing and proofs
from agent_runtime.hashing import canonical_json, digest, hex_digest
from agent_runtime.proof import ProofEngine, verify_proof

# Executors
from agent_runtime.executors import (
    BenchmarkExecutor,
    Executor,
    ExecutorRegistry,
    ProviderExecutor,
    WebhookExecutor,
)

# Results
from agent_runtime.results import (
    HTTPResultStore,
    IPFSResultStore,
    LocalResultStore,
    MemoryResultStore,
    ResultStore,
    create_result_store,
)

# Ledger
from agent_runtime.ledger import LedgerGateway, SettlementClient, SettlementReceipt, Web3Ledger

# Pipeline
from agent_runtime.ingest import MetadataPayloadResolver, OrderIngestor
from agent_runtime.orchestrator import EventBus, RuntimeEvent, RuntimeEventType, WorkerLoop

# Exceptions
from agent_runtime.exceptions import (
    AgentRuntimeError,
    BridgeNotConfiguredError,
    ConfigurationError,
    InvalidTransitionError,
    OrderNotFoundError,
    ProofError,
    RetryExhaustedError,
    SettlementError,
    StorageError,
)

__all__ = [
    "__version__",
    "AgentRuntime",
    "build_registry",
    "RuntimeConfig",
    # Models
    "ExecutionEstimate",
    "ExecutionMetadata",
    "Order",
    "OrderStatus",
    "ProofEvidence",
    "ProofOfWork",
    "ProofType",
    "ResultRecord",
    "TaskInput",
    "TaskResult",
    "VerificationResult",
    # Hashing and proofs
    "canonical_json",
    "digest",
    "hex_digest",
    "ProofEngine",
    "verify_proof",
    # Executors
    "BenchmarkExecutor",
    "Executor",
    "ExecutorRegistry",
    "ProviderExecutor",
    "WebhookExecutor",
    # Results
    "HTTPResultStore",
    "IPFSResultStore",
    "LocalResultStore",
    "MemoryResultStore",
    "ResultStore",
    "create_result_store",
    # Ledger
    "LedgerGateway",
    "SettlementClient",
    "SettlementReceipt",
    "Web3Ledger",
    # Pipeline
    "MetadataPayloadResolver",
    "OrderIngestor",
    "EventBus",
    "RuntimeEvent",
    "RuntimeEventType",
    "WorkerLoop",
    # Exceptions
    "AgentRuntimeError",
    "BridgeNotConfiguredError",
    "ConfigurationError",
    "InvalidTransitionError",
    "OrderNotFoundError",
    "ProofError",
    "RetryExhaustedError",
    "SettlementError",
    "StorageError",
]
