"""Agent runtime exception hierarchy.

All runtime-specific exceptions inherit from AgentRuntimeError.
"""


class AgentRuntimeError(Exception):
    """Base exception for all agent runtime errors."""


class ConfigurationError(AgentRuntimeError):
    """Raised when required configuration is missing or invalid.

    Collects every problem found so startup reports them all at once.
    """

    def __init__(self, problems: list[str] | str) -> None:
        if isinstance(problems, str):
            problems = [problems]
        self.problems = list(problems)
        super().__init__("Invalid configuration: " + "; ".join(self.problems))


class OrderNotFoundError(AgentRuntimeError):
    """Raised when an order id lookup fails."""

    def __init__(self, order_id: str) -> None:
        self.order_id = order_id
        super().__init__(f"Order not found: {order_id}")


class InvalidTransitionError(AgentRuntimeError):
    """Raised when an order status change would move backwards."""

    def __init__(self, order_id: str, current: str, requested: str) -> None:
        self.order_id = order_id
        self.current = current
        self.requested = requested
        super().__init__(
            f"Order {order_id} cannot move from '{current}' to '{requested}'"
        )


class ProofError(AgentRuntimeError):
    """Raised when a proof cannot be produced (signing or input policy)."""


class StorageError(AgentRuntimeError):
    """Raised when a result store fails to persist a payload.

    Attributes:
        status_code: HTTP status returned by a remote sink, or None.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        if status_code is not None:
            message = f"{message} (HTTP {status_code})"
        super().__init__(message)


class SettlementError(AgentRuntimeError):
    """Base exception for ledger write failures."""


class RetryExhaustedError(SettlementError):
    """All attempts of a transient-failing ledger operation failed."""

    def __init__(self, operation: str, attempts: int, last_error: BaseException | None = None) -> None:
        self.operation = operation
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"{operation} failed after {attempts} attempts: {last_error}"
        )


class BridgeNotConfiguredError(SettlementError):
    """Raised when a bridge call is made without a bridge address."""

    def __init__(self) -> None:
        super().__init__("Bridge not configured. Set BRIDGE_ADDRESS to enable withdrawals.")
