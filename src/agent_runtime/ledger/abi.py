"""JSON ABIs for the registry, marketplace and bridge contracts.

Only the methods and events the runtime touches are described.
"""

from __future__ import annotations

from typing import Any

Param = tuple[str, str]  # (solidity type, name)


def _params(params: list[Param]) -> list[dict[str, Any]]:
    return [{"type": type_, "name": name, "internalType": type_} for type_, name in params]


def function(
    name: str,
    inputs: list[Param],
    outputs: list[Param] | None = None,
    mutability: str = "nonpayable",
) -> dict[str, Any]:
    return {
        "type": "function",
        "name": name,
        "inputs": _params(inputs),
        "outputs": _params(outputs or []),
        "stateMutability": mutability,
    }


def event(name: str, params: list[Param], indexed: tuple[str, ...] = ()) -> dict[str, Any]:
    inputs = _params(params)
    for entry in inputs:
        entry["indexed"] = entry["name"] in indexed
    return {"type": "event", "name": name, "inputs": inputs, "anonymous": False}


REGISTRY_ABI: list[dict[str, Any]] = [
    function("registerAgent", [("address", "agent"), ("string", "did"), ("string", "metadataURI")]),
    function("updateAgent", [("address", "agent"), ("string", "metadataURI")]),
    function(
        "registerService",
        [
            ("address", "agent"),
            ("string", "serviceType"),
            ("uint256", "pricePerUnit"),
            ("string", "metadataURI"),
        ],
        [("bytes32", "")],
    ),
    function(
        "agents",
        [("address", "")],
        [
            ("address", "owner"),
            ("string", "did"),
            ("string", "metadataURI"),
            ("uint256", "reputationScore"),
            ("uint256", "totalEarned"),
            ("uint256", "totalSpent"),
            ("uint256", "registeredAt"),
            ("bool", "active"),
        ],
        "view",
    ),
    function(
        "services",
        [("bytes32", "")],
        [
            ("address", "agent"),
            ("string", "serviceType"),
            ("uint256", "pricePerUnit"),
            ("string", "metadataURI"),
            ("bool", "active"),
        ],
        "view",
    ),
    function("getAgentServices", [("address", "agent")], [("bytes32[]", "")], "view"),
    function("isActiveAgent", [("address", "agent")], [("bool", "")], "view"),
    event(
        "ServiceRegistered",
        [("bytes32", "serviceId"), ("address", "agent"), ("string", "serviceType")],
        indexed=("serviceId", "agent"),
    ),
]

MARKETPLACE_ABI: list[dict[str, Any]] = [
    function(
        "createOrder",
        [("bytes32", "serviceId"), ("uint256", "units"), ("uint256", "deadline")],
        [("bytes32", "")],
        "payable",
    ),
    function(
        "completeOrder",
        [("bytes32", "orderId"), ("string", "resultURI"), ("bytes", "resultHash")],
    ),
    function("disputeOrder", [("bytes32", "orderId"), ("string", "reason")]),
    function("resolveDispute", [("bytes32", "orderId"), ("bool", "refundBuyer")]),
    function("cancelOrder", [("bytes32", "orderId")]),
    function(
        "startStream",
        [("address", "payee"), ("uint256", "ratePerSecond")],
        [("bytes32", "")],
        "payable",
    ),
    function("claimStream", [("bytes32", "streamId")]),
    function("stopStream", [("bytes32", "streamId")]),
    function(
        "orders",
        [("bytes32", "")],
        [
            ("bytes32", "serviceId"),
            ("address", "buyer"),
            ("address", "seller"),
            ("uint256", "units"),
            ("uint256", "totalPrice"),
            ("uint256", "createdAt"),
            ("uint256", "deadline"),
            ("uint8", "status"),
            ("string", "resultURI"),
            ("bytes", "resultHash"),
        ],
        "view",
    ),
    function("getAgentOrders", [("address", "agent")], [("bytes32[]", "")], "view"),
    event(
        "OrderCreated",
        [
            ("bytes32", "orderId"),
            ("bytes32", "serviceId"),
            ("address", "buyer"),
            ("address", "seller"),
            ("uint256", "totalPrice"),
            ("bytes32", "inputHash"),
        ],
        indexed=("orderId", "serviceId", "buyer"),
    ),
    event(
        "OrderCompleted",
        [("bytes32", "orderId"), ("string", "resultURI"), ("bytes32", "resultHash")],
        indexed=("orderId",),
    ),
    event("OrderCancelled", [("bytes32", "orderId")], indexed=("orderId",)),
    event(
        "StreamStarted",
        [
            ("bytes32", "streamId"),
            ("address", "payer"),
            ("address", "payee"),
            ("uint256", "ratePerSecond"),
        ],
        indexed=("streamId", "payer", "payee"),
    ),
]

BRIDGE_ABI: list[dict[str, Any]] = [
    function("balanceOf", [("address", "account")], [("uint256", "")], "view"),
    function(
        "initiateWithdrawal",
        [("address", "l1Address"), ("uint256", "amount")],
        [("bytes32", "")],
    ),
    event(
        "WithdrawalInitiated",
        [
            ("bytes32", "withdrawalId"),
            ("address", "l2Address"),
            ("address", "l1Address"),
            ("uint256", "amount"),
        ],
        indexed=("withdrawalId", "l2Address", "l1Address"),
    ),
]

REGISTRY = "registry"
MARKETPLACE = "marketplace"
BRIDGE = "bridge"

ABIS: dict[str, list[dict[str, Any]]] = {
    REGISTRY: REGISTRY_ABI,
    MARKETPLACE: MARKETPLACE_ABI,
    BRIDGE: BRIDGE_ABI,
}

ORDER_STATUS_CODES = ("pending", "completed", "cancelled", "disputed")
