"""Ledger gateway: the narrow async surface the runtime needs from a chain.

``LedgerGateway`` is the protocol; ``Web3Ledger`` implements it over a
synchronous web3.py client, pushing every blocking RPC call onto a worker
thread with ``asyncio.to_thread``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol, Sequence, runtime_checkable

from eth_account import Account
from web3 import Web3
from web3.exceptions import LogTopicError, MismatchedABI

from agent_runtime.exceptions import BridgeNotConfiguredError, ConfigurationError, SettlementError
from agent_runtime.ledger.abi import ABIS, BRIDGE, MARKETPLACE
from agent_runtime.ledger.events import (
    ORDER_EVENT_NAMES,
    LedgerEvent,
    event_from_args,
    event_order,
    to_hex,
)

logger = logging.getLogger(__name__)


@dataclass
class TxReceipt:
    """Mined transaction as seen by the runtime."""

    tx_hash: str
    block_number: int
    status: int = 1
    logs: list[Any] = field(default_factory=list)


@runtime_checkable
class LedgerGateway(Protocol):
    """Protocol for ledger access. Contracts are named ``registry``,
    ``marketplace`` and ``bridge``."""

    @property
    def address(self) -> str:
        """Address of the signing account."""
        ...

    def has_contract(self, contract: str) -> bool:
        ...

    async def chain_id(self) -> int:
        ...

    async def block_number(self) -> int:
        ...

    async def submit(self, contract: str, function: str, args: Sequence[Any], value: int = 0) -> str:
        """Sign and broadcast a contract call; return the transaction hash."""
        ...

    async def wait_for_receipt(self, tx_hash: str, confirmations: int = 0) -> TxReceipt:
        ...

    async def call(self, contract: str, function: str, args: Sequence[Any]) -> Any:
        """Run a read-only contract call."""
        ...

    def decode_log(self, contract: str, event: str, log: Any) -> dict[str, Any] | None:
        """Decode *log* as *event*; None when it is a different event."""
        ...

    async def get_order_events(self, from_block: int, to_block: int) -> list[LedgerEvent]:
        """Marketplace order events in the inclusive block range, in ledger order."""
        ...


def _normalize_args(args: Any) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key, value in dict(args).items():
        if isinstance(value, (bytes, bytearray)):
            value = to_hex(value)
        out[key] = value
    return out


class Web3Ledger:
    """LedgerGateway over web3.py's HTTP provider.

    Args:
        rpc_url: JSON-RPC endpoint.
        private_key: Key that signs every transaction.
        addresses: Contract name to address; a None address leaves that
            contract unconfigured.
        receipt_timeout: Seconds to wait for a transaction to be mined.
        web3: Pre-built Web3 instance (tests, custom providers).
    """

    def __init__(
        self,
        rpc_url: str,
        private_key: str,
        addresses: dict[str, str | None],
        *,
        request_timeout: float = 30.0,
        receipt_timeout: float = 120.0,
        confirmation_poll: float = 1.0,
        web3: Web3 | None = None,
    ) -> None:
        self._w3 = web3 or Web3(
            Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": request_timeout})
        )
        self._account = Account.from_key(private_key)
        self._receipt_timeout = receipt_timeout
        self._confirmation_poll = confirmation_poll
        self._contracts = {
            name: self._w3.eth.contract(address=Web3.to_checksum_address(address), abi=ABIS[name])
            for name, address in addresses.items()
            if address
        }

    @property
    def address(self) -> str:
        return self._account.address

    def has_contract(self, contract: str) -> bool:
        return contract in self._contracts

    def _contract(self, name: str) -> Any:
        try:
            return self._contracts[name]
        except KeyError:
            if name == BRIDGE:
                raise BridgeNotConfiguredError() from None
            raise ConfigurationError(f"No address configured for the {name} contract") from None

    async def chain_id(self) -> int:
        return await asyncio.to_thread(lambda: self._w3.eth.chain_id)

    async def block_number(self) -> int:
        return await asyncio.to_thread(lambda: self._w3.eth.block_number)

    async def submit(self, contract: str, function: str, args: Sequence[Any], value: int = 0) -> str:
        return await asyncio.to_thread(self._submit_sync, contract, function, list(args), value)

    def _submit_sync(self, contract: str, function: str, args: list[Any], value: int) -> str:
        func = getattr(self._contract(contract).functions, function)(*args)
        sender = self._account.address
        tx = func.build_transaction(
            {
                "from": sender,
                "nonce": self._w3.eth.get_transaction_count(sender, "pending"),
                "value": value,
            }
        )
        signed = self._account.sign_transaction(tx)
        tx_hash = self._w3.eth.send_raw_transaction(signed.raw_transaction)
        return to_hex(tx_hash)

    async def wait_for_receipt(self, tx_hash: str, confirmations: int = 0) -> TxReceipt:
        receipt = await asyncio.to_thread(
            self._w3.eth.wait_for_transaction_receipt, tx_hash, timeout=self._receipt_timeout
        )
        block = int(receipt["blockNumber"])
        # One confirmation means mined; wait for any further blocks.
        while confirmations > 1 and await self.block_number() - block + 1 < confirmations:
            await asyncio.sleep(self._confirmation_poll)
        status = int(receipt.get("status", 1))
        if status == 0:
            raise SettlementError(f"Transaction {tx_hash} reverted in block {block}")
        return TxReceipt(
            tx_hash=to_hex(receipt["transactionHash"]),
            block_number=block,
            status=status,
            logs=list(receipt["logs"]),
        )

    async def call(self, contract: str, function: str, args: Sequence[Any]) -> Any:
        func = getattr(self._contract(contract).functions, function)(*args)
        return await asyncio.to_thread(func.call)

    def decode_log(self, contract: str, event: str, log: Any) -> dict[str, Any] | None:
        try:
            decoded = getattr(self._contract(contract).events, event)().process_log(log)
        except (MismatchedABI, LogTopicError, ValueError) as exc:
            logger.debug("Log is not %s.%s: %s", contract, event, exc)
            return None
        return _normalize_args(decoded["args"])

    async def get_order_events(self, from_block: int, to_block: int) -> list[LedgerEvent]:
        return await asyncio.to_thread(self._get_order_events_sync, from_block, to_block)

    def _get_order_events_sync(self, from_block: int, to_block: int) -> list[LedgerEvent]:
        marketplace = self._contract(MARKETPLACE)
        events: list[LedgerEvent] = []
        for name in ORDER_EVENT_NAMES:
            logs = getattr(marketplace.events, name)().get_logs(
                from_block=from_block, to_block=to_block
            )
            for log in logs:
                events.append(
                    event_from_args(
                        name,
                        dict(log["args"]),
                        tx_hash=to_hex(log["transactionHash"]),
                        block_number=int(log["blockNumber"]),
                        log_index=int(log["logIndex"]),
                    )
                )
        events.sort(key=event_order)
        return events
