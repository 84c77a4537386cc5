"""In-process value network for development and tests.

Transactions are still really signed; only broadcast and execution are local.
Plain transfers move value and charge gas like a node would. Calls to a
registered contract address are dispatched to an in-process handler, so a
simulated `buyProducts` still moves the buyer's value to the catalog.
"""
from __future__ import annotations

import asyncio
import itertools
import logging
from typing import Any, Dict, List, Optional, Protocol

from timecredit_core.exceptions import (
    ContractRevertError,
    InsufficientFundsError,
    NetworkError,
)

from .abi import to_bytes
from .network import SignedTransaction, TransactionReceipt, ValueNetwork

logger = logging.getLogger(__name__)

TRANSFER_GAS = 21_000
DEFAULT_GAS_PRICE = 1_000_000_000  # 1 gwei
DEFAULT_CHAIN_ID = 1337


class ContractHandler(Protocol):
    """In-process stand-in for a deployed contract."""

    async def call(self, data: bytes, sender: Optional[str]) -> bytes:
        """Read-only call returning ABI-encoded output."""

    async def estimate(self, sender: str, value: int, data: bytes) -> int:
        """Dry-run a transaction; raise ContractRevertError if it would revert."""

    async def execute(self, sender: str, value: int, data: bytes) -> None:
        """Apply a transaction; raise ContractRevertError to revert it."""


class SimulatedNetwork(ValueNetwork):
    """ValueNetwork kept entirely in memory."""

    simulated = True

    def __init__(
        self,
        chain_id: int = DEFAULT_CHAIN_ID,
        gas_price: int = DEFAULT_GAS_PRICE,
    ) -> None:
        self.chain_id = chain_id
        self.gas_price = gas_price
        self._balances: Dict[str, int] = {}
        self._nonces: Dict[str, int] = {}
        self._contracts: Dict[str, ContractHandler] = {}
        self._receipts: Dict[str, TransactionReceipt] = {}
        self._blocks = itertools.count(1)
        self._lock = asyncio.Lock()
        self.sent: List[SignedTransaction] = []

    # -- test/dev helpers -------------------------------------------------

    def fund(self, address: str, amount_minor: int) -> None:
        """Set an address's balance outright (genesis allocation)."""
        self._balances[address.lower()] = amount_minor

    def register_contract(self, address: str, handler: ContractHandler) -> None:
        self._contracts[address.lower()] = handler

    def balance_of(self, address: str) -> int:
        return self._balances.get(address.lower(), 0)

    # -- ValueNetwork ------------------------------------------------------

    async def get_chain_id(self) -> int:
        return self.chain_id

    async def get_balance(self, address: str) -> int:
        return self.balance_of(address)

    async def get_gas_price(self) -> int:
        return self.gas_price

    async def get_transaction_count(self, address: str, block: str = "pending") -> int:
        # transactions apply on broadcast, so "pending" and "latest" agree
        return self._nonces.get(address.lower(), 0)

    async def estimate_gas(self, tx: dict[str, Any]) -> int:
        sender = str(tx.get("from", ""))
        value = int(tx.get("value", 0))
        if value > self.balance_of(sender):
            raise InsufficientFundsError(
                "insufficient funds for transfer",
                available=self.balance_of(sender),
                required=value,
            )
        handler = self._contracts.get(str(tx.get("to", "")).lower())
        if handler is None:
            return TRANSFER_GAS
        return await handler.estimate(sender, value, to_bytes(tx.get("data")))

    async def call(self, to: str, data: str, sender: Optional[str] = None) -> bytes:
        handler = self._contracts.get(to.lower())
        if handler is None:
            raise NetworkError(f"No contract deployed at {to}", method="eth_call")
        return await handler.call(to_bytes(data), sender)

    async def send_transaction(self, signed: SignedTransaction) -> str:
        async with self._lock:
            sender = signed.sender.lower()
            if signed.chain_id != self.chain_id:
                raise NetworkError(
                    f"invalid chain id {signed.chain_id}",
                    method="eth_sendRawTransaction",
                )
            expected = self._nonces.get(sender, 0)
            if signed.nonce < expected:
                raise NetworkError("nonce too low", method="eth_sendRawTransaction")
            if signed.nonce > expected:
                raise NetworkError("nonce too high", method="eth_sendRawTransaction")

            max_cost = signed.value + signed.gas * signed.gas_price
            balance = self._balances.get(sender, 0)
            if balance < max_cost:
                raise InsufficientFundsError(
                    "insufficient funds for gas * price + value",
                    available=balance,
                    required=max_cost,
                )

            self._nonces[sender] = expected + 1
            self.sent.append(signed)
            receipt = await self._apply(signed)
            self._receipts[signed.tx_hash] = receipt

        logger.info(
            "[SIMULATED] tx %s from %s to %s value=%d status=%d",
            signed.tx_hash, signed.sender, signed.to, signed.value, receipt.status,
        )
        return signed.tx_hash

    async def _apply(self, signed: SignedTransaction) -> TransactionReceipt:
        sender = signed.sender.lower()
        recipient = signed.to.lower()
        handler = self._contracts.get(recipient)
        block = next(self._blocks)

        if handler is None:
            gas_used = TRANSFER_GAS
            status, reason = 1, None
        else:
            data = to_bytes(signed.data)
            try:
                gas_used = min(signed.gas, await handler.estimate(signed.sender, signed.value, data))
                await handler.execute(signed.sender, signed.value, data)
                status, reason = 1, None
            except ContractRevertError as exc:
                gas_used = signed.gas
                status, reason = 0, exc.reason

        self._balances[sender] -= gas_used * signed.gas_price
        if status == 1 and signed.value:
            self._balances[sender] -= signed.value
            self._balances[recipient] = self._balances.get(recipient, 0) + signed.value

        return TransactionReceipt(
            tx_hash=signed.tx_hash,
            status=status,
            block_number=block,
            gas_used=gas_used,
            revert_reason=reason,
        )

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[TransactionReceipt]:
        return self._receipts.get(tx_hash)
