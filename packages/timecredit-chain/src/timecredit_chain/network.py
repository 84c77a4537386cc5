"""Value-network port shared by the JSON-RPC and simulated backends."""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True, slots=True)
class SignedTransaction:
    """A signed legacy transaction plus the fields it was built from."""

    raw_transaction: str
    tx_hash: str
    sender: str
    to: str
    value: int
    data: str
    gas: int
    gas_price: int
    nonce: int
    chain_id: int


@dataclass(frozen=True, slots=True)
class TransactionReceipt:
    tx_hash: str
    status: int
    block_number: int
    gas_used: int
    revert_reason: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == 1

    @classmethod
    def from_rpc(cls, payload: dict[str, Any]) -> "TransactionReceipt":
        return cls(
            tx_hash=payload.get("transactionHash", ""),
            status=int(payload.get("status", "0x0"), 16),
            block_number=int(payload.get("blockNumber") or "0x0", 16),
            gas_used=int(payload.get("gasUsed") or "0x0", 16),
        )


class ValueNetwork(ABC):
    """Narrow view of the value-transfer network.

    Every method is a single awaited round trip. Deadlines are the caller's
    business (wrap calls in `asyncio.wait_for`).
    """

    simulated: bool = False

    @abstractmethod
    async def get_chain_id(self) -> int:
        ...

    @abstractmethod
    async def get_balance(self, address: str) -> int:
        """Spendable balance in minor units."""

    @abstractmethod
    async def get_gas_price(self) -> int:
        ...

    @abstractmethod
    async def get_transaction_count(self, address: str, block: str = "pending") -> int:
        """Next nonce for `address`; "pending" includes unmined transactions."""

    @abstractmethod
    async def estimate_gas(self, tx: dict[str, Any]) -> int:
        """Gas estimate; contract reverts surface as ContractRevertError."""

    @abstractmethod
    async def call(self, to: str, data: str, sender: Optional[str] = None) -> bytes:
        """Read-only contract call returning the raw ABI-encoded result."""

    @abstractmethod
    async def send_transaction(self, signed: SignedTransaction) -> str:
        """Broadcast a signed transaction and return its hash."""

    @abstractmethod
    async def get_transaction_receipt(self, tx_hash: str) -> Optional[TransactionReceipt]:
        ...

    async def close(self) -> None:
        return None
