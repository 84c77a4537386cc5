"""
Transaction executor: lane, nonce, sign, broadcast, confirm.

Features:
- Per-sender signing lanes (fresh pending nonce fetched inside the lane)
- Gas estimation with the standard safety buffer
- Optional preflight estimate to surface contract revert reasons
- Receipt polling with revert reporting
- Broadcast failures surfaced, never retried
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from eth_account.signers.local import LocalAccount

from timecredit_core.exceptions import (
    ContractRevertError,
    NetworkError,
    TimeCreditException,
    exception_from_chain_error,
)

from .credentials import sign_transaction
from .lanes import SigningLanes
from .network import TransactionReceipt, ValueNetwork

logger = logging.getLogger(__name__)


def buffered_gas_limit(estimate: int) -> int:
    """Estimate plus 20% plus a flat 10000."""
    return estimate * 6 // 5 + 10_000


@dataclass(slots=True)
class SubmittedTransaction:
    tx_hash: str
    sender: str
    to: str
    value: int
    nonce: int
    gas_limit: int
    gas_price: int
    simulated: bool = False
    receipt: Optional[TransactionReceipt] = None


class TransactionExecutor:
    """Signs and broadcasts transactions for any local account."""

    def __init__(
        self,
        network: ValueNetwork,
        chain_id: int,
        lanes: Optional[SigningLanes] = None,
        await_receipts: bool = True,
        receipt_timeout: float = 120.0,
        poll_interval: float = 1.0,
    ):
        self.network = network
        self.chain_id = chain_id
        self.lanes = lanes or SigningLanes()
        self._await_receipts = await_receipts
        self._receipt_timeout = receipt_timeout
        self._poll_interval = poll_interval

    async def estimate_gas(
        self,
        sender: str,
        to: str,
        value: int = 0,
        data: str = "0x",
    ) -> int:
        tx = {"from": sender, "to": to, "value": value, "data": data}
        try:
            return await self.network.estimate_gas(tx)
        except TimeCreditException:
            raise
        except Exception as e:
            raise exception_from_chain_error(e, method="eth_estimateGas") from e

    async def send(
        self,
        account: LocalAccount,
        to: str,
        value: int = 0,
        data: str = "0x",
        gas_limit: Optional[int] = None,
        gas_price: Optional[int] = None,
        preflight: bool = False,
        wait: bool = True,
    ) -> SubmittedTransaction:
        """Sign and broadcast one transaction from `account`.

        With no `gas_limit` the network estimate is buffered. With a fixed
        `gas_limit` and `preflight`, the estimate still runs so that a revert
        is reported with its reason before anything is signed. With
        `wait=False` the caller confirms later through `confirm`.
        """
        if gas_limit is None:
            gas_limit = buffered_gas_limit(
                await self.estimate_gas(account.address, to, value, data)
            )
        elif preflight:
            await self.estimate_gas(account.address, to, value, data)

        if gas_price is None:
            gas_price = await self._gas_price()

        async with self.lanes.hold(account.address):
            nonce = await self._pending_nonce(account.address)
            signed = sign_transaction(account, {
                "to": to,
                "value": value,
                "data": data,
                "gas": gas_limit,
                "gasPrice": gas_price,
                "nonce": nonce,
                "chainId": self.chain_id,
            })
            try:
                tx_hash = await self.network.send_transaction(signed)
            except TimeCreditException:
                raise
            except Exception as e:
                logger.error(
                    "Broadcast failed from %s nonce=%d: %s", account.address, nonce, e,
                )
                raise exception_from_chain_error(e, method="eth_sendRawTransaction") from e

        submitted = SubmittedTransaction(
            tx_hash=tx_hash,
            sender=account.address,
            to=signed.to,
            value=value,
            nonce=nonce,
            gas_limit=gas_limit,
            gas_price=gas_price,
            simulated=self.network.simulated,
        )
        logger.info("Broadcast tx %s from %s nonce=%d", tx_hash, account.address, nonce)

        if wait:
            await self.confirm(submitted)
        return submitted

    async def confirm(self, submitted: SubmittedTransaction) -> SubmittedTransaction:
        """Attach the receipt unless receipts are not awaited or already known."""
        if self._await_receipts and submitted.receipt is None:
            submitted.receipt = await self.wait_for_receipt(submitted.tx_hash)
        return submitted

    async def wait_for_receipt(self, tx_hash: str) -> TransactionReceipt:
        """Poll until the transaction is mined; a failed status raises."""
        loop = asyncio.get_running_loop()
        start_time = loop.time()

        while True:
            try:
                receipt = await self.network.get_transaction_receipt(tx_hash)
            except TimeCreditException:
                raise
            except Exception as e:
                raise exception_from_chain_error(e, method="eth_getTransactionReceipt", tx_hash=tx_hash) from e

            if receipt is not None:
                if not receipt.succeeded:
                    raise ContractRevertError(
                        receipt.revert_reason or "transaction failed on-chain",
                        tx_hash=tx_hash,
                    )
                logger.debug("Transaction %s mined in block %d", tx_hash, receipt.block_number)
                return receipt

            if loop.time() - start_time > self._receipt_timeout:
                raise NetworkError(
                    f"Transaction {tx_hash} not mined after {self._receipt_timeout}s",
                    method="eth_getTransactionReceipt",
                    details={"tx_hash": tx_hash},
                )
            await asyncio.sleep(self._poll_interval)

    async def _gas_price(self) -> int:
        try:
            return await self.network.get_gas_price()
        except TimeCreditException:
            raise
        except Exception as e:
            raise exception_from_chain_error(e, method="eth_gasPrice") from e

    async def _pending_nonce(self, address: str) -> int:
        try:
            return await self.network.get_transaction_count(address, "pending")
        except TimeCreditException:
            raise
        except Exception as e:
            raise exception_from_chain_error(e, method="eth_getTransactionCount") from e
