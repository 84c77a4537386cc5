"""
Withdrawal orchestration: verify, transfer, then record.

The transfer and its ledger record are two separate steps. If the transfer
lands but the record does not, the result carries RECORD_FAILED together
with the transfer id so an operator can call `retry_record`. A transfer
that was broadcast but never confirmed is reported the same way. Nothing is
rolled back and broadcasts are never retried.
"""
from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from timecredit_chain.credentials import derive_account, same_address
from timecredit_chain.executor import TransactionExecutor
from timecredit_chain.owner import OwnerSigner
from timecredit_core.config import DEFAULT_TRANSFER_GAS_UNITS
from timecredit_core.exceptions import (
    ContractRevertError,
    CredentialMismatchError,
    InsufficientFundsError,
    TimeCreditException,
    TimeCreditValidationError,
    exception_from_chain_error,
)
from timecredit_core.models import SettlementStatus
from timecredit_core.units import fiat_equivalent, to_display, to_minor
from timecredit_ledger.base import Ledger

from .ownership import ensure_ledger_owner, require_active

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class WithdrawalResult:
    status: SettlementStatus
    user_code: str
    transfer_id: str
    amount_minor: int
    amount_display: str
    fiat_currency: str
    fiat_rate: Decimal
    fiat_equivalent: Decimal
    record_id: Optional[str] = None
    record_error: Optional[str] = None

    @property
    def completed(self) -> bool:
        return self.status is SettlementStatus.COMPLETED


class TransactionOrchestrator:
    """Moves an employee's withdrawal on-chain and books it in the ledger."""

    def __init__(
        self,
        *,
        ledger: Ledger,
        executor: TransactionExecutor,
        owner_signer: OwnerSigner,
        collection_address: Optional[str] = None,
        fiat_currency: str = "VND",
        fiat_rate: Decimal = Decimal("20000"),
        transfer_gas_units: int = DEFAULT_TRANSFER_GAS_UNITS,
    ) -> None:
        self._ledger = ledger
        self._executor = executor
        self._owner = owner_signer
        self._collection = collection_address or owner_signer.address
        self._fiat_currency = fiat_currency
        self._fiat_rate = fiat_rate
        self._gas_units = transfer_gas_units

    @property
    def collection_address(self) -> str:
        return self._collection

    async def withdraw(self, user_code: str, credential: str, amount_display: str) -> WithdrawalResult:
        """Withdraw `amount_display` units from the employee's wallet.

        Raises before anything is signed for bad credentials, unknown or
        inactive employees, a wallet mismatch, malformed amounts and
        insufficient funds. Once the transfer is broadcast, failures of the
        bookkeeping step come back as a RECORD_FAILED result.
        """
        account = derive_account(credential)
        employee = require_active(await self._ledger.get_employee(user_code))
        if not same_address(account.address, employee.wallet_address):
            logger.warning("Credential mismatch on withdrawal for %s", user_code)
            raise CredentialMismatchError(user_code, account.address)

        amount = to_minor(amount_display)

        network = self._executor.network
        try:
            balance = await network.get_balance(account.address)
            gas_price = await network.get_gas_price()
        except TimeCreditException:
            raise
        except Exception as e:
            raise exception_from_chain_error(e, method="eth_getBalance") from e

        total_cost = amount + self._gas_units * gas_price
        if balance < total_cost:
            raise InsufficientFundsError(
                f"Wallet of '{user_code}' cannot cover {to_display(amount)} plus fee",
                available=balance,
                required=total_cost,
            )

        submitted = await self._executor.send(
            account,
            self._collection,
            value=amount,
            gas_limit=self._gas_units,
            gas_price=gas_price,
            wait=False,
        )
        logger.info(
            "Withdrawal transfer %s of %s for %s", submitted.tx_hash, to_display(amount), user_code,
        )

        result = WithdrawalResult(
            status=SettlementStatus.RECORD_FAILED,
            user_code=user_code,
            transfer_id=submitted.tx_hash,
            amount_minor=amount,
            amount_display=to_display(amount),
            fiat_currency=self._fiat_currency,
            fiat_rate=self._fiat_rate,
            fiat_equivalent=fiat_equivalent(amount, self._fiat_rate),
        )
        try:
            await self._executor.confirm(submitted)
        except ContractRevertError:
            raise
        except TimeCreditException as e:
            # broadcast but unconfirmed: the value may already have moved
            logger.error(
                "Transfer %s for %s not confirmed: %s", submitted.tx_hash, user_code, e,
            )
            result.record_error = str(e)
            return result
        return await self._record(result)

    async def retry_record(self, result: WithdrawalResult) -> WithdrawalResult:
        """Re-run only the owner check and ledger record for a partial withdrawal."""
        if result.completed:
            raise TimeCreditValidationError(
                f"Withdrawal {result.transfer_id} is already recorded",
                field="status",
            )
        logger.info("Retrying ledger record for transfer %s", result.transfer_id)
        return await self._record(dataclasses.replace(result))

    async def _record(self, result: WithdrawalResult) -> WithdrawalResult:
        try:
            owner = await ensure_ledger_owner(self._ledger, self._owner)
            receipt = await self._ledger.record_withdraw(owner, result.user_code, result.amount_minor)
        except Exception as e:
            logger.error(
                "Transfer %s succeeded but ledger record failed for %s: %s",
                result.transfer_id, result.user_code, e,
            )
            result.status = SettlementStatus.RECORD_FAILED
            result.record_id = None
            result.record_error = str(e)
            return result

        result.status = SettlementStatus.COMPLETED
        result.record_id = receipt.record_id
        result.record_error = None
        return result
