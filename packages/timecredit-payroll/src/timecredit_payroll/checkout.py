"""Checkout accrual: turn a finished shift into a ledger credit."""
from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from typing import Optional

from timecredit_chain.owner import OwnerSigner
from timecredit_core.accrual import AttendanceAccrualComputer
from timecredit_core.config import DEFAULT_TRANSFER_GAS_UNITS
from timecredit_core.exceptions import ContractRevertError, TimeCreditException, TimeCreditValidationError
from timecredit_core.models import SettlementStatus
from timecredit_core.units import to_display
from timecredit_ledger.base import Ledger

from .ownership import ensure_ledger_owner, require_active

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AccrualOutcome:
    user_code: str
    minutes_worked: int
    amount_minor: int
    amount_display: str
    status: SettlementStatus = SettlementStatus.COMPLETED
    transfer_id: Optional[str] = None
    record_id: Optional[str] = None
    record_error: Optional[str] = None

    @property
    def credited(self) -> bool:
        return self.record_id is not None


class CheckoutAccrualService:
    """Computes the shift credit, optionally pays it out, then credits the ledger.

    With `pay_on_accrual` the owner first transfers the amount to the
    employee's wallet. A ledger failure after that transfer yields a
    RECORD_FAILED outcome, as does a transfer that is never confirmed; without
    a transfer the failure is raised as is.
    """

    def __init__(
        self,
        *,
        ledger: Ledger,
        owner_signer: OwnerSigner,
        computer: Optional[AttendanceAccrualComputer] = None,
        pay_on_accrual: bool = True,
        transfer_gas_units: int = DEFAULT_TRANSFER_GAS_UNITS,
    ) -> None:
        self._ledger = ledger
        self._owner = owner_signer
        self._computer = computer or AttendanceAccrualComputer()
        self._pay_on_accrual = pay_on_accrual
        self._gas_units = transfer_gas_units

    async def accrue(self, user_code: str, checkin: int, checkout: int) -> AccrualOutcome:
        computation = self._computer.compute(checkin, checkout)
        employee = require_active(await self._ledger.get_employee(user_code))

        outcome = AccrualOutcome(
            user_code=user_code,
            minutes_worked=computation.minutes_worked,
            amount_minor=computation.amount_minor,
            amount_display=to_display(computation.amount_minor),
        )
        if not computation.creditable:
            logger.info("No whole minutes worked by %s; nothing to credit", user_code)
            return outcome

        # owner mismatch is raised before any payout
        owner = await ensure_ledger_owner(self._ledger, self._owner)
        if not self._pay_on_accrual:
            receipt = await self._ledger.credit(owner, user_code, computation.amount_minor)
            outcome.record_id = receipt.record_id
            return outcome

        submitted = await self._owner.transfer(
            employee.wallet_address,
            computation.amount_minor,
            gas_limit=self._gas_units,
            wait=False,
        )
        outcome.transfer_id = submitted.tx_hash
        try:
            await self._owner.executor.confirm(submitted)
        except ContractRevertError:
            raise
        except TimeCreditException as e:
            logger.error("Accrual transfer %s for %s not confirmed: %s", submitted.tx_hash, user_code, e)
            outcome.status = SettlementStatus.RECORD_FAILED
            outcome.record_error = str(e)
            return outcome
        logger.info(
            "Paid %s to %s for %d minutes in %s",
            outcome.amount_display, user_code, computation.minutes_worked, submitted.tx_hash,
        )
        return await self._credit(outcome)

    async def retry_credit(self, outcome: AccrualOutcome) -> AccrualOutcome:
        """Re-run only the ledger credit for a RECORD_FAILED outcome."""
        if outcome.status is not SettlementStatus.RECORD_FAILED:
            raise TimeCreditValidationError("Only a failed credit can be retried", field="status")
        return await self._credit(dataclasses.replace(outcome))

    async def _credit(self, outcome: AccrualOutcome) -> AccrualOutcome:
        try:
            owner = await ensure_ledger_owner(self._ledger, self._owner)
            receipt = await self._ledger.credit(owner, outcome.user_code, outcome.amount_minor)
        except Exception as e:
            logger.error(
                "Accrual transfer %s succeeded but ledger credit failed for %s: %s",
                outcome.transfer_id, outcome.user_code, e,
            )
            outcome.status = SettlementStatus.RECORD_FAILED
            outcome.record_error = str(e)
            return outcome

        outcome.status = SettlementStatus.COMPLETED
        outcome.record_id = receipt.record_id
        outcome.record_error = None
        return outcome
