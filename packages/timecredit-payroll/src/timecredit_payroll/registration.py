"""Employee onboarding: wallet generation, funding and ledger registration."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from timecredit_chain.credentials import export_credential, generate_account
from timecredit_chain.owner import OwnerSigner
from timecredit_core.config import DEFAULT_REGISTRATION_FUNDING_MINOR, DEFAULT_TRANSFER_GAS_UNITS
from timecredit_core.exceptions import EmployeeNotFoundError, TimeCreditValidationError
from timecredit_core.models import Employee
from timecredit_core.units import require_minor_amount
from timecredit_ledger.base import Ledger, LedgerReceipt, validate_user_code

from .ownership import ensure_ledger_owner

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Registration:
    employee: Employee
    # handed to the caller once and never stored
    credential: str = field(repr=False)
    funding_tx_id: Optional[str]
    record_id: str


class EmployeeRegistrar:
    """Owner-only onboarding and status changes."""

    def __init__(
        self,
        *,
        ledger: Ledger,
        owner_signer: OwnerSigner,
        funding_minor: int = DEFAULT_REGISTRATION_FUNDING_MINOR,
        transfer_gas_units: int = DEFAULT_TRANSFER_GAS_UNITS,
    ) -> None:
        self._ledger = ledger
        self._owner = owner_signer
        self._funding = require_minor_amount(funding_minor, field="funding_minor")
        self._gas_units = transfer_gas_units

    async def register(self, caller: str, user_code: str) -> Registration:
        """Create, fund and register a wallet for a new employee.

        The caller must be the ledger owner. Funding happens before the
        ledger registration; if registration then fails the funded wallet is
        orphaned and the error is raised.
        """
        validate_user_code(user_code)
        await self._ledger.require_owner(caller)
        owner = await ensure_ledger_owner(self._ledger, self._owner)
        try:
            await self._ledger.get_employee(user_code)
        except EmployeeNotFoundError:
            pass
        else:
            raise TimeCreditValidationError(
                f"Employee '{user_code}' is already registered", field="user_code",
            )

        account = generate_account()
        funding_tx_id = None
        if self._funding:
            submitted = await self._owner.transfer(account.address, self._funding, gas_limit=self._gas_units)
            funding_tx_id = submitted.tx_hash

        try:
            receipt = await self._ledger.register_employee(owner, user_code, account.address)
        except Exception:
            logger.error(
                "Funded wallet %s for %s but ledger registration failed", account.address, user_code,
            )
            raise

        logger.info("Registered %s with wallet %s", user_code, account.address)
        return Registration(
            employee=await self._ledger.get_employee(user_code),
            credential=export_credential(account),
            funding_tx_id=funding_tx_id,
            record_id=receipt.record_id,
        )

    async def set_status(self, caller: str, user_code: str, active: bool) -> LedgerReceipt:
        await self._ledger.require_owner(caller)
        owner = await ensure_ledger_owner(self._ledger, self._owner)
        receipt = await self._ledger.update_employee_status(owner, user_code, active)
        logger.info("Employee %s is now %s", user_code, "active" if active else "inactive")
        return receipt
