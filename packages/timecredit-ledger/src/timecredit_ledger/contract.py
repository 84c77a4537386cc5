"""Ledger backed by the deployed ledger contract."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from timecredit_chain.abi import ContractFunction
from timecredit_chain.credentials import same_address
from timecredit_chain.network import ValueNetwork
from timecredit_chain.owner import OwnerSigner
from timecredit_core.exceptions import (
    ContractRevertError,
    EmployeeNotFoundError,
    InsufficientBookBalanceError,
    NotAuthorizedError,
    OwnerMismatchError,
    TimeCreditException,
    TimeCreditValidationError,
    exception_from_chain_error,
)
from timecredit_core.models import Employee, LedgerAction, LedgerEntry, LedgerTotals

from .abi import (
    REASON_EMPLOYEE_EXISTS,
    REASON_EMPLOYEE_NOT_FOUND,
    REASON_INDEX_OUT_OF_RANGE,
    REASON_INSUFFICIENT_BOOK_BALANCE,
    REASON_INVALID_INPUT,
    REASON_ONLY_OWNER,
    LedgerFunctions,
)
from .base import Ledger, LedgerReceipt, validate_amount, validate_index, validate_user_code
from .guard import OwnershipGuard

logger = logging.getLogger(__name__)


class ContractLedger(Ledger):
    """Ledger operations as ABI-encoded calls against the ledger contract.

    Mutations are signed by the OwnerSigner. The owner address is read from
    the contract once and cached; the guard runs against it before any
    mutating call is sent.
    """

    def __init__(
        self,
        network: ValueNetwork,
        owner_signer: OwnerSigner,
        contract_address: str,
        gas_limit: int = 300_000,
    ) -> None:
        super().__init__(network)
        self._signer = owner_signer
        self._address = contract_address
        self._gas_limit = gas_limit
        self._guard: Optional[OwnershipGuard] = None

    @property
    def contract_address(self) -> str:
        return self._address

    # -- owner ---------------------------------------------------------------

    async def owner(self) -> str:
        guard = await self._get_guard()
        return guard.owner

    async def require_owner(self, caller: str) -> str:
        guard = await self._get_guard()
        return guard.check(caller)

    async def _get_guard(self) -> OwnershipGuard:
        if self._guard is None:
            (owner,) = await self._read(LedgerFunctions.OWNER)
            self._guard = OwnershipGuard(owner)
        return self._guard

    # -- mutations -----------------------------------------------------------

    async def register_employee(self, caller: str, user_code: str, wallet_address: str) -> LedgerReceipt:
        validate_user_code(user_code)
        return await self._transact(
            "register_employee", caller, user_code, 0,
            LedgerFunctions.REGISTER_EMPLOYEE, user_code, wallet_address,
        )

    async def update_employee_status(self, caller: str, user_code: str, active: bool) -> LedgerReceipt:
        validate_user_code(user_code)
        if not isinstance(active, bool):
            raise TimeCreditValidationError("active must be a boolean", field="active")
        return await self._transact(
            "update_employee_status", caller, user_code, 0,
            LedgerFunctions.UPDATE_EMPLOYEE_STATUS, user_code, active,
        )

    async def credit(self, caller: str, user_code: str, amount: int) -> LedgerReceipt:
        validate_user_code(user_code)
        validate_amount(amount)
        return await self._transact(
            "credit", caller, user_code, amount,
            LedgerFunctions.CREDIT, user_code, amount,
        )

    async def record_withdraw(self, caller: str, user_code: str, amount: int) -> LedgerReceipt:
        validate_user_code(user_code)
        validate_amount(amount)
        return await self._transact(
            "record_withdraw", caller, user_code, amount,
            LedgerFunctions.RECORD_WITHDRAW, user_code, amount,
        )

    async def record_purchase(self, caller: str, user_code: str, amount: int) -> LedgerReceipt:
        validate_user_code(user_code)
        validate_amount(amount)
        return await self._transact(
            "record_purchase", caller, user_code, amount,
            LedgerFunctions.RECORD_PURCHASE, user_code, amount,
        )

    async def _transact(
        self,
        operation: str,
        caller: str,
        user_code: str,
        amount: int,
        fn: ContractFunction,
        *args,
    ) -> LedgerReceipt:
        guard = await self._get_guard()
        guard.check(caller)
        if not same_address(self._signer.address, guard.owner):
            raise OwnerMismatchError(guard.owner, self._signer.address)

        try:
            submitted = await self._signer.transact(
                self._address,
                fn.encode_call(*args),
                gas_limit=self._gas_limit,
            )
        except ContractRevertError as exc:
            raise await self._map_revert(exc, user_code, amount) from exc

        logger.info("Ledger %s for %s recorded in tx %s", operation, user_code, submitted.tx_hash)
        return LedgerReceipt(
            record_id=submitted.tx_hash,
            operation=operation,
            subject=user_code,
            amount_minor=amount,
            simulated=submitted.simulated,
        )

    async def _map_revert(self, exc: ContractRevertError, user_code: str, amount: int) -> TimeCreditException:
        reason = exc.reason
        if REASON_ONLY_OWNER in reason:
            return NotAuthorizedError("Ledger contract rejected the caller", caller=self._signer.address)
        if REASON_EMPLOYEE_NOT_FOUND in reason:
            return EmployeeNotFoundError(user_code)
        if REASON_INSUFFICIENT_BOOK_BALANCE in reason:
            balance = await self.get_book_balance(user_code)
            return InsufficientBookBalanceError(user_code, balance, amount)
        if REASON_EMPLOYEE_EXISTS in reason:
            return TimeCreditValidationError(f"Employee '{user_code}' is already registered", field="user_code")
        if REASON_INVALID_INPUT in reason:
            return TimeCreditValidationError(reason)
        return exc

    # -- reads ---------------------------------------------------------------

    async def _read(self, fn: ContractFunction, *args) -> tuple:
        try:
            raw = await self._network.call(self._address, fn.encode_call(*args))
        except TimeCreditException:
            raise
        except Exception as e:
            raise exception_from_chain_error(e, method="eth_call") from e
        return fn.decode_output(raw)

    async def get_employee(self, user_code: str) -> Employee:
        validate_user_code(user_code)
        try:
            code, wallet, active, created = await self._read(LedgerFunctions.GET_EMPLOYEE, user_code)
        except ContractRevertError as exc:
            if REASON_EMPLOYEE_NOT_FOUND in exc.reason:
                raise EmployeeNotFoundError(user_code) from exc
            raise
        return Employee(
            user_code=code,
            wallet_address=wallet,
            active=active,
            created_at=datetime.fromtimestamp(created, timezone.utc),
        )

    async def list_employees(self) -> list[Employee]:
        (codes,) = await self._read(LedgerFunctions.GET_EMPLOYEE_CODES)
        return [await self.get_employee(code) for code in codes]

    async def get_totals(self, user_code: str) -> LedgerTotals:
        credited, withdrawn = await self._read(LedgerFunctions.GET_TOTALS, user_code)
        return LedgerTotals(
            user_code=user_code,
            total_credited_minor=credited,
            total_withdrawn_minor=withdrawn,
        )

    async def get_book_balance(self, user_code: str) -> int:
        (balance,) = await self._read(LedgerFunctions.GET_BOOK_BALANCE, user_code)
        return balance

    async def get_log_count(self, user_code: str) -> int:
        (count,) = await self._read(LedgerFunctions.GET_LOG_COUNT, user_code)
        return count

    async def get_log_entry(self, user_code: str, index: int) -> LedgerEntry:
        validate_index(index)
        try:
            timestamp, action, amount = await self._read(LedgerFunctions.GET_LOG_BY_INDEX, user_code, index)
        except ContractRevertError as exc:
            if REASON_INDEX_OUT_OF_RANGE in exc.reason:
                raise TimeCreditValidationError(
                    f"Log index {index} out of range for '{user_code}'",
                    field="index",
                ) from exc
            raise
        return LedgerEntry(
            timestamp=timestamp,
            action=LedgerAction.from_code(action),
            amount_minor=amount,
        )
