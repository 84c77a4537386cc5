"""In-memory ledger used in simulated chain mode."""
from __future__ import annotations

import asyncio
import logging
import secrets
import time
from datetime import datetime, timezone
from typing import Callable, Optional

from timecredit_chain.network import ValueNetwork
from timecredit_core.exceptions import (
    EmployeeNotFoundError,
    InsufficientBookBalanceError,
    TimeCreditValidationError,
)
from timecredit_core.models import Employee, LedgerAction, LedgerEntry, LedgerTotals

from .base import (
    Ledger,
    LedgerReceipt,
    validate_amount,
    validate_index,
    validate_user_code,
)
from .guard import OwnershipGuard

logger = logging.getLogger(__name__)


class InMemoryLedger(Ledger):
    """
    Authoritative ledger state held in-process.

    Applies the same rules the deployed contract enforces (owner gate,
    unknown employee, book balance floor) and returns a synthetic
    confirmation id per mutation. State changes are serialized with an
    asyncio.Lock. Data is lost on restart.

    The `check_*` methods run every rule without changing state; the
    simulated contract handler uses them for gas estimation.
    """

    def __init__(
        self,
        owner_address: str,
        network: Optional[ValueNetwork] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(network)
        self._guard = OwnershipGuard(owner_address)
        self._clock = clock
        self._employees: dict[str, Employee] = {}
        self._logs: dict[str, list[LedgerEntry]] = {}
        self._credited: dict[str, int] = {}
        self._withdrawn: dict[str, int] = {}
        self._lock = asyncio.Lock()

    # -- owner ---------------------------------------------------------------

    async def owner(self) -> str:
        return self._guard.owner

    async def require_owner(self, caller: str) -> str:
        return self._guard.check(caller)

    # -- dry-run checks ----------------------------------------------------

    def check_register_employee(self, caller: str, user_code: str, wallet_address: str) -> None:
        self._guard.check(caller)
        validate_user_code(user_code)
        if not isinstance(wallet_address, str) or not wallet_address:
            raise TimeCreditValidationError("wallet_address is required", field="wallet_address")
        if user_code in self._employees:
            raise TimeCreditValidationError(
                f"Employee '{user_code}' is already registered",
                field="user_code",
            )

    def check_update_employee_status(self, caller: str, user_code: str, active: bool) -> None:
        self._guard.check(caller)
        if not isinstance(active, bool):
            raise TimeCreditValidationError("active must be a boolean", field="active")
        self._require_employee(user_code)

    def check_credit(self, caller: str, user_code: str, amount: int) -> None:
        self._guard.check(caller)
        validate_amount(amount)
        self._require_employee(user_code)

    def check_record_withdraw(self, caller: str, user_code: str, amount: int) -> None:
        self._guard.check(caller)
        validate_amount(amount)
        self._require_employee(user_code)
        credited = self._credited.get(user_code, 0)
        withdrawn = self._withdrawn.get(user_code, 0)
        if withdrawn + amount > credited:
            raise InsufficientBookBalanceError(user_code, credited - withdrawn, amount)

    def check_record_purchase(self, caller: str, user_code: str, amount: int) -> None:
        self._guard.check(caller)
        validate_amount(amount)
        self._require_employee(user_code)

    # -- mutations -----------------------------------------------------------

    async def register_employee(self, caller: str, user_code: str, wallet_address: str) -> LedgerReceipt:
        async with self._lock:
            self.check_register_employee(caller, user_code, wallet_address)
            self._employees[user_code] = Employee(
                user_code=user_code,
                wallet_address=wallet_address,
                active=True,
                created_at=datetime.fromtimestamp(int(self._clock()), timezone.utc),
            )
            self._logs[user_code] = []
        logger.info("Registered employee %s with wallet %s", user_code, wallet_address)
        return self._receipt("register_employee", user_code)

    async def update_employee_status(self, caller: str, user_code: str, active: bool) -> LedgerReceipt:
        async with self._lock:
            self.check_update_employee_status(caller, user_code, active)
            self._employees[user_code].active = active
        logger.info("Employee %s active=%s", user_code, active)
        return self._receipt("update_employee_status", user_code)

    async def credit(self, caller: str, user_code: str, amount: int) -> LedgerReceipt:
        async with self._lock:
            self.check_credit(caller, user_code, amount)
            self._append(user_code, LedgerAction.CREDIT, amount)
            self._credited[user_code] = self._credited.get(user_code, 0) + amount
        return self._receipt("credit", user_code, amount)

    async def record_withdraw(self, caller: str, user_code: str, amount: int) -> LedgerReceipt:
        async with self._lock:
            self.check_record_withdraw(caller, user_code, amount)
            self._append(user_code, LedgerAction.WITHDRAW, amount)
            self._withdrawn[user_code] = self._withdrawn.get(user_code, 0) + amount
        return self._receipt("record_withdraw", user_code, amount)

    async def record_purchase(self, caller: str, user_code: str, amount: int) -> LedgerReceipt:
        async with self._lock:
            self.check_record_purchase(caller, user_code, amount)
            self._append(user_code, LedgerAction.PURCHASE, amount)
        return self._receipt("record_purchase", user_code, amount)

    # -- reads ---------------------------------------------------------------

    async def get_employee(self, user_code: str) -> Employee:
        return self._require_employee(user_code)

    async def list_employees(self) -> list[Employee]:
        return list(self._employees.values())

    async def get_totals(self, user_code: str) -> LedgerTotals:
        return LedgerTotals(
            user_code=user_code,
            total_credited_minor=self._credited.get(user_code, 0),
            total_withdrawn_minor=self._withdrawn.get(user_code, 0),
        )

    async def get_log_count(self, user_code: str) -> int:
        return len(self._logs.get(user_code, ()))

    async def get_log_entry(self, user_code: str, index: int) -> LedgerEntry:
        validate_index(index)
        entries = self._logs.get(user_code, [])
        if index >= len(entries):
            raise TimeCreditValidationError(
                f"Log index {index} out of range for '{user_code}'",
                field="index",
            )
        return entries[index]

    # -- internals -----------------------------------------------------------

    def _require_employee(self, user_code: str) -> Employee:
        validate_user_code(user_code)
        employee = self._employees.get(user_code)
        if employee is None:
            raise EmployeeNotFoundError(user_code)
        return employee

    def _append(self, user_code: str, action: LedgerAction, amount: int) -> None:
        self._logs[user_code].append(
            LedgerEntry(timestamp=int(self._clock()), action=action, amount_minor=amount)
        )
        logger.info("Ledger %s %s amount=%d", action.value, user_code, amount)

    def _receipt(self, operation: str, user_code: str, amount: int = 0) -> LedgerReceipt:
        return LedgerReceipt(
            record_id="0x" + secrets.token_hex(32),
            operation=operation,
            subject=user_code,
            amount_minor=amount,
            simulated=True,
        )
