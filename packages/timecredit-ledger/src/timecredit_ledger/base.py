"""Abstract base class for ledger implementations."""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import AsyncIterator, Optional

from timecredit_chain.network import ValueNetwork
from timecredit_core.exceptions import TimeCreditConfigurationError, TimeCreditValidationError
from timecredit_core.models import Employee, LedgerEntry, LedgerTotals
from timecredit_core.units import require_minor_amount


@dataclass(frozen=True, slots=True)
class LedgerReceipt:
    """Confirmation of one ledger or catalog mutation.

    `subject` is the employee user code, or the product code for catalog
    operations. `record_id` is the transaction hash on a real network.
    """

    record_id: str
    operation: str
    subject: str
    amount_minor: int = 0
    simulated: bool = False


@dataclass(frozen=True, slots=True)
class WalletBalance:
    """Spendable value held by an employee's wallet on the network.

    Deliberately not an int: it must never be mixed up with book balance.
    """

    user_code: str
    wallet_address: str
    balance_minor: int


class LedgerLogView:
    """Ordered, finite and restartable view over one employee's log.

    Each `async for` starts again at index 0 and walks the entries that
    existed when that iteration began.
    """

    def __init__(self, ledger: "Ledger", user_code: str) -> None:
        self._ledger = ledger
        self.user_code = user_code

    def __aiter__(self) -> AsyncIterator[LedgerEntry]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[LedgerEntry]:
        count = await self._ledger.get_log_count(self.user_code)
        for index in range(count):
            yield await self._ledger.get_log_entry(self.user_code, index)

    async def to_list(self) -> list[LedgerEntry]:
        return [entry async for entry in self]


class Ledger(ABC):
    """
    Append-only earnings ledger.

    Mutations take the caller identity and are owner-gated; a non-owner caller
    gets NotAuthorizedError before anything is attempted. Two backends:
    - InMemoryLedger for simulated mode and tests
    - ContractLedger for a deployed ledger contract
    """

    def __init__(self, network: Optional[ValueNetwork] = None) -> None:
        self._network = network

    # -- owner ---------------------------------------------------------------

    @abstractmethod
    async def owner(self) -> str:
        """The ledger's configured owner address."""

    @abstractmethod
    async def require_owner(self, caller: str) -> str:
        """Raise NotAuthorizedError unless `caller` is the owner."""

    # -- mutations -----------------------------------------------------------

    @abstractmethod
    async def register_employee(self, caller: str, user_code: str, wallet_address: str) -> LedgerReceipt:
        ...

    @abstractmethod
    async def update_employee_status(self, caller: str, user_code: str, active: bool) -> LedgerReceipt:
        ...

    @abstractmethod
    async def credit(self, caller: str, user_code: str, amount: int) -> LedgerReceipt:
        """Append CREDIT and raise total_credited."""

    @abstractmethod
    async def record_withdraw(self, caller: str, user_code: str, amount: int) -> LedgerReceipt:
        """Append WITHDRAW and raise total_withdrawn.

        Pure bookkeeping: never moves value. Rejected with
        InsufficientBookBalanceError when it would take total_withdrawn past
        total_credited. Not idempotent; recording twice counts twice.
        """

    @abstractmethod
    async def record_purchase(self, caller: str, user_code: str, amount: int) -> LedgerReceipt:
        """Append PURCHASE. total_withdrawn is left untouched."""

    # -- reads ---------------------------------------------------------------

    @abstractmethod
    async def get_employee(self, user_code: str) -> Employee:
        """Raise EmployeeNotFoundError when absent."""

    @abstractmethod
    async def list_employees(self) -> list[Employee]:
        ...

    @abstractmethod
    async def get_totals(self, user_code: str) -> LedgerTotals:
        ...

    @abstractmethod
    async def get_log_count(self, user_code: str) -> int:
        ...

    @abstractmethod
    async def get_log_entry(self, user_code: str, index: int) -> LedgerEntry:
        ...

    async def get_book_balance(self, user_code: str) -> int:
        """total_credited - total_withdrawn, in minor units."""
        totals = await self.get_totals(user_code)
        return totals.book_balance_minor

    def get_logs(self, user_code: str) -> LedgerLogView:
        return LedgerLogView(self, user_code)

    async def get_employee_balance(self, user_code: str) -> WalletBalance:
        """Actual spendable balance of the employee's wallet on the network."""
        if self._network is None:
            raise TimeCreditConfigurationError("Ledger has no value network attached")
        employee = await self.get_employee(user_code)
        balance = await self._network.get_balance(employee.wallet_address)
        return WalletBalance(
            user_code=employee.user_code,
            wallet_address=employee.wallet_address,
            balance_minor=balance,
        )


def validate_user_code(user_code: object) -> str:
    if not isinstance(user_code, str) or not user_code.strip():
        raise TimeCreditValidationError("user_code must be a non-empty string", field="user_code")
    return user_code


def validate_amount(amount: object) -> int:
    return require_minor_amount(amount, field="amount")


def validate_index(index: object) -> int:
    if isinstance(index, bool) or not isinstance(index, int) or index < 0:
        raise TimeCreditValidationError("index must be a non-negative integer", field="index")
    return index
