"""Domain models shared by the ledger, chain and payroll packages."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, Optional


class LedgerAction(str, Enum):
    CREDIT = "CREDIT"
    WITHDRAW = "WITHDRAW"
    PURCHASE = "PURCHASE"

    @property
    def code(self) -> int:
        """Numeric action code as stored by the ledger contract."""
        return _ACTION_CODES[self]

    @classmethod
    def from_code(cls, code: int) -> "LedgerAction":
        for action, value in _ACTION_CODES.items():
            if value == code:
                return action
        raise ValueError(f"Unknown ledger action code: {code}")


_ACTION_CODES = {
    LedgerAction.CREDIT: 0,
    LedgerAction.WITHDRAW: 1,
    LedgerAction.PURCHASE: 2,
}


class AccessEventType(str, Enum):
    ENTRY = "ENTRY"
    EXIT = "EXIT"


class SettlementStatus(str, Enum):
    COMPLETED = "completed"
    # value moved but the ledger record did not land
    RECORD_FAILED = "record_failed"


@dataclass(slots=True)
class Employee:
    user_code: str
    wallet_address: str
    active: bool = True
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True, slots=True)
class LedgerEntry:
    timestamp: int
    action: LedgerAction
    amount_minor: int


@dataclass(frozen=True, slots=True)
class LedgerTotals:
    user_code: str
    total_credited_minor: int
    total_withdrawn_minor: int

    @property
    def book_balance_minor(self) -> int:
        return self.total_credited_minor - self.total_withdrawn_minor


@dataclass(slots=True)
class Product:
    product_code: str
    name: str
    price_minor: int
    image_ref: str = ""
    exists: bool = True


@dataclass(frozen=True, slots=True)
class LineItem:
    product_code: str
    quantity: int
    unit_price_minor: int

    @property
    def line_total_minor(self) -> int:
        return self.unit_price_minor * self.quantity


@dataclass(frozen=True, slots=True)
class AccessEvent:
    card_id: str
    event_type: AccessEventType
    timestamp: int


@dataclass(slots=True)
class AttendanceRecord:
    user_code: str
    card_id: str
    event_type: AccessEventType
    timestamp: int
    matched: bool = False
    record_id: Optional[int] = None


def replay_balance(entries: Iterable[LedgerEntry]) -> int:
    """Replay a log treating purchases as debits.

    This is NOT the book balance. `record_purchase` never touches
    `total_withdrawn`, so book balance and this replay diverge by the sum of
    all purchases. Use it only to surface that gap in reports.
    """
    balance = 0
    for entry in entries:
        if entry.action is LedgerAction.CREDIT:
            balance += entry.amount_minor
        else:
            balance -= entry.amount_minor
    return balance
