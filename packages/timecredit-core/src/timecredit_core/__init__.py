"""Core domain primitives shared across TimeCredit services."""

from .accrual import AccrualComputation, AttendanceAccrualComputer
from .config import TimeCreditSettings, load_settings
from .exceptions import (
    ContractRevertError,
    CredentialMismatchError,
    EmployeeNotFoundError,
    InsufficientBookBalanceError,
    InsufficientFundsError,
    InvalidAmountError,
    InvalidCredentialError,
    InvalidTimeRangeError,
    NetworkError,
    NotAuthorizedError,
    OwnerMismatchError,
    ProductNotFoundError,
    TimeCreditAuthorizationError,
    TimeCreditException,
    TimeCreditNotFoundError,
    TimeCreditValidationError,
    exception_from_chain_error,
)
from .models import (
    AccessEvent,
    AccessEventType,
    AttendanceRecord,
    Employee,
    LedgerAction,
    LedgerEntry,
    LedgerTotals,
    LineItem,
    Product,
    SettlementStatus,
    replay_balance,
)
from .units import MINOR_PER_UNIT, fiat_equivalent, to_display, to_minor

__all__ = [
    "AccrualComputation",
    "AttendanceAccrualComputer",
    "TimeCreditSettings",
    "load_settings",
    "TimeCreditException",
    "TimeCreditValidationError",
    "InvalidTimeRangeError",
    "InvalidCredentialError",
    "InvalidAmountError",
    "TimeCreditAuthorizationError",
    "NotAuthorizedError",
    "CredentialMismatchError",
    "OwnerMismatchError",
    "TimeCreditNotFoundError",
    "EmployeeNotFoundError",
    "ProductNotFoundError",
    "InsufficientFundsError",
    "InsufficientBookBalanceError",
    "NetworkError",
    "ContractRevertError",
    "exception_from_chain_error",
    "AccessEvent",
    "AccessEventType",
    "AttendanceRecord",
    "Employee",
    "LedgerAction",
    "LedgerEntry",
    "LedgerTotals",
    "LineItem",
    "Product",
    "SettlementStatus",
    "replay_balance",
    "MINOR_PER_UNIT",
    "fiat_equivalent",
    "to_display",
    "to_minor",
]
