"""Unified exception hierarchy for TimeCredit.

All TimeCredit-specific exceptions inherit from TimeCreditException, enabling:
- Consistent error handling across packages
- Structured error responses with error codes
- Chain error mapping from raw RPC/transport errors

Usage:
    from timecredit_core.exceptions import (
        TimeCreditException,
        TimeCreditValidationError,
        exception_from_chain_error,
    )

    try:
        tx_hash = await network.send_raw_transaction(raw)
    except httpx.HTTPError as e:
        raise exception_from_chain_error(e, method="eth_sendRawTransaction")

All exceptions have:
- error_code: Machine-readable error code (e.g., "VALIDATION_ERROR")
- http_status: Status code a transport layer should map the error to
- message: Human-readable error message
- details: Optional additional context dictionary
- to_dict(): Convert to response format
"""
from __future__ import annotations

import logging
from typing import Any, Optional, Type

logger = logging.getLogger(__name__)


class TimeCreditException(Exception):
    """Base exception for all TimeCredit errors.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code
        details: Optional additional context
    """

    error_code: str = "TIMECREDIT_ERROR"
    http_status: int = 500

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to response format."""
        result = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


# =============================================================================
# Validation & Input Errors
# =============================================================================

class TimeCreditValidationError(TimeCreditException):
    """Malformed input, rejected before any network call."""

    error_code = "VALIDATION_ERROR"
    http_status = 400

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        if field:
            details["field"] = field
        super().__init__(message, details=details)


ValidationError = TimeCreditValidationError


class InvalidTimeRangeError(TimeCreditValidationError):
    """Checkout precedes checkin."""

    error_code = "INVALID_TIME_RANGE"

    def __init__(self, checkin: int, checkout: int) -> None:
        super().__init__(
            f"Checkout {checkout} is earlier than checkin {checkin}",
            details={"checkin": checkin, "checkout": checkout},
        )


class InvalidCredentialError(TimeCreditValidationError):
    """Signing credential is not a usable private key."""

    error_code = "INVALID_CREDENTIAL"

    def __init__(self, message: str = "Invalid signing credential") -> None:
        super().__init__(message, field="credential")


class InvalidAmountError(TimeCreditValidationError):
    """Amount cannot be represented exactly in minor units."""

    error_code = "INVALID_AMOUNT"

    def __init__(self, message: str, amount: Optional[str] = None) -> None:
        details = {}
        if amount is not None:
            details["amount"] = amount
        super().__init__(message, field="amount", details=details)


# =============================================================================
# Authorization Errors
# =============================================================================

class TimeCreditAuthorizationError(TimeCreditException):
    """Caller identity does not permit the operation."""

    error_code = "AUTHORIZATION_ERROR"
    http_status = 403


class NotAuthorizedError(TimeCreditAuthorizationError):
    """Caller is not the ledger owner (or the subject is not allowed to act)."""

    error_code = "NOT_AUTHORIZED"

    def __init__(
        self,
        message: str = "Caller is not authorized for this operation",
        caller: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        if caller:
            details["caller"] = caller
        super().__init__(message, details=details)


class CredentialMismatchError(TimeCreditAuthorizationError):
    """Credential derives an address other than the employee's wallet."""

    error_code = "CREDENTIAL_MISMATCH"

    def __init__(self, user_code: str, derived_address: str) -> None:
        super().__init__(
            f"Credential does not match the wallet registered for employee '{user_code}'",
            details={"user_code": user_code, "derived_address": derived_address},
        )


class OwnerMismatchError(TimeCreditAuthorizationError):
    """Server signing identity is not the ledger's configured owner."""

    error_code = "OWNER_MISMATCH"

    def __init__(self, ledger_owner: str, server_identity: str) -> None:
        super().__init__(
            f"Ledger owner is {ledger_owner} but server is signing as {server_identity}",
            details={"ledger_owner": ledger_owner, "server_identity": server_identity},
        )


# =============================================================================
# Not Found Errors
# =============================================================================

class TimeCreditNotFoundError(TimeCreditException):
    """Requested resource not found."""

    error_code = "NOT_FOUND"
    http_status = 404

    def __init__(
        self,
        resource_type: str,
        resource_id: str,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        message = f"{resource_type} '{resource_id}' not found"
        details = details or {}
        details["resource_type"] = resource_type
        details["resource_id"] = resource_id
        super().__init__(message, details=details)


class EmployeeNotFoundError(TimeCreditNotFoundError):
    error_code = "EMPLOYEE_NOT_FOUND"

    def __init__(self, user_code: str) -> None:
        super().__init__("Employee", user_code)


class ProductNotFoundError(TimeCreditNotFoundError):
    error_code = "PRODUCT_NOT_FOUND"

    def __init__(self, product_code: str) -> None:
        super().__init__("Product", product_code)


# =============================================================================
# Balance Errors
# =============================================================================

class InsufficientFundsError(TimeCreditException):
    """Spendable wallet balance cannot cover amount plus fee."""

    error_code = "INSUFFICIENT_FUNDS"
    http_status = 400

    def __init__(
        self,
        message: str = "Insufficient funds to cover amount and fee",
        available: Optional[int] = None,
        required: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        if available is not None:
            details["available_minor"] = str(available)
        if required is not None:
            details["required_minor"] = str(required)
        super().__init__(message, details=details)


class InsufficientBookBalanceError(TimeCreditException):
    """Recording the withdrawal would exceed the credited total."""

    error_code = "INSUFFICIENT_BOOK_BALANCE"
    http_status = 409

    def __init__(self, user_code: str, book_balance: int, requested: int) -> None:
        super().__init__(
            f"Withdrawal of {requested} exceeds book balance {book_balance} for '{user_code}'",
            details={
                "user_code": user_code,
                "book_balance_minor": str(book_balance),
                "requested_minor": str(requested),
            },
        )


# =============================================================================
# Chain & Infrastructure Errors
# =============================================================================

class TimeCreditChainError(TimeCreditException):
    """Base class for value-network errors."""

    error_code = "CHAIN_ERROR"
    http_status = 502


class NetworkError(TimeCreditChainError):
    """Network unreachable, timed out, or rejected the request. Never auto-retried."""

    error_code = "NETWORK_ERROR"

    def __init__(
        self,
        message: str,
        method: Optional[str] = None,
        rpc_error: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        if method:
            details["method"] = method
        if rpc_error:
            details["rpc_error"] = rpc_error
        super().__init__(message, details=details)


class ContractRevertError(TimeCreditChainError):
    """A contract call reverted; `reason` carries the human-readable cause."""

    error_code = "CONTRACT_REVERT"
    http_status = 422

    def __init__(
        self,
        reason: str,
        tx_hash: Optional[str] = None,
        method: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.reason = reason
        details = details or {}
        details["reason"] = reason
        if tx_hash:
            details["tx_hash"] = tx_hash
        if method:
            details["method"] = method
        super().__init__(f"Contract call reverted: {reason}", details=details)


class TimeCreditConfigurationError(TimeCreditException):
    """Service configuration error."""

    error_code = "CONFIGURATION_ERROR"
    http_status = 500


# =============================================================================
# Error Mapping Utilities
# =============================================================================

_REVERT_MARKERS = ("execution reverted", "revert")

CHAIN_ERROR_PATTERNS: dict[str, tuple[Type[TimeCreditException], str]] = {
    "insufficient funds": (InsufficientFundsError, "Insufficient funds for transaction"),
    "nonce too low": (NetworkError, "Transaction nonce too low"),
    "nonce too high": (NetworkError, "Transaction nonce too high"),
    "replacement transaction underpriced": (NetworkError, "Replacement transaction underpriced"),
    "transaction underpriced": (NetworkError, "Transaction underpriced"),
    "intrinsic gas too low": (NetworkError, "Intrinsic gas too low"),
    "timeout": (NetworkError, "RPC request timed out"),
    "timed out": (NetworkError, "RPC request timed out"),
    "connection refused": (NetworkError, "RPC node connection refused"),
    "connect": (NetworkError, "RPC node unreachable"),
}


def extract_revert_reason(message: str) -> str:
    """Return the part of an error message starting at the revert marker."""
    lowered = message.lower()
    for marker in _REVERT_MARKERS:
        idx = lowered.find(marker)
        if idx >= 0:
            return message[idx:]
    return message


def exception_from_chain_error(
    error: BaseException,
    method: Optional[str] = None,
    tx_hash: Optional[str] = None,
) -> TimeCreditException:
    """Convert a chain/RPC/transport error to the appropriate TimeCredit exception.

    Already-typed TimeCredit exceptions pass through unchanged.
    """
    if isinstance(error, TimeCreditException):
        return error

    error_text = str(error) or type(error).__name__
    error_str = error_text.lower()

    if any(marker in error_str for marker in _REVERT_MARKERS):
        return ContractRevertError(
            extract_revert_reason(error_text),
            tx_hash=tx_hash,
            method=method,
        )

    for pattern, (exc_class, message) in CHAIN_ERROR_PATTERNS.items():
        if pattern in error_str:
            details: dict[str, Any] = {"original_error": error_text}
            if exc_class is InsufficientFundsError:
                return InsufficientFundsError(message, details=details)
            return NetworkError(message, method=method, rpc_error=error_text, details=details)

    return NetworkError(
        f"RPC call failed: {error_text}",
        method=method,
        rpc_error=error_text,
    )


__all__ = [
    "TimeCreditException",
    "TimeCreditValidationError",
    "ValidationError",
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
    "TimeCreditChainError",
    "NetworkError",
    "ContractRevertError",
    "TimeCreditConfigurationError",
    "CHAIN_ERROR_PATTERNS",
    "extract_revert_reason",
    "exception_from_chain_error",
]
