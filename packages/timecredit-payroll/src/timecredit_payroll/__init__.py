"""Payroll services: accrual, withdrawals, purchases, onboarding."""

from .attendance import AccessLogStore, AttendanceTracker, CardDirectory, InMemoryCardDirectory
from .catalog_service import CatalogService, DirectoryImageSource, ImageSource
from .checkout import AccrualOutcome, CheckoutAccrualService
from .container import ServiceContainer, build_container
from .purchase import PurchaseResult, PurchaseSettlement
from .registration import EmployeeRegistrar, Registration
from .withdrawal import TransactionOrchestrator, WithdrawalResult

__all__ = [
    "AccessLogStore",
    "AttendanceTracker",
    "CardDirectory",
    "InMemoryCardDirectory",
    "CatalogService",
    "DirectoryImageSource",
    "ImageSource",
    "AccrualOutcome",
    "CheckoutAccrualService",
    "ServiceContainer",
    "build_container",
    "PurchaseResult",
    "PurchaseSettlement",
    "EmployeeRegistrar",
    "Registration",
    "TransactionOrchestrator",
    "WithdrawalResult",
]
