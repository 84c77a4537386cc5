"""Earnings ledger and product catalog backends."""

from .abi import CatalogFunctions, LedgerFunctions
from .base import Ledger, LedgerLogView, LedgerReceipt, WalletBalance
from .catalog import ContractProductCatalog, InMemoryProductCatalog, ProductCatalog
from .contract import ContractLedger
from .guard import OwnershipGuard
from .memory import InMemoryLedger
from .simulated import CatalogContractHandler, LedgerContractHandler

__all__ = [
    "CatalogFunctions",
    "LedgerFunctions",
    "Ledger",
    "LedgerLogView",
    "LedgerReceipt",
    "WalletBalance",
    "ContractProductCatalog",
    "InMemoryProductCatalog",
    "ProductCatalog",
    "ContractLedger",
    "OwnershipGuard",
    "InMemoryLedger",
    "CatalogContractHandler",
    "LedgerContractHandler",
]
