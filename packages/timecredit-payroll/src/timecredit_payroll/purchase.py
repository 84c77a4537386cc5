"""Purchase settlement: re-price, pay the catalog, book best effort."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence

from timecredit_chain.credentials import derive_account, same_address
from timecredit_chain.executor import TransactionExecutor
from timecredit_chain.owner import OwnerSigner
from timecredit_core.exceptions import (
    ContractRevertError,
    CredentialMismatchError,
    TimeCreditException,
    TimeCreditValidationError,
)
from timecredit_core.models import LineItem
from timecredit_core.units import to_display
from timecredit_ledger.abi import CatalogFunctions
from timecredit_ledger.base import Ledger, validate_user_code
from timecredit_ledger.catalog import ProductCatalog

from .ownership import ensure_ledger_owner, require_active

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PurchaseResult:
    transfer_id: str
    user_code: str
    items: list[LineItem] = field(default_factory=list)
    total_minor: int = 0
    total_display: str = "0"
    ledger_record_id: Optional[str] = None
    # set when the payment went through but the ledger record did not
    ledger_warning: Optional[str] = None


def validate_items(items: Sequence[tuple[str, int]]) -> list[tuple[str, int]]:
    """Check the requested (product_code, quantity) pairs."""
    if not items:
        raise TimeCreditValidationError("At least one item is required", field="items")
    checked = []
    for position, item in enumerate(items):
        try:
            code, quantity = item
        except (TypeError, ValueError) as exc:
            raise TimeCreditValidationError(
                f"Item {position} must be a (product_code, quantity) pair", field="items",
            ) from exc
        if not isinstance(code, str) or not code.strip():
            raise TimeCreditValidationError(f"Item {position} has no product code", field="items")
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise TimeCreditValidationError(
                f"Item {position} quantity must be a positive integer", field="items",
            )
        checked.append((code, quantity))
    return checked


class PurchaseSettlement:
    """Pays for catalog items with one all-or-nothing `buyProducts` call.

    Prices always come from the catalog at settlement time; the caller only
    names products and quantities.
    """

    def __init__(
        self,
        *,
        ledger: Ledger,
        catalog: ProductCatalog,
        executor: TransactionExecutor,
        owner_signer: OwnerSigner,
        catalog_address: str,
    ) -> None:
        self._ledger = ledger
        self._catalog = catalog
        self._executor = executor
        self._owner = owner_signer
        self._catalog_address = catalog_address

    async def purchase(
        self,
        user_code: str,
        credential: str,
        items: Sequence[tuple[str, int]],
    ) -> PurchaseResult:
        validate_user_code(user_code)
        requested = validate_items(items)
        account = derive_account(credential)

        employee = require_active(await self._ledger.get_employee(user_code))
        if not same_address(account.address, employee.wallet_address):
            logger.warning("Credential mismatch on purchase for %s", user_code)
            raise CredentialMismatchError(user_code, account.address)

        line_items = []
        for code, quantity in requested:
            product = await self._catalog.get_product(code)
            line_items.append(LineItem(code, quantity, product.price_minor))
        total = sum(item.line_total_minor for item in line_items)

        data = CatalogFunctions.BUY_PRODUCTS.encode_call(
            [item.product_code for item in line_items],
            [item.quantity for item in line_items],
        )
        # no fixed gas limit: the executor buffers the network estimate
        submitted = await self._executor.send(
            account, self._catalog_address, value=total, data=data, wait=False,
        )
        logger.info("Purchase %s by %s for %s", submitted.tx_hash, user_code, to_display(total))

        result = PurchaseResult(
            transfer_id=submitted.tx_hash,
            user_code=user_code,
            items=line_items,
            total_minor=total,
            total_display=to_display(total),
        )
        try:
            await self._executor.confirm(submitted)
        except ContractRevertError:
            raise
        except TimeCreditException as e:
            logger.error("Purchase %s by %s not confirmed: %s", submitted.tx_hash, user_code, e)
            result.ledger_warning = f"not confirmed: {e}"
            return result

        try:
            owner = await ensure_ledger_owner(self._ledger, self._owner)
            receipt = await self._ledger.record_purchase(owner, user_code, total)
            result.ledger_record_id = receipt.record_id
        except Exception as e:
            logger.warning("Purchase %s paid but not recorded in ledger: %s", submitted.tx_hash, e)
            result.ledger_warning = str(e)
        return result
