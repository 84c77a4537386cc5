"""In-process contract handlers for the simulated value network.

They decode ABI calldata, run the in-memory ledger/catalog rules and turn
rule violations into the same revert reasons the deployed contracts use.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from timecredit_chain.abi import ContractFunction, match_function
from timecredit_core.exceptions import (
    ContractRevertError,
    EmployeeNotFoundError,
    InsufficientBookBalanceError,
    NotAuthorizedError,
    ProductNotFoundError,
    TimeCreditException,
    TimeCreditValidationError,
)
from timecredit_core.models import Product

from .abi import (
    REASON_EMPLOYEE_EXISTS,
    REASON_EMPLOYEE_NOT_FOUND,
    REASON_INCORRECT_PAYMENT,
    REASON_INDEX_OUT_OF_RANGE,
    REASON_INSUFFICIENT_BOOK_BALANCE,
    REASON_INVALID_INPUT,
    REASON_ONLY_OWNER,
    REASON_PRODUCT_EXISTS,
    REASON_PRODUCT_NOT_FOUND,
    CatalogFunctions,
    LedgerFunctions,
)
from .catalog import InMemoryProductCatalog
from .memory import InMemoryLedger

logger = logging.getLogger(__name__)

LEDGER_CALL_GAS = 80_000
CATALOG_CALL_GAS = 90_000
PURCHASE_BASE_GAS = 50_000
PURCHASE_GAS_PER_ITEM = 15_000


def _revert_reason(exc: TimeCreditException) -> str:
    if isinstance(exc, NotAuthorizedError):
        return REASON_ONLY_OWNER
    if isinstance(exc, EmployeeNotFoundError):
        return REASON_EMPLOYEE_NOT_FOUND
    if isinstance(exc, ProductNotFoundError):
        return REASON_PRODUCT_NOT_FOUND
    if isinstance(exc, InsufficientBookBalanceError):
        return REASON_INSUFFICIENT_BOOK_BALANCE
    if isinstance(exc, TimeCreditValidationError):
        if "already registered" in exc.message:
            return REASON_EMPLOYEE_EXISTS
        if "already exists" in exc.message:
            return REASON_PRODUCT_EXISTS
    return REASON_INVALID_INPUT


@dataclass(frozen=True)
class _Mutation:
    check: Callable[..., None]
    apply: Callable[..., Awaitable[object]]


class _HandlerBase(ABC):
    functions: tuple[ContractFunction, ...] = ()

    def _decode(self, data: bytes) -> tuple[ContractFunction, tuple]:
        fn = match_function(data, self.functions)
        if fn is None:
            raise ContractRevertError("function selector was not recognized")
        try:
            return fn, fn.decode_arguments(data)
        except Exception as exc:
            raise ContractRevertError(REASON_INVALID_INPUT) from exc

    @abstractmethod
    def _mutations(self) -> dict[ContractFunction, _Mutation]:
        """Owner transactions keyed by function, with their check and apply steps."""

    async def estimate(self, sender: str, value: int, data: bytes) -> int:
        fn, args = self._decode(data)
        self._dry_run(fn, sender, value, args)
        return self._gas_for(fn, args)

    async def execute(self, sender: str, value: int, data: bytes) -> None:
        fn, args = self._decode(data)
        self._dry_run(fn, sender, value, args)
        mutation = self._mutations()[fn]
        try:
            await mutation.apply(sender, *args)
        except TimeCreditException as exc:
            raise ContractRevertError(_revert_reason(exc)) from exc

    def _dry_run(self, fn: ContractFunction, sender: str, value: int, args: tuple) -> None:
        mutation = self._mutations().get(fn)
        if mutation is None:
            raise ContractRevertError(f"{fn.name} is not a transaction")
        if value:
            raise ContractRevertError(f"{fn.name} is not payable")
        try:
            mutation.check(sender, *args)
        except TimeCreditException as exc:
            raise ContractRevertError(_revert_reason(exc)) from exc

    @abstractmethod
    def _gas_for(self, fn: ContractFunction, args: tuple) -> int:
        """Gas charged for one call."""


class LedgerContractHandler(_HandlerBase):
    """Serves the ledger contract ABI from an InMemoryLedger."""

    functions = LedgerFunctions.ALL

    def __init__(self, ledger: InMemoryLedger) -> None:
        self.ledger = ledger

    def _mutations(self) -> dict[ContractFunction, _Mutation]:
        ledger = self.ledger
        return {
            LedgerFunctions.REGISTER_EMPLOYEE: _Mutation(ledger.check_register_employee, ledger.register_employee),
            LedgerFunctions.UPDATE_EMPLOYEE_STATUS: _Mutation(
                ledger.check_update_employee_status, ledger.update_employee_status,
            ),
            LedgerFunctions.CREDIT: _Mutation(ledger.check_credit, ledger.credit),
            LedgerFunctions.RECORD_WITHDRAW: _Mutation(ledger.check_record_withdraw, ledger.record_withdraw),
            LedgerFunctions.RECORD_PURCHASE: _Mutation(ledger.check_record_purchase, ledger.record_purchase),
        }

    def _gas_for(self, fn: ContractFunction, args: tuple) -> int:
        return LEDGER_CALL_GAS

    async def call(self, data: bytes, sender: Optional[str]) -> bytes:
        fn, args = self._decode(data)
        ledger = self.ledger

        if fn is LedgerFunctions.OWNER:
            return fn.encode_output(await ledger.owner())
        if fn is LedgerFunctions.GET_EMPLOYEE:
            try:
                employee = await ledger.get_employee(*args)
            except EmployeeNotFoundError as exc:
                raise ContractRevertError(REASON_EMPLOYEE_NOT_FOUND) from exc
            return fn.encode_output(
                employee.user_code,
                employee.wallet_address,
                employee.active,
                int(employee.created_at.timestamp()),
            )
        if fn is LedgerFunctions.GET_EMPLOYEE_CODES:
            return fn.encode_output([e.user_code for e in await ledger.list_employees()])
        if fn is LedgerFunctions.GET_BOOK_BALANCE:
            return fn.encode_output(await ledger.get_book_balance(*args))
        if fn is LedgerFunctions.GET_TOTALS:
            totals = await ledger.get_totals(*args)
            return fn.encode_output(totals.total_credited_minor, totals.total_withdrawn_minor)
        if fn is LedgerFunctions.GET_LOG_COUNT:
            return fn.encode_output(await ledger.get_log_count(*args))
        if fn is LedgerFunctions.GET_LOG_BY_INDEX:
            try:
                entry = await ledger.get_log_entry(*args)
            except TimeCreditValidationError as exc:
                raise ContractRevertError(REASON_INDEX_OUT_OF_RANGE) from exc
            return fn.encode_output(entry.timestamp, entry.action.code, entry.amount_minor)
        raise ContractRevertError(f"{fn.name} is not a view function")


class CatalogContractHandler(_HandlerBase):
    """Serves the catalog contract ABI from an InMemoryProductCatalog.

    `buyProducts` is payable: the network moves the attached value to the
    catalog address only if the call succeeds.
    """

    functions = CatalogFunctions.ALL

    def __init__(self, catalog: InMemoryProductCatalog) -> None:
        self.catalog = catalog
        self.purchases: list[tuple[str, tuple[str, ...], tuple[int, ...], int]] = []

    def _mutations(self) -> dict[ContractFunction, _Mutation]:
        catalog = self.catalog
        return {
            CatalogFunctions.ADD_PRODUCT: _Mutation(
                lambda sender, *a: catalog.check_add_product(sender, _product(*a)),
                lambda sender, *a: catalog.add_product(sender, _product(*a)),
            ),
            CatalogFunctions.UPDATE_PRODUCT: _Mutation(
                lambda sender, *a: catalog.check_update_product(sender, _product(*a)),
                lambda sender, *a: catalog.update_product(sender, _product(*a)),
            ),
            CatalogFunctions.DELETE_PRODUCT: _Mutation(catalog.check_delete_product, catalog.delete_product),
        }

    def _gas_for(self, fn: ContractFunction, args: tuple) -> int:
        if fn is CatalogFunctions.BUY_PRODUCTS:
            return PURCHASE_BASE_GAS + PURCHASE_GAS_PER_ITEM * len(args[0])
        return CATALOG_CALL_GAS

    def _purchase_total(self, codes: tuple, quantities: tuple) -> int:
        if not codes or len(codes) != len(quantities):
            raise ContractRevertError(REASON_INVALID_INPUT)
        total = 0
        for code, quantity in zip(codes, quantities):
            if quantity <= 0:
                raise ContractRevertError(REASON_INVALID_INPUT)
            try:
                product = self.catalog.require_active(code)
            except ProductNotFoundError as exc:
                raise ContractRevertError(REASON_PRODUCT_NOT_FOUND) from exc
            total += product.price_minor * quantity
        return total

    async def estimate(self, sender: str, value: int, data: bytes) -> int:
        fn, args = self._decode(data)
        if fn is CatalogFunctions.BUY_PRODUCTS:
            if self._purchase_total(*args) != value:
                raise ContractRevertError(REASON_INCORRECT_PAYMENT)
            return self._gas_for(fn, args)
        return await super().estimate(sender, value, data)

    async def execute(self, sender: str, value: int, data: bytes) -> None:
        fn, args = self._decode(data)
        if fn is CatalogFunctions.BUY_PRODUCTS:
            total = self._purchase_total(*args)
            if total != value:
                raise ContractRevertError(REASON_INCORRECT_PAYMENT)
            self.purchases.append((sender, tuple(args[0]), tuple(args[1]), total))
            logger.info("[SIMULATED] buyProducts by %s total=%d", sender, total)
            return
        await super().execute(sender, value, data)

    async def call(self, data: bytes, sender: Optional[str]) -> bytes:
        fn, args = self._decode(data)
        if fn is CatalogFunctions.OWNER:
            return fn.encode_output(await self.catalog.owner())
        if fn is CatalogFunctions.GET_PRODUCT:
            try:
                product = await self.catalog.get_product(*args, include_deleted=True)
            except ProductNotFoundError as exc:
                raise ContractRevertError(REASON_PRODUCT_NOT_FOUND) from exc
            return fn.encode_output(
                product.product_code, product.name, product.price_minor, product.image_ref, product.exists,
            )
        if fn is CatalogFunctions.GET_ALL_PRODUCTS:
            rows = [
                (p.product_code, p.name, p.price_minor, p.image_ref, p.exists)
                for p in await self.catalog.list_products()
            ]
            return fn.encode_output(rows)
        raise ContractRevertError(f"{fn.name} is not a view function")


def _product(code: str, name: str, price: int, image_ref: str) -> Product:
    return Product(product_code=code, name=name, price_minor=price, image_ref=image_ref)
