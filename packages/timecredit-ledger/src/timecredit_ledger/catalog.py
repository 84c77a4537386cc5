"""Product catalog: owner-managed products with soft delete."""
from __future__ import annotations

import asyncio
import logging
import secrets
from abc import ABC, abstractmethod
from typing import Optional

from timecredit_chain.abi import ContractFunction
from timecredit_chain.credentials import same_address
from timecredit_chain.network import ValueNetwork
from timecredit_chain.owner import OwnerSigner
from timecredit_core.exceptions import (
    ContractRevertError,
    NotAuthorizedError,
    OwnerMismatchError,
    ProductNotFoundError,
    TimeCreditException,
    TimeCreditValidationError,
    exception_from_chain_error,
)
from timecredit_core.models import Product
from timecredit_core.units import require_minor_amount

from .abi import (
    REASON_ONLY_OWNER,
    REASON_PRODUCT_EXISTS,
    REASON_PRODUCT_NOT_FOUND,
    CatalogFunctions,
)
from .base import LedgerReceipt
from .guard import OwnershipGuard

logger = logging.getLogger(__name__)


def validate_product(product: Product) -> Product:
    if not isinstance(product.product_code, str) or not product.product_code.strip():
        raise TimeCreditValidationError("product_code must be a non-empty string", field="product_code")
    if not isinstance(product.name, str) or not product.name.strip():
        raise TimeCreditValidationError("name must be a non-empty string", field="name")
    require_minor_amount(product.price_minor, field="price_minor")
    return product


class ProductCatalog(ABC):
    """Owner-gated product management plus public lookups.

    Deleted products disappear from listings but stay addressable through
    `get_product(code, include_deleted=True)` for historical records.
    """

    @abstractmethod
    async def owner(self) -> str:
        ...

    @abstractmethod
    async def add_product(self, caller: str, product: Product) -> LedgerReceipt:
        ...

    @abstractmethod
    async def update_product(self, caller: str, product: Product) -> LedgerReceipt:
        ...

    @abstractmethod
    async def delete_product(self, caller: str, product_code: str) -> LedgerReceipt:
        ...

    @abstractmethod
    async def get_product(self, product_code: str, include_deleted: bool = False) -> Product:
        """Raise ProductNotFoundError if unknown (or deleted, unless included)."""

    @abstractmethod
    async def list_products(self) -> list[Product]:
        """All products that have not been deleted."""


class InMemoryProductCatalog(ProductCatalog):
    """Catalog state held in-process for simulated mode and tests."""

    def __init__(self, owner_address: str) -> None:
        self._guard = OwnershipGuard(owner_address)
        self._products: dict[str, Product] = {}
        self._lock = asyncio.Lock()

    async def owner(self) -> str:
        return self._guard.owner

    def check_add_product(self, caller: str, product: Product) -> None:
        self._guard.check(caller)
        validate_product(product)
        existing = self._products.get(product.product_code)
        if existing is not None and existing.exists:
            raise TimeCreditValidationError(
                f"Product '{product.product_code}' already exists",
                field="product_code",
            )

    def check_update_product(self, caller: str, product: Product) -> None:
        self._guard.check(caller)
        validate_product(product)
        self.require_active(product.product_code)

    def check_delete_product(self, caller: str, product_code: str) -> None:
        self._guard.check(caller)
        self.require_active(product_code)

    def require_active(self, product_code: str) -> Product:
        product = self._products.get(product_code)
        if product is None or not product.exists:
            raise ProductNotFoundError(str(product_code))
        return product

    async def add_product(self, caller: str, product: Product) -> LedgerReceipt:
        async with self._lock:
            self.check_add_product(caller, product)
            # re-adding a deleted code brings it back with the new details
            self._products[product.product_code] = Product(
                product_code=product.product_code,
                name=product.name,
                price_minor=product.price_minor,
                image_ref=product.image_ref,
                exists=True,
            )
        logger.info("Added product %s at %d", product.product_code, product.price_minor)
        return _synthetic_receipt("add_product", product.product_code)

    async def update_product(self, caller: str, product: Product) -> LedgerReceipt:
        async with self._lock:
            self.check_update_product(caller, product)
            current = self._products[product.product_code]
            current.name = product.name
            current.price_minor = product.price_minor
            current.image_ref = product.image_ref
        return _synthetic_receipt("update_product", product.product_code)

    async def delete_product(self, caller: str, product_code: str) -> LedgerReceipt:
        async with self._lock:
            self.check_delete_product(caller, product_code)
            self._products[product_code].exists = False
        logger.info("Soft-deleted product %s", product_code)
        return _synthetic_receipt("delete_product", product_code)

    async def get_product(self, product_code: str, include_deleted: bool = False) -> Product:
        product = self._products.get(product_code)
        if product is None or (not product.exists and not include_deleted):
            raise ProductNotFoundError(str(product_code))
        return _copy(product)

    async def list_products(self) -> list[Product]:
        return [_copy(p) for p in self._products.values() if p.exists]


class ContractProductCatalog(ProductCatalog):
    """Catalog operations against the deployed catalog contract."""

    def __init__(
        self,
        network: ValueNetwork,
        owner_signer: OwnerSigner,
        contract_address: str,
        gas_limit: int = 300_000,
    ) -> None:
        self._network = network
        self._signer = owner_signer
        self._address = contract_address
        self._gas_limit = gas_limit
        self._guard: Optional[OwnershipGuard] = None

    @property
    def contract_address(self) -> str:
        return self._address

    async def owner(self) -> str:
        return (await self._get_guard()).owner

    async def _get_guard(self) -> OwnershipGuard:
        if self._guard is None:
            (owner,) = await self._read(CatalogFunctions.OWNER)
            self._guard = OwnershipGuard(owner)
        return self._guard

    async def add_product(self, caller: str, product: Product) -> LedgerReceipt:
        validate_product(product)
        return await self._transact(
            "add_product", caller, product.product_code, CatalogFunctions.ADD_PRODUCT,
            product.product_code, product.name, product.price_minor, product.image_ref,
        )

    async def update_product(self, caller: str, product: Product) -> LedgerReceipt:
        validate_product(product)
        return await self._transact(
            "update_product", caller, product.product_code, CatalogFunctions.UPDATE_PRODUCT,
            product.product_code, product.name, product.price_minor, product.image_ref,
        )

    async def delete_product(self, caller: str, product_code: str) -> LedgerReceipt:
        return await self._transact(
            "delete_product", caller, product_code, CatalogFunctions.DELETE_PRODUCT, product_code,
        )

    async def _transact(self, operation: str, caller: str, product_code: str, fn: ContractFunction, *args) -> LedgerReceipt:
        guard = await self._get_guard()
        guard.check(caller)
        if not same_address(self._signer.address, guard.owner):
            raise OwnerMismatchError(guard.owner, self._signer.address)
        try:
            submitted = await self._signer.transact(self._address, fn.encode_call(*args), gas_limit=self._gas_limit)
        except ContractRevertError as exc:
            if REASON_PRODUCT_NOT_FOUND in exc.reason:
                raise ProductNotFoundError(product_code) from exc
            if REASON_PRODUCT_EXISTS in exc.reason:
                raise TimeCreditValidationError(
                    f"Product '{product_code}' already exists", field="product_code",
                ) from exc
            if REASON_ONLY_OWNER in exc.reason:
                raise NotAuthorizedError("Catalog contract rejected the caller") from exc
            raise
        logger.info("Catalog %s %s in tx %s", operation, product_code, submitted.tx_hash)
        return LedgerReceipt(
            record_id=submitted.tx_hash,
            operation=operation,
            subject=product_code,
            simulated=submitted.simulated,
        )

    async def _read(self, fn: ContractFunction, *args) -> tuple:
        try:
            raw = await self._network.call(self._address, fn.encode_call(*args))
        except TimeCreditException:
            raise
        except Exception as e:
            raise exception_from_chain_error(e, method="eth_call") from e
        return fn.decode_output(raw)

    async def get_product(self, product_code: str, include_deleted: bool = False) -> Product:
        try:
            code, name, price, image_ref, exists = await self._read(CatalogFunctions.GET_PRODUCT, product_code)
        except ContractRevertError as exc:
            if REASON_PRODUCT_NOT_FOUND in exc.reason:
                raise ProductNotFoundError(product_code) from exc
            raise
        if not exists and not include_deleted:
            raise ProductNotFoundError(product_code)
        return Product(product_code=code, name=name, price_minor=price, image_ref=image_ref, exists=exists)

    async def list_products(self) -> list[Product]:
        (rows,) = await self._read(CatalogFunctions.GET_ALL_PRODUCTS)
        return [
            Product(product_code=code, name=name, price_minor=price, image_ref=image_ref, exists=exists)
            for code, name, price, image_ref, exists in rows
            if exists
        ]


def _copy(product: Product) -> Product:
    return Product(
        product_code=product.product_code,
        name=product.name,
        price_minor=product.price_minor,
        image_ref=product.image_ref,
        exists=product.exists,
    )


def _synthetic_receipt(operation: str, product_code: str) -> LedgerReceipt:
    return LedgerReceipt(
        record_id="0x" + secrets.token_hex(32),
        operation=operation,
        subject=product_code,
        simulated=True,
    )
