"""Catalog management with display prices and image lookup."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Protocol, Union

from timecredit_core.models import Product
from timecredit_core.units import to_minor
from timecredit_ledger.base import LedgerReceipt
from timecredit_ledger.catalog import ProductCatalog

logger = logging.getLogger(__name__)

IMAGE_SUFFIXES = frozenset({".png", ".jpg", ".jpeg", ".gif", ".webp"})


class ImageSource(Protocol):
    def resolve(self, product_code: str) -> Optional[str]:
        """Image reference for a product, or None."""


class DirectoryImageSource:
    """Picks the first image file (by name) in `<root>/<product_code>/`."""

    def __init__(self, root: Union[str, Path]) -> None:
        self.root = Path(root)

    def resolve(self, product_code: str) -> Optional[str]:
        folder = self.root / product_code
        if not folder.is_dir():
            return None
        images = sorted(
            p for p in folder.iterdir() if p.is_file() and p.suffix.lower() in IMAGE_SUFFIXES
        )
        if not images:
            return None
        return images[0].relative_to(self.root).as_posix()


class CatalogService:
    """Owner-facing catalog operations taking display-unit prices."""

    def __init__(self, *, catalog: ProductCatalog, image_source: Optional[ImageSource] = None) -> None:
        self._catalog = catalog
        self._images = image_source

    def _image_ref(self, product_code: str, image_ref: Optional[str]) -> str:
        if image_ref:
            return image_ref
        if self._images is None:
            return ""
        return self._images.resolve(product_code) or ""

    async def add_product(
        self,
        caller: str,
        product_code: str,
        name: str,
        price_display: str,
        image_ref: Optional[str] = None,
    ) -> LedgerReceipt:
        product = Product(
            product_code=product_code,
            name=name,
            price_minor=to_minor(price_display),
            image_ref=self._image_ref(product_code, image_ref),
        )
        return await self._catalog.add_product(caller, product)

    async def update_product(
        self,
        caller: str,
        product_code: str,
        name: str,
        price_display: str,
        image_ref: Optional[str] = None,
    ) -> LedgerReceipt:
        product = Product(
            product_code=product_code,
            name=name,
            price_minor=to_minor(price_display),
            image_ref=self._image_ref(product_code, image_ref),
        )
        return await self._catalog.update_product(caller, product)

    async def delete_product(self, caller: str, product_code: str) -> LedgerReceipt:
        return await self._catalog.delete_product(caller, product_code)

    async def get_product(self, product_code: str, include_deleted: bool = False) -> Product:
        return await self._catalog.get_product(product_code, include_deleted=include_deleted)

    async def list_products(self) -> list[Product]:
        return await self._catalog.list_products()
