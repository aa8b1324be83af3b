# app/match.py
"""
Existing-record matching against an in-memory snapshot of the catalog.

The snapshot is loaded once per preview (and once inside the commit
transaction); lookups on it are plain dictionary hits.
"""
import re
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.product import Product
from app.normalizer import RawProductRow, parse_row_id


def normalize_key(value) -> str:
    """Trim, collapse inner whitespace and lower-case; None becomes ''."""
    if value is None:
        return ""
    return re.sub(r"\s+", " ", str(value)).strip().lower()


class CatalogIndex:
    """Lookup tables over a set of products, keyed by id, sku, barcode and name+brand."""

    def __init__(self, products: Iterable[Product] = ()):
        self.by_id: dict[int, Product] = {}
        self.by_sku: dict[str, Product] = {}
        self.by_barcode: dict[str, Product] = {}
        self.by_name_brand: dict[tuple[str, str], list[Product]] = {}
        for product in products:
            self.add(product)

    def __len__(self) -> int:
        return len(self.by_id)

    def add(self, product: Product) -> None:
        self.by_id[product.id] = product
        sku = normalize_key(product.sku)
        if sku:
            self.by_sku[sku] = product
        barcode = normalize_key(product.barcode)
        if barcode:
            self.by_barcode[barcode] = product
        key = (normalize_key(product.name), normalize_key(product.brand))
        self.by_name_brand.setdefault(key, []).append(product)

    def remove(self, product: Product) -> None:
        """Drop a product; call before changing its key fields, then add() again."""
        self.by_id.pop(product.id, None)
        sku = normalize_key(product.sku)
        if sku and self.by_sku.get(sku) is product:
            del self.by_sku[sku]
        barcode = normalize_key(product.barcode)
        if barcode and self.by_barcode.get(barcode) is product:
            del self.by_barcode[barcode]
        key = (normalize_key(product.name), normalize_key(product.brand))
        siblings = self.by_name_brand.get(key, [])
        if product in siblings:
            siblings.remove(product)
            if not siblings:
                del self.by_name_brand[key]

    def get(self, product_id: Optional[int]) -> Optional[Product]:
        if product_id is None:
            return None
        return self.by_id.get(product_id)

    def find_by_sku(self, sku) -> Optional[Product]:
        key = normalize_key(sku)
        return self.by_sku.get(key) if key else None

    def find_by_barcode(self, barcode) -> Optional[Product]:
        key = normalize_key(barcode)
        return self.by_barcode.get(key) if key else None

    def find_by_name_brand(self, name, brand) -> list[Product]:
        return list(self.by_name_brand.get((normalize_key(name), normalize_key(brand)), []))


async def load_catalog(db: AsyncSession) -> CatalogIndex:
    """Read every product (active or not) into a CatalogIndex."""
    result = await db.execute(
        select(Product).order_by(Product.id).execution_options(populate_existing=True)
    )
    return CatalogIndex(result.scalars().all())


def find_existing_product(raw: RawProductRow, catalog: CatalogIndex) -> Optional[Product]:
    """
    Resolve a raw row to at most one existing product.

    Lookup order, first hit wins: explicit positive integer id, then sku,
    then barcode (both case-insensitive). An exported sheet round-trips the
    id, so re-importing it always lands on the same record even if the SKU
    text was edited.
    """
    product = catalog.get(parse_row_id(raw.id))
    if product is not None:
        return product

    product = catalog.find_by_sku(raw.sku)
    if product is not None:
        return product

    return catalog.find_by_barcode(raw.barcode)
