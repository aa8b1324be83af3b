# app/conflicts.py
"""
Conflict detection for product drafts.

Two layers:
  * classify_conflict() compares a draft against the persisted catalog.
  * DedupTracker compares rows of one import batch against each other,
    since nothing in the batch is persisted until commit.
"""
from dataclasses import dataclass, asdict
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional

from app.match import CatalogIndex, normalize_key
from app.normalizer import ProductDraft

SEVERITY_BLOCK = "block"
SEVERITY_CONFIRM = "confirm"

CONFLICT_EXACT = "exact"
CONFLICT_IDENTICAL = "identical"


@dataclass(frozen=True)
class Conflict:
    """Why a draft collides with an existing product."""
    field: str
    conflict_type: str
    severity: str
    message: str
    product_id: Optional[int] = None
    product_name: Optional[str] = None

    @property
    def blocks(self) -> bool:
        return self.severity == SEVERITY_BLOCK

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def money_key(value) -> Optional[str]:
    """Amount rounded half-up to cents, as text; None when absent."""
    if value is None:
        return None
    try:
        return str(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))
    except InvalidOperation:
        return str(Decimal(str(value)))


def identity_key(name, brand, price, mrp) -> str:
    """name::brand::price::mrp, normalized; used to spot the same product twice."""
    return "::".join([
        normalize_key(name),
        normalize_key(brand),
        money_key(price) or "",
        money_key(mrp) or "",
    ])


def classify_conflict(
    draft: ProductDraft,
    catalog: CatalogIndex,
    exclude_id: Optional[int] = None,
) -> Optional[Conflict]:
    """
    Return the most severe conflict between ``draft`` and the catalog, or None.

    Priority: sku, barcode, exact identity (name+brand+price+mrp) all block;
    same name+brand with different money only asks for confirmation.
    ``exclude_id`` is the draft's own matched record.
    """
    other = catalog.find_by_sku(draft.sku)
    if other is not None and other.id != exclude_id:
        return Conflict(
            field="sku",
            conflict_type=CONFLICT_EXACT,
            severity=SEVERITY_BLOCK,
            message=f"SKU '{draft.sku}' already belongs to product #{other.id} ({other.name})",
            product_id=other.id,
            product_name=other.name,
        )

    other = catalog.find_by_barcode(draft.barcode)
    if other is not None and other.id != exclude_id:
        return Conflict(
            field="barcode",
            conflict_type=CONFLICT_EXACT,
            severity=SEVERITY_BLOCK,
            message=f"Barcode '{draft.barcode}' already belongs to product #{other.id} ({other.name})",
            product_id=other.id,
            product_name=other.name,
        )

    candidates = [
        p for p in catalog.find_by_name_brand(draft.name, draft.brand)
        if p.id != exclude_id
    ]
    if not candidates:
        return None

    price = money_key(draft.price)
    mrp = money_key(draft.mrp)
    for other in candidates:
        other_mrp = money_key(other.mrp)
        if money_key(other.price) == price and mrp is not None and other_mrp == mrp:
            return Conflict(
                field="identity",
                conflict_type=CONFLICT_EXACT,
                severity=SEVERITY_BLOCK,
                message=(
                    f"Product #{other.id} ({other.name}) already has the same name, "
                    f"brand, price and MRP"
                ),
                product_id=other.id,
                product_name=other.name,
            )

    other = candidates[0]
    return Conflict(
        field="identity",
        conflict_type=CONFLICT_IDENTICAL,
        severity=SEVERITY_CONFIRM,
        message=(
            f"Product #{other.id} ({other.name}) has the same name and brand "
            f"with a different price or MRP; confirm to keep both"
        ),
        product_id=other.id,
        product_name=other.name,
    )


class DedupTracker:
    """
    Incremental duplicate detection within one batch.

    Rows are registered in input order. ``check`` looks a row's keys up
    among rows registered before it and returns the first hit as
    ``(field, earlier_row, explicit)``. ``explicit`` is True when both rows
    carried the identifier themselves (id, a supplied sku, barcode); such a
    collision is ambiguous and rejects both rows. Derived keys (identity, a
    generated sku) only reject the later row.
    """

    def __init__(self):
        self.by_id: dict[int, int] = {}
        self.by_sku: dict[str, tuple[int, bool]] = {}
        self.by_barcode: dict[str, int] = {}
        self.by_identity: dict[str, int] = {}

    @staticmethod
    def keys_for(draft: ProductDraft, product_id: Optional[int] = None) -> dict[str, Any]:
        return {
            "id": product_id,
            "sku": normalize_key(draft.sku),
            "sku_explicit": "sku" in draft.supplied,
            "barcode": normalize_key(draft.barcode),
            "identity": identity_key(draft.name, draft.brand, draft.price, draft.mrp),
        }

    def check(self, draft: ProductDraft, product_id: Optional[int] = None) -> Optional[tuple[str, int, bool]]:
        keys = self.keys_for(draft, product_id)

        if keys["id"] is not None and keys["id"] in self.by_id:
            return "id", self.by_id[keys["id"]], True

        earlier_sku = self.by_sku.get(keys["sku"]) if keys["sku"] else None
        if earlier_sku and keys["sku_explicit"] and earlier_sku[1]:
            return "sku", earlier_sku[0], True

        if keys["barcode"] and keys["barcode"] in self.by_barcode:
            return "barcode", self.by_barcode[keys["barcode"]], True

        if keys["identity"] in self.by_identity:
            return "identity", self.by_identity[keys["identity"]], False

        if earlier_sku:
            return "sku", earlier_sku[0], False

        return None

    def register(self, row: int, draft: ProductDraft, product_id: Optional[int] = None) -> None:
        """Record a row's keys; earlier registrations win."""
        keys = self.keys_for(draft, product_id)
        if keys["id"] is not None:
            self.by_id.setdefault(keys["id"], row)
        if keys["sku"]:
            self.by_sku.setdefault(keys["sku"], (row, keys["sku_explicit"]))
        if keys["barcode"]:
            self.by_barcode.setdefault(keys["barcode"], row)
        self.by_identity.setdefault(keys["identity"], row)


def dedup_message(field: str, other_row: int) -> str:
    label = {"id": "product id", "identity": "name, brand, price and MRP"}.get(field, field)
    return f"duplicates row {other_row} by {label}"
