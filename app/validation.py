"""Field-level business rules for product drafts."""
import math
import re
from typing import Optional

from app.normalizer import DISCOUNT_TYPES, ProductDraft

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

# Column sizes of app.models.product.Product
MAX_LENGTHS = {
    "name": 500,
    "sku": 100,
    "barcode": 64,
    "brand": 255,
    "category": 255,
    "content": 100,
    "color": 100,
    "uom": 50,
}
MONEY_FIELDS = ("price", "mrp", "default_discount")
MAX_MONEY = 10 ** 8  # Numeric(10, 2)
MAX_STOCK = 2 ** 31 - 1


def _finite(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def validate_draft(draft: ProductDraft, partial: bool = False) -> list[str]:
    """
    Check a draft and return violations in a fixed order (empty list = valid).

    With ``partial=True`` (PATCH-style edits) a rule only runs when its
    field was supplied by the caller.
    """
    def applies(field_name: str) -> bool:
        return not partial or field_name in draft.supplied

    errors: list[str] = []

    if applies("name") and not (draft.name or "").strip():
        errors.append("name is required")

    if applies("category") and not (draft.category or "").strip():
        errors.append("category is required")

    if applies("price") and not (_finite(draft.price) and draft.price > 0):
        errors.append("price must be a number greater than 0")

    if applies("stock") and not (_finite(draft.stock) and draft.stock >= 0):
        errors.append("stock must be a number greater than or equal to 0")

    if applies("mrp") and draft.mrp is not None and not (_finite(draft.mrp) and draft.mrp >= 0):
        errors.append("mrp must be greater than or equal to 0")

    if applies("default_discount") and not (
        _finite(draft.default_discount) and draft.default_discount >= 0
    ):
        errors.append("default_discount must be greater than or equal to 0")

    if applies("discount_type") and draft.discount_type not in DISCOUNT_TYPES:
        errors.append(f"discount_type must be one of: {', '.join(DISCOUNT_TYPES)}")

    if applies("expiry_date") and draft.expiry_date and not _valid_date(draft.expiry_date):
        errors.append("expiry_date must use YYYY-MM-DD")

    # what the products table can hold
    for field_name, limit in MAX_LENGTHS.items():
        value = getattr(draft, field_name)
        if applies(field_name) and value and len(str(value)) > limit:
            errors.append(f"{field_name} must be at most {limit} characters")

    for field_name in MONEY_FIELDS:
        value = getattr(draft, field_name)
        if applies(field_name) and _finite(value) and value >= MAX_MONEY:
            errors.append(f"{field_name} must be less than {MAX_MONEY:,.0f}")

    if applies("stock") and _finite(draft.stock) and abs(draft.stock) > MAX_STOCK:
        errors.append(f"stock must be at most {MAX_STOCK:,}")

    return errors


def _valid_date(value: Optional[str]) -> bool:
    return bool(value and _ISO_DATE.match(value))
