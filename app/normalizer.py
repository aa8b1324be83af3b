# app/normalizer.py
"""
Row normalization: one raw spreadsheet row (or a JSON create/update payload)
becomes a typed, defaulted ProductDraft.

Nothing in here raises for bad input. Unparseable numbers fall back to
defaults and missing required fields stay falsy so the validator can report
them.
"""
import math
import re
from dataclasses import dataclass, field, fields
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Any, Mapping, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict

from app.core.config import settings

DISCOUNT_TYPES = ("fixed", "percentage")

# Spreadsheet header synonyms -> raw row field
HEADER_ALIASES = {
    "product_id": "id",
    "qty": "stock",
    "quantity": "stock",
    "image_url": "image",
    "gtin": "barcode",
    "ean": "barcode",
    "discount": "default_discount",
    "active": "is_active",
    "expiry": "expiry_date",
    "unit": "uom",
}

_TRUE_WORDS = {"1", "true", "yes", "y", "active", "on"}
_FALSE_WORDS = {"0", "false", "no", "n", "inactive", "off"}
_DATE_PREFIX = re.compile(r"^(\d{4}-\d{2}-\d{2})[ T]00:00(:00)?$")


class RawProductRow(BaseModel):
    """
    Loose view of one input row. Every field is optional and untyped; only
    the normalizer reads it.
    """
    model_config = ConfigDict(extra="ignore")

    id: Any = None
    name: Any = None
    description: Any = None
    brand: Any = None
    content: Any = None
    color: Any = None
    price: Any = None
    mrp: Any = None
    uom: Any = None
    sku: Any = None
    barcode: Any = None
    image: Any = None
    stock: Any = None
    category: Any = None
    expiry_date: Any = None
    default_discount: Any = None
    discount_type: Any = None
    is_active: Any = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "RawProductRow":
        """Build from a header-keyed mapping, tolerating header case and synonyms."""
        cleaned: dict[str, Any] = {}
        for key, value in data.items():
            if key is None:
                continue
            name = re.sub(r"\s+", "_", str(key).strip().lower())
            name = HEADER_ALIASES.get(name, name)
            # first column wins when a sheet repeats a header
            cleaned.setdefault(name, value)
        return cls(**cleaned)

    def supplied_fields(self) -> frozenset[str]:
        """Fields that carry a non-blank value."""
        return frozenset(
            name for name in type(self).model_fields
            if not _is_blank(getattr(self, name))
        )


@dataclass
class ProductDraft:
    """Normalized, not-yet-persisted product built from one input row."""
    name: str
    category: str
    price: float
    stock: int
    sku: str = ""
    barcode: Optional[str] = None
    description: Optional[str] = None
    brand: Optional[str] = None
    content: Optional[str] = None
    color: Optional[str] = None
    mrp: Optional[float] = None
    uom: str = "pcs"
    image: Optional[str] = None
    expiry_date: Optional[str] = None
    default_discount: float = 0.0
    discount_type: str = "fixed"
    is_active: bool = True
    # which raw fields carried a value; used for partial validation
    supplied: frozenset = field(default_factory=frozenset, compare=False, repr=False)

    def to_payload(self) -> dict[str, Any]:
        """Column values, in a stable order, for persistence and fingerprinting."""
        return {f.name: getattr(self, f.name) for f in fields(self) if f.name != "supplied"}


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return isinstance(value, str) and not value.strip()


def _text(value: Any) -> Optional[str]:
    if _is_blank(value):
        return None
    if isinstance(value, float) and value.is_integer():
        # spreadsheet cells hand back 8901234567890.0 for barcodes
        value = int(value)
    return str(value).strip()


def _number(value: Any) -> Optional[float]:
    """Parse a finite number, or None."""
    if _is_blank(value) or isinstance(value, bool):
        return None
    try:
        number = float(str(value).strip().replace(",", ""))
    except ValueError:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _money(value: Optional[float]) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))
    except InvalidOperation:
        # too many digits to hold at cent precision; the validator rejects it
        return value


def _flag(value: Any) -> Optional[bool]:
    if _is_blank(value):
        return None
    if isinstance(value, bool):
        return value
    word = str(value).strip().lower()
    if word in _TRUE_WORDS:
        return True
    if word in _FALSE_WORDS:
        return False
    number = _number(word)
    if number is not None:
        return number != 0
    return None


def _date_text(value: Any) -> Optional[str]:
    if _is_blank(value):
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    text = str(value).strip()
    match = _DATE_PREFIX.match(text)
    return match.group(1) if match else text


def parse_row_id(value: Any) -> Optional[int]:
    """Positive integer id from a cell, or None."""
    number = _number(value)
    if number is None or not number.is_integer() or number <= 0:
        return None
    return int(number)


def parse_quantity(value: Any) -> Optional[int]:
    """Integer stock quantity from a cell (sign preserved), or None."""
    number = _number(value)
    if number is None:
        return None
    try:
        return int(Decimal(str(number)).to_integral_value(rounding=ROUND_HALF_UP))
    except InvalidOperation:
        return None


def safe_image_url(value: Any) -> Optional[str]:
    """Keep absolute http(s) URLs only; anything else is dropped."""
    text = _text(value)
    if not text:
        return None
    try:
        parsed = urlparse(text)
    except ValueError:
        return None
    if parsed.scheme.lower() not in ("http", "https") or not parsed.netloc:
        return None
    return text


def _sku_part(value: Any, width: int) -> str:
    cleaned = re.sub(r"[^A-Za-z0-9]", "", str(value or "")).upper()
    return cleaned[:width].ljust(width, "X")


def generate_sku(name: Any, brand: Any, content: Any, mrp: Any) -> str:
    """
    Deterministic SKU: NAME(4) + BRAND(4) + CONTENT(2) + last four digits of
    the rounded MRP, zero padded.

    >>> generate_sku("Tea", "X", None, 120)
    'TEAXXXXXXX0120'
    """
    number = _number(mrp) or 0.0
    rounded = Decimal(str(number)).to_integral_value(rounding=ROUND_HALF_UP)
    digits = re.sub(r"\D", "", str(int(rounded)))[-4:].rjust(4, "0")
    return f"{_sku_part(name, 4)}{_sku_part(brand, 4)}{_sku_part(content, 2)}{digits}"


def normalize_row(
    raw: RawProductRow,
    current: Any = None,
    stock_override: Optional[int] = None,
) -> ProductDraft:
    """
    Build a ProductDraft from a raw row.

    Each field falls back to the current record's value (for updates), then
    to a hard default. ``stock_override`` replaces the parsed stock; the
    stager uses it for delta imports.
    """
    def fallback(name: str) -> Any:
        return getattr(current, name, None) if current is not None else None

    def text_field(name: str) -> Optional[str]:
        value = _text(getattr(raw, name))
        return value if value is not None else _text(fallback(name))

    name = text_field("name") or ""
    brand = text_field("brand")
    content = text_field("content")

    price = _number(raw.price)
    if price is None:
        price = _number(fallback("price"))
    price = _money(price if price is not None else 0.0)

    mrp = _number(raw.mrp)
    if mrp is None:
        mrp = _number(fallback("mrp"))
    mrp = _money(mrp if mrp is not None else price)

    if stock_override is not None:
        stock = stock_override
    else:
        stock = parse_quantity(raw.stock)
        if stock is None:
            stock = parse_quantity(fallback("stock")) or 0

    discount = _number(raw.default_discount)
    if discount is None:
        discount = _number(fallback("default_discount"))
    discount = _money(discount if discount is not None else 0.0)

    discount_type = (text_field("discount_type") or "fixed").lower()

    is_active = _flag(raw.is_active)
    if is_active is None:
        is_active = _flag(fallback("is_active"))
    if is_active is None:
        is_active = True

    image = safe_image_url(raw.image)
    if image is None and _is_blank(raw.image):
        image = safe_image_url(fallback("image"))

    expiry_date = _date_text(raw.expiry_date) or _date_text(fallback("expiry_date"))

    sku = text_field("sku") or generate_sku(name, brand, content, mrp)

    return ProductDraft(
        name=name,
        category=text_field("category") or settings.default_category,
        price=price,
        stock=stock,
        sku=sku,
        barcode=text_field("barcode"),
        description=text_field("description"),
        brand=brand,
        content=content,
        color=text_field("color"),
        mrp=mrp,
        uom=text_field("uom") or settings.default_uom,
        image=image,
        expiry_date=expiry_date,
        default_discount=discount,
        discount_type=discount_type,
        is_active=is_active,
        supplied=raw.supplied_fields(),
    )
