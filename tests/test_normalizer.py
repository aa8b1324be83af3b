"""Tests for row normalization."""
import math
from types import SimpleNamespace

import pytest

from app.normalizer import (
    RawProductRow,
    generate_sku,
    normalize_row,
    parse_quantity,
    parse_row_id,
    safe_image_url,
)


def raw(**fields):
    return RawProductRow.from_mapping(fields)


class TestRawProductRow:
    """Tests for building raw rows from sheet mappings."""

    def test_headers_are_case_and_space_insensitive(self):
        row = RawProductRow.from_mapping({" Name ": "Tea", "Expiry Date": "2026-01-01"})
        assert row.name == "Tea"
        assert row.expiry_date == "2026-01-01"

    def test_header_synonyms(self):
        row = RawProductRow.from_mapping({"qty": "4", "image_url": "x", "product_id": "7", "ean": "123"})
        assert row.stock == "4"
        assert row.image == "x"
        assert row.id == "7"
        assert row.barcode == "123"

    def test_unknown_columns_ignored(self):
        row = RawProductRow.from_mapping({"name": "Tea", "supplier": "ACME"})
        assert row.supplied_fields() == frozenset({"name"})

    def test_first_repeated_header_wins(self):
        row = RawProductRow.from_mapping({"quantity": "3", "qty": "9"})
        assert row.stock == "3"

    def test_blank_values_not_supplied(self):
        row = raw(name="  ", price=None, brand=float("nan"))
        assert row.supplied_fields() == frozenset()


class TestGenerateSku:
    """Tests for deterministic SKU generation."""

    def test_example(self):
        assert generate_sku("Tea", "X", None, 120) == "TEAXXXXXXX0120"

    def test_fragments_are_alphanumeric_uppercase(self):
        assert generate_sku("Gr-een tea", "Le@fy Co", "1 kg", 99.5) == "GREELEFY1K0100"

    def test_uses_last_four_digits(self):
        assert generate_sku("Rice", "Brand", "5kg", 123456) == "RICEBRAN5K3456"

    def test_missing_mrp_zero_padded(self):
        assert generate_sku("Salt", None, None, None) == "SALTXXXXXX0000"

    def test_reproducible(self):
        assert generate_sku("Tea", "X", "1", 12.5) == generate_sku("Tea", "X", "1", 12.5)


class TestParsers:
    """Tests for cell parsing helpers."""

    @pytest.mark.parametrize("value,expected", [("12", 12), ("12.0", 12), (12.0, 12), ("0", None), ("-1", None), ("abc", None), ("1.5", None)])
    def test_parse_row_id(self, value, expected):
        assert parse_row_id(value) == expected

    def test_parse_quantity_keeps_sign(self):
        assert parse_quantity("-3") == -3
        assert parse_quantity("1,200") == 1200
        assert parse_quantity("x") is None

    @pytest.mark.parametrize("value", [
        "javascript:alert(1)",
        "/etc/passwd",
        "file:///tmp/a.png",
        "C:\\images\\a.png",
        "//cdn.example.com/a.png",
    ])
    def test_unsafe_image_dropped(self, value):
        assert safe_image_url(value) is None

    def test_http_image_kept(self):
        assert safe_image_url(" https://cdn.example.com/a.png ") == "https://cdn.example.com/a.png"


class TestNormalizeRow:
    """Tests for draft construction."""

    def test_defaults_for_new_product(self):
        draft = normalize_row(raw(name="Tea", price="100"))
        assert draft.category == "Groceries"
        assert draft.uom == "pcs"
        assert draft.discount_type == "fixed"
        assert draft.is_active is True
        assert draft.stock == 0
        assert draft.mrp == 100.0
        assert draft.sku == generate_sku("Tea", None, None, 100.0)

    def test_invalid_numbers_fall_back(self):
        draft = normalize_row(raw(name="Tea", price="abc", stock="NaN", default_discount="inf"))
        assert draft.price == 0.0
        assert draft.stock == 0
        assert draft.default_discount == 0.0
        assert not math.isnan(draft.price)

    def test_money_rounded_half_up(self):
        draft = normalize_row(raw(name="Tea", price="10.005", mrp="12.345"))
        assert draft.price == 10.01
        assert draft.mrp == 12.35

    def test_huge_money_does_not_raise(self):
        """Amounts too long for cent rounding pass through for the validator."""
        draft = normalize_row(raw(name="Tea", price="1e27", mrp="1e30", default_discount="1e40"))
        assert draft.price == 1e27
        assert draft.mrp == 1e30
        assert draft.default_discount == 1e40

    def test_huge_quantity_does_not_raise(self):
        """A huge stock cell still parses to an integer."""
        assert parse_quantity("1e30") == 10 ** 30

    def test_falls_back_to_current_record(self):
        current = SimpleNamespace(
            name="Green Tea", brand="Leafy", price=100.0, mrp=120.0, stock=5,
            category="Beverages", uom="box", sku="TEA001", barcode="111",
            image="https://x.test/a.png", is_active=False, discount_type="percentage",
            default_discount=5.0, description=None, content=None, color=None, expiry_date=None,
        )
        draft = normalize_row(raw(price="110"), current=current)
        assert draft.name == "Green Tea"
        assert draft.price == 110.0
        assert draft.mrp == 120.0
        assert draft.category == "Beverages"
        assert draft.sku == "TEA001"
        assert draft.is_active is False
        assert draft.discount_type == "percentage"
        assert draft.image == "https://x.test/a.png"

    def test_stock_override(self):
        draft = normalize_row(raw(name="Tea", price="1", stock="3"), stock_override=13)
        assert draft.stock == 13

    def test_flags_and_dates(self):
        draft = normalize_row(raw(name="Tea", price="1", is_active="no", expiry_date="2026-03-01 00:00:00"))
        assert draft.is_active is False
        assert draft.expiry_date == "2026-03-01"

    def test_barcode_from_float_cell(self):
        draft = normalize_row(raw(name="Tea", price="1", barcode=8901234567890.0))
        assert draft.barcode == "8901234567890"

    def test_supplied_fields_tracked(self):
        draft = normalize_row(raw(name="Tea", sku="T1"))
        assert draft.supplied == frozenset({"name", "sku"})

    def test_payload_excludes_supplied(self):
        payload = normalize_row(raw(name="Tea", price="2")).to_payload()
        assert "supplied" not in payload
        assert payload["name"] == "Tea"
