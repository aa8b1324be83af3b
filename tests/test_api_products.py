"""Tests for product API endpoints."""
import io

import pandas as pd
from sqlalchemy import select

from app.models import Category, Product

PRODUCTS = "/api/v1/products"


class TestProductAPI:
    """Tests for product-related API endpoints."""

    async def test_create_product(self, client, staff_headers):
        """Test creating a product with a generated SKU and default category."""
        response = await client.post(
            PRODUCTS,
            json={"name": "Tea", "brand": "X", "price": 100, "mrp": 120},
            headers=staff_headers,
        )

        assert response.status_code == 201
        data = response.json()
        assert data["sku"] == "TEAXXXXXXX0120"
        assert data["category"] == "Groceries"
        assert data["uom"] == "pcs"
        assert data["stock"] == 0
        assert data["stock_status"] == "out_of_stock"

    async def test_create_product_creates_category(self, client, staff_headers, db):
        """Test that an unknown category is created on the fly."""
        response = await client.post(
            PRODUCTS,
            json={"name": "Chips", "price": "25", "category": "snacks"},
            headers=staff_headers,
        )

        assert response.status_code == 201
        categories = (await db.execute(select(Category))).scalars().all()
        assert [c.name for c in categories] == ["snacks"]

    async def test_create_product_reuses_category_casing(self, client, staff_headers, sample_products):
        """Test that a category in another casing maps to the stored spelling."""
        response = await client.post(
            PRODUCTS,
            json={"name": "Curd", "price": 30, "category": "DAIRY"},
            headers=staff_headers,
        )

        assert response.status_code == 201
        assert response.json()["category"] == "Dairy"

    async def test_create_invalid_product(self, client, staff_headers):
        """Test that validation errors are listed in the response."""
        response = await client.post(
            PRODUCTS,
            json={"name": "", "price": 0, "discount_type": "bogus"},
            headers=staff_headers,
        )

        assert response.status_code == 400
        errors = response.json()["details"]["validation_errors"]
        assert "name is required" in errors
        assert "price must be a number greater than 0" in errors
        assert "discount_type must be one of: fixed, percentage" in errors

    async def test_duplicate_sku_rejected(self, client, staff_headers, sample_products):
        """Test that a SKU differing only in case is rejected."""
        response = await client.post(
            PRODUCTS,
            json={"sku": "tea001", "name": "Other", "price": 10},
            headers=staff_headers,
        )

        assert response.status_code == 409
        assert response.json()["details"]["conflict"]["field"] == "sku"

    async def test_near_identical_needs_allow_identical(self, client, staff_headers, sample_products):
        """Test that same name and brand with different pricing needs confirmation."""
        body = {"name": "green tea", "brand": "LEAFY", "price": 90, "mrp": 110}

        response = await client.post(PRODUCTS, json=body, headers=staff_headers)
        assert response.status_code == 409
        assert response.json()["details"]["conflict"]["product_id"] == sample_products[0].id

        body["allow_identical"] = True
        response = await client.post(PRODUCTS, json=body, headers=staff_headers)
        assert response.status_code == 201

    async def test_customer_cannot_create(self, client, customer_headers):
        """Test that customers cannot write to the catalog."""
        response = await client.post(
            PRODUCTS, json={"name": "Tea", "price": 10}, headers=customer_headers
        )
        assert response.status_code == 403

    async def test_products_require_authentication(self, client):
        """Test that product endpoints require authentication."""
        response = await client.get(PRODUCTS)
        assert response.status_code in (401, 403)

    async def test_get_product(self, client, customer_headers, sample_products):
        """Test fetching one product by id."""
        response = await client.get(f"{PRODUCTS}/{sample_products[1].id}", headers=customer_headers)

        assert response.status_code == 200
        assert response.json()["sku"] == "MILK01"

    async def test_get_missing_product(self, client, customer_headers):
        """Test that an unknown id is a 404."""
        response = await client.get(f"{PRODUCTS}/999", headers=customer_headers)

        assert response.status_code == 404
        assert response.json()["error"] == "Product with identifier '999' not found"


class TestProductListing:
    """Tests for product list filters."""

    async def test_list_hides_inactive(self, client, customer_headers, sample_products):
        """Test that inactive products are hidden by default."""
        response = await client.get(PRODUCTS, headers=customer_headers)

        data = response.json()
        assert data["total"] == 2
        assert [p["name"] for p in data["items"]] == ["Green Tea", "Milk"]

    async def test_list_includes_inactive(self, client, customer_headers, sample_products):
        """Test listing with active_only disabled."""
        response = await client.get(f"{PRODUCTS}?active_only=false", headers=customer_headers)
        assert response.json()["total"] == 3

    async def test_search_by_barcode(self, client, customer_headers, sample_products):
        """Test searching by barcode."""
        response = await client.get(f"{PRODUCTS}?search=567891", headers=customer_headers)

        items = response.json()["items"]
        assert [p["sku"] for p in items] == ["MILK01"]

    async def test_filter_by_category_any_case(self, client, customer_headers, sample_products):
        """Test that the category filter ignores case."""
        response = await client.get(f"{PRODUCTS}?category=dairy", headers=customer_headers)
        assert response.json()["total"] == 1

    async def test_low_stock_only(self, client, customer_headers, sample_products):
        """Test the low stock filter."""
        response = await client.get(
            f"{PRODUCTS}?low_stock_only=true&active_only=false", headers=customer_headers
        )

        assert {p["sku"] for p in response.json()["items"]} == {"TEA001", "SOAP01"}

    async def test_pagination(self, client, customer_headers, sample_products):
        """Test page metadata."""
        response = await client.get(
            f"{PRODUCTS}?page=2&page_size=2&active_only=false", headers=customer_headers
        )

        data = response.json()
        assert data["pages"] == 2
        assert len(data["items"]) == 1

    async def test_list_categories(self, client, customer_headers, sample_products):
        """Test the category listing."""
        response = await client.get("/api/v1/categories", headers=customer_headers)

        assert response.status_code == 200
        assert [c["name"] for c in response.json()] == ["Dairy", "Groceries"]


class TestProductUpdates:
    """Tests for PUT, PATCH and DELETE."""

    async def test_patch_only_validates_supplied_fields(self, client, staff_headers, db, sample_products):
        """Test a partial update of stock."""
        product = sample_products[0]
        response = await client.patch(
            f"{PRODUCTS}/{product.id}", json={"stock": 42}, headers=staff_headers
        )

        assert response.status_code == 200
        data = response.json()
        assert data["stock"] == 42
        assert data["name"] == "Green Tea"
        assert data["sku"] == "TEA001"

    async def test_patch_rejects_negative_stock(self, client, staff_headers, sample_products):
        """Test that a bad supplied field is still rejected."""
        response = await client.patch(
            f"{PRODUCTS}/{sample_products[0].id}", json={"stock": -1}, headers=staff_headers
        )

        assert response.status_code == 400
        assert response.json()["details"]["validation_errors"] == [
            "stock must be a number greater than or equal to 0"
        ]

    async def test_patch_to_taken_barcode(self, client, staff_headers, sample_products):
        """Test that moving onto another product's barcode conflicts."""
        response = await client.patch(
            f"{PRODUCTS}/{sample_products[1].id}",
            json={"barcode": sample_products[0].barcode},
            headers=staff_headers,
        )

        assert response.status_code == 409

    async def test_put_keeps_own_identifiers(self, client, staff_headers, sample_products):
        """Test that a product does not conflict with itself."""
        product = sample_products[0]
        response = await client.put(
            f"{PRODUCTS}/{product.id}",
            json={"name": "Green Tea", "brand": "Leafy", "price": 110, "mrp": 120},
            headers=staff_headers,
        )

        assert response.status_code == 200
        assert response.json()["price"] == 110
        assert response.json()["sku"] == "TEA001"

    async def test_soft_delete(self, client, staff_headers, db, sample_products):
        """Test that DELETE deactivates the product."""
        product = sample_products[0]
        response = await client.delete(f"{PRODUCTS}/{product.id}", headers=staff_headers)

        assert response.status_code == 204
        stored = await db.scalar(
            select(Product).where(Product.id == product.id).execution_options(populate_existing=True)
        )
        assert stored.is_active is False

    async def test_permanent_delete(self, client, admin_headers, db, sample_products):
        """Test that permanent delete removes the row."""
        product_id = sample_products[0].id
        response = await client.delete(f"{PRODUCTS}/{product_id}/permanent", headers=admin_headers)

        assert response.status_code == 204
        assert await db.get(Product, product_id) is None


class TestTemplateAndExport:
    """Tests for the spreadsheet template and catalog export."""

    async def test_csv_template(self, client, customer_headers):
        """Test that the CSV template holds only the header row."""
        response = await client.get(f"{PRODUCTS}/template", headers=customer_headers)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        lines = response.text.strip().splitlines()
        assert len(lines) == 1
        assert lines[0].startswith("id,sku,barcode,name")

    async def test_xlsx_template(self, client, customer_headers):
        """Test the XLSX template."""
        response = await client.get(f"{PRODUCTS}/template?format=xlsx", headers=customer_headers)

        df = pd.read_excel(io.BytesIO(response.content), engine="openpyxl")
        assert "price" in df.columns
        assert len(df) == 0

    async def test_export_requires_writer(self, client, customer_headers):
        """Test that customers cannot export the catalog."""
        response = await client.get(f"{PRODUCTS}/export", headers=customer_headers)
        assert response.status_code == 403

    async def test_export_active_products(self, client, staff_headers, sample_products):
        """Test that the export lists active products with ids."""
        response = await client.get(f"{PRODUCTS}/export", headers=staff_headers)

        df = pd.read_csv(io.BytesIO(response.content), dtype=str, keep_default_na=False)
        assert list(df["sku"]) == ["TEA001", "MILK01"]
        assert list(df["id"]) == [str(sample_products[0].id), str(sample_products[1].id)]
