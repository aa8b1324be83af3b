"""
Products API endpoints for catalog management.
"""
from typing import Literal, Optional
from fastapi import APIRouter, Depends, status, Query
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_

from app.categories import ensure_category
from app.conflicts import classify_conflict
from app.core.config import settings
from app.core.database import get_db
from app.core.security import get_current_user, get_catalog_writer
from app.error_handlers import (
    ConfirmationRequiredError,
    DraftValidationError,
    DuplicateResourceError,
    ResourceNotFoundError,
)
from app.logging_config import get_logger
from app.match import load_catalog
from app.models.user import User
from app.models.product import Product
from app.normalizer import ProductDraft, RawProductRow, normalize_row
from app.parsers import EXPORT_FORMATS, product_to_row, write_spreadsheet
from app.schemas.product import (
    ProductCreate,
    ProductUpdate,
    ProductResponse,
    ProductListResponse,
)
from app.validation import validate_draft

router = APIRouter(prefix="/products", tags=["Products"])
logger = get_logger("api.products")

ExportFormat = Literal["csv", "xlsx"]


async def _get_product_or_404(db: AsyncSession, product_id: int) -> Product:
    product = await db.get(Product, product_id)
    if product is None:
        raise ResourceNotFoundError("Product", product_id)
    return product


async def _save_draft(
    db: AsyncSession,
    draft: ProductDraft,
    *,
    partial: bool = False,
    allow_identical: bool = False,
    product: Optional[Product] = None,
) -> Product:
    """Validate, check conflicts, provision the category and persist one draft."""
    violations = validate_draft(draft, partial=partial)
    if violations:
        raise DraftValidationError(violations)

    catalog = await load_catalog(db)
    conflict = classify_conflict(draft, catalog, exclude_id=product.id if product else None)
    if conflict is not None:
        if conflict.blocks:
            value = getattr(draft, conflict.field, None) or draft.name
            raise DuplicateResourceError(
                "Product", conflict.field, str(value), details={"conflict": conflict.to_dict()}
            )
        if not allow_identical:
            raise ConfirmationRequiredError(conflict.to_dict())

    category = await ensure_category(db, draft.category)
    draft.category = category.name

    if product is None:
        product = Product(**draft.to_payload())
        db.add(product)
    else:
        for name, value in draft.to_payload().items():
            setattr(product, name, value)

    await db.commit()
    await db.refresh(product)
    return product


@router.get("/template")
async def download_template(
    format: ExportFormat = "csv",
    current_user: User = Depends(get_current_user)
):
    """Empty import sheet with the canonical header row."""
    content = write_spreadsheet([], format)
    return Response(
        content=content,
        media_type=EXPORT_FORMATS[format],
        headers={"Content-Disposition": f'attachment; filename="products_template.{format}"'}
    )


@router.get("/export")
async def export_products(
    format: ExportFormat = "csv",
    include_inactive: bool = False,
    current_user: User = Depends(get_catalog_writer),
    db: AsyncSession = Depends(get_db)
):
    """
    Export the catalog in the import layout.

    The sheet carries product ids, so editing and re-importing it updates
    the same records.
    """
    query = select(Product).order_by(Product.id)
    if not include_inactive:
        query = query.where(Product.is_active.is_(True))
    result = await db.execute(query)
    products = result.scalars().all()

    content = write_spreadsheet((product_to_row(p) for p in products), format)
    logger.info(f"Exported {len(products)} product(s) as {format}")
    return Response(
        content=content,
        media_type=EXPORT_FORMATS[format],
        headers={"Content-Disposition": f'attachment; filename="products.{format}"'}
    )


@router.post("", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
async def create_product(
    product_data: ProductCreate,
    current_user: User = Depends(get_catalog_writer),
    db: AsyncSession = Depends(get_db)
):
    """
    Create a new product.

    - **name**, **price**: required
    - **sku**: generated from name/brand/content/mrp when omitted
    - **category**: created on the fly when it does not exist yet
    - **allow_identical**: keep a product whose name and brand match an
      existing one with different pricing
    """
    raw = RawProductRow.from_mapping(product_data.model_dump(exclude_unset=True))
    product = await _save_draft(
        db, normalize_row(raw), allow_identical=product_data.allow_identical
    )
    logger.info(f"Created product {product.id} ({product.sku})")
    return product


@router.get("", response_model=ProductListResponse)
async def list_products(
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100),
    search: Optional[str] = None,
    category: Optional[str] = None,
    low_stock_only: bool = False,
    active_only: bool = True,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    List products with pagination and filtering.

    - **page**: Page number (starts at 1)
    - **page_size**: Items per page (max 100)
    - **search**: Search by name, SKU, brand or barcode
    - **category**: Filter by category (any casing)
    - **low_stock_only**: Show only low stock items
    - **active_only**: Show only active products
    """
    query = select(Product)

    if active_only:
        query = query.where(Product.is_active.is_(True))

    if search:
        search_pattern = f"%{search}%"
        query = query.where(
            or_(
                Product.name.ilike(search_pattern),
                Product.sku.ilike(search_pattern),
                Product.brand.ilike(search_pattern),
                Product.barcode.ilike(search_pattern)
            )
        )

    if category:
        query = query.where(func.lower(Product.category) == category.strip().lower())

    if low_stock_only:
        query = query.where(Product.stock <= settings.low_stock_threshold)

    # Get total count
    count_query = select(func.count()).select_from(query.subquery())
    total = (await db.execute(count_query)).scalar()

    # Get paginated results
    query = query.order_by(Product.name, Product.id)
    query = query.offset((page - 1) * page_size).limit(page_size)
    products = (await db.execute(query)).scalars().all()

    return ProductListResponse(
        items=products,
        total=total,
        page=page,
        page_size=page_size,
        pages=(total + page_size - 1) // page_size
    )


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(
    product_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Get a specific product by ID."""
    return await _get_product_or_404(db, product_id)


@router.put("/{product_id}", response_model=ProductResponse)
async def replace_product(
    product_id: int,
    product_data: ProductCreate,
    current_user: User = Depends(get_catalog_writer),
    db: AsyncSession = Depends(get_db)
):
    """
    Update a product, validating every field.

    Omitted fields keep their current values.
    """
    product = await _get_product_or_404(db, product_id)
    raw = RawProductRow.from_mapping(product_data.model_dump(exclude_unset=True))
    return await _save_draft(
        db,
        normalize_row(raw, current=product),
        allow_identical=product_data.allow_identical,
        product=product,
    )


@router.patch("/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: int,
    product_data: ProductUpdate,
    current_user: User = Depends(get_catalog_writer),
    db: AsyncSession = Depends(get_db)
):
    """
    Partially update a product.

    Only the supplied fields are validated.
    """
    product = await _get_product_or_404(db, product_id)
    raw = RawProductRow.from_mapping(product_data.model_dump(exclude_unset=True))
    return await _save_draft(
        db,
        normalize_row(raw, current=product),
        partial=True,
        allow_identical=product_data.allow_identical,
        product=product,
    )


@router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_product(
    product_id: int,
    current_user: User = Depends(get_catalog_writer),
    db: AsyncSession = Depends(get_db)
):
    """
    Delete a product (soft delete - sets is_active to False).
    """
    product = await _get_product_or_404(db, product_id)
    product.is_active = False
    await db.commit()
    logger.info(f"Deactivated product {product_id}")
    return None


@router.delete("/{product_id}/permanent", status_code=status.HTTP_204_NO_CONTENT)
async def delete_product_permanently(
    product_id: int,
    current_user: User = Depends(get_catalog_writer),
    db: AsyncSession = Depends(get_db)
):
    """Remove a product row for good."""
    product = await _get_product_or_404(db, product_id)
    await db.delete(product)
    await db.commit()
    logger.info(f"Deleted product {product_id}")
    return None
