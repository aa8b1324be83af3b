"""
Pydantic schemas for Product model.

Business rules (price > 0, discount type, expiry format) are not enforced
here; the draft validator checks them so the API reports them the same way
an import does.
"""
from typing import Optional, Union
from datetime import datetime
from pydantic import BaseModel, Field, ConfigDict

Number = Union[float, str]


class ProductFields(BaseModel):
    """Fields shared by create and update payloads."""
    sku: Optional[str] = Field(None, max_length=100)
    barcode: Optional[str] = Field(None, max_length=64)
    name: Optional[str] = Field(None, max_length=500)
    description: Optional[str] = None
    brand: Optional[str] = Field(None, max_length=255)
    content: Optional[str] = Field(None, max_length=100)
    color: Optional[str] = Field(None, max_length=100)
    category: Optional[str] = Field(None, max_length=255)
    price: Optional[Number] = None
    mrp: Optional[Number] = None
    uom: Optional[str] = Field(None, max_length=50)
    stock: Optional[Number] = None
    expiry_date: Optional[str] = None
    default_discount: Optional[Number] = None
    discount_type: Optional[str] = None
    image: Optional[str] = None
    is_active: Optional[bool] = None


class ProductCreate(ProductFields):
    """Schema for creating (POST) or replacing (PUT) a product."""
    allow_identical: bool = False


class ProductUpdate(ProductFields):
    """Schema for a partial (PATCH) update; only supplied fields are checked."""
    allow_identical: bool = False


class ProductResponse(BaseModel):
    """Schema for product response."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    sku: Optional[str] = None
    barcode: Optional[str] = None
    name: str
    description: Optional[str] = None
    brand: Optional[str] = None
    content: Optional[str] = None
    color: Optional[str] = None
    category: str
    price: float
    mrp: Optional[float] = None
    uom: str
    stock: int
    expiry_date: Optional[str] = None
    default_discount: float
    discount_type: str
    image: Optional[str] = None
    is_active: bool
    stock_status: str
    created_at: datetime
    updated_at: datetime


class ProductListResponse(BaseModel):
    """Paginated product list response."""
    items: list[ProductResponse]
    total: int
    page: int
    page_size: int
    pages: int
