"""
Product model for the store catalog.
"""
from typing import Optional
from sqlalchemy import String, Integer, Numeric, Boolean, Index, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


class Product(Base):
    """Catalog entry."""

    __tablename__ = "products"

    # Product identification
    sku: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    barcode: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    brand: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    content: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    color: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    category: Mapped[str] = mapped_column(String(255), nullable=False)

    # Pricing
    price: Mapped[float] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=False)
    mrp: Mapped[Optional[float]] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=True)
    default_discount: Mapped[float] = mapped_column(
        Numeric(10, 2, asdecimal=False), default=0, nullable=False
    )
    discount_type: Mapped[str] = mapped_column(String(20), default="fixed", nullable=False)  # 'fixed', 'percentage'

    # Stock information
    uom: Mapped[str] = mapped_column(String(50), default="pcs", nullable=False)
    stock: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    expiry_date: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)  # YYYY-MM-DD

    # Additional information
    image: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Status
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Indexes
    __table_args__ = (
        Index("uq_products_sku_lower", text("lower(sku)"), unique=True),
        Index("uq_products_barcode_lower", text("lower(barcode)"), unique=True),
        Index("idx_products_name", "name"),
        Index("idx_products_category", "category"),
    )

    def __repr__(self) -> str:
        return f"<Product(id={self.id}, sku={self.sku}, name={self.name}, stock={self.stock})>"

    @property
    def stock_status(self) -> str:
        """Get human-readable stock status."""
        from app.core.config import settings

        if self.stock == 0:
            return "out_of_stock"
        elif self.stock <= settings.low_stock_threshold:
            return "low_stock"
        else:
            return "in_stock"
