"""
SQLAlchemy models for the retail catalog.
Import all models here to ensure they're registered with SQLAlchemy.
"""
from app.models.user import User
from app.models.product import Product
from app.models.category import Category
from app.models.import_batch import ImportBatchRecord

__all__ = [
    "User",
    "Product",
    "Category",
    "ImportBatchRecord",
]
