"""
Pydantic schemas for request/response validation.
"""
from app.schemas.user import (
    UserBase, UserCreate, UserResponse, Token, TokenRefresh, LoginRequest, LoginResponse
)
from app.schemas.product import (
    ProductFields, ProductCreate, ProductUpdate, ProductResponse, ProductListResponse
)
from app.schemas.category import CategoryResponse
from app.schemas.imports import (
    ImportPreviewRequest, ImportPreviewResponse, ImportSummary, ImportRowPreview,
    ConflictInfo, ImportConfirmRequest, ImportApplyResult, ImportRowError,
    ImportNotification, ImportBatchResponse
)

__all__ = [
    # User schemas
    "UserBase", "UserCreate", "UserResponse",
    "Token", "TokenRefresh", "LoginRequest", "LoginResponse",

    # Product schemas
    "ProductFields", "ProductCreate", "ProductUpdate", "ProductResponse", "ProductListResponse",

    # Category schemas
    "CategoryResponse",

    # Import schemas
    "ImportPreviewRequest", "ImportPreviewResponse", "ImportSummary", "ImportRowPreview",
    "ConflictInfo", "ImportConfirmRequest", "ImportApplyResult", "ImportRowError",
    "ImportNotification", "ImportBatchResponse",
]
