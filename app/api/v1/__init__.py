"""API v1 Router."""
from fastapi import APIRouter

from app.api.v1 import auth, imports, products, categories

api_router = APIRouter(prefix="/api/v1")

# Import routes go first so /products/import/* is not read as /products/{product_id}
api_router.include_router(auth.router)
api_router.include_router(imports.router)
api_router.include_router(products.router)
api_router.include_router(categories.router)

__all__ = ["api_router"]
