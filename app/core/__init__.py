"""Core application modules."""
from app.core.config import settings, get_settings
from app.core.database import Base, get_db, init_db, close_db
from app.core.security import (
    get_password_hash,
    verify_password,
    create_access_token,
    create_refresh_token,
    get_current_user,
    get_current_user_id,
    get_catalog_writer
)

__all__ = [
    "settings",
    "get_settings",
    "Base",
    "get_db",
    "init_db",
    "close_db",
    "get_password_hash",
    "verify_password",
    "create_access_token",
    "create_refresh_token",
    "get_current_user",
    "get_current_user_id",
    "get_catalog_writer",
]
