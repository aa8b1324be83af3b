"""
Core configuration module using Pydantic Settings.
Supports environment variables and .env files.
"""
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="allow"
    )

    # Application
    app_name: str = Field(default="Retail Catalog", alias="APP_NAME")
    app_version: str = Field(default="1.0.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./data/catalog.db",
        alias="DATABASE_URL"
    )
    db_echo: bool = Field(default=False, alias="DB_ECHO")
    db_pool_size: int = Field(default=20, alias="DB_POOL_SIZE")
    db_max_overflow: int = Field(default=40, alias="DB_MAX_OVERFLOW")

    # JWT Authentication
    jwt_secret_key: str = Field(
        default="your-secret-key-change-this-in-production",
        alias="JWT_SECRET_KEY"
    )
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    jwt_access_token_expire_minutes: int = Field(default=30, alias="JWT_ACCESS_TOKEN_EXPIRE_MINUTES")
    jwt_refresh_token_expire_days: int = Field(default=7, alias="JWT_REFRESH_TOKEN_EXPIRE_DAYS")

    # Security
    cors_origins: list[str] = Field(
        default=["http://localhost:5173", "http://localhost:8000"],
        alias="CORS_ORIGINS"
    )

    # File Upload
    max_upload_size: int = Field(default=10 * 1024 * 1024, alias="MAX_UPLOAD_SIZE")  # 10MB
    import_allowed_extensions: set[str] = Field(
        default={"csv", "xlsx", "xlsm"},
        alias="IMPORT_ALLOWED_EXTENSIONS"
    )

    # Bulk import
    import_batch_ttl_minutes: int = Field(default=30, ge=1, alias="IMPORT_BATCH_TTL_MINUTES")
    import_max_rows: int = Field(default=5000, ge=1, alias="IMPORT_MAX_ROWS")
    import_rate_limit: str = Field(default="30/minute", alias="IMPORT_RATE_LIMIT")

    # Catalog defaults
    default_category: str = Field(default="Groceries", alias="DEFAULT_CATEGORY")
    default_uom: str = Field(default="pcs", alias="DEFAULT_UOM")
    low_stock_threshold: int = Field(default=10, alias="LOW_STOCK_THRESHOLD")

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_dir: str = Field(default="./logs", alias="LOG_DIR")
    log_to_file: bool = Field(default=False, alias="LOG_TO_FILE")
    log_max_bytes: int = Field(default=10 * 1024 * 1024, alias="LOG_MAX_BYTES")  # 10MB
    log_backup_count: int = Field(default=5, alias="LOG_BACKUP_COUNT")


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Dependency injection for FastAPI."""
    return settings
