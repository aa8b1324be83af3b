"""
Pydantic schemas for bulk catalog import (preview / confirm).
"""
from typing import Any, Literal, Optional
from datetime import datetime
from pydantic import BaseModel, Field, ConfigDict

ImportMode = Literal["create_only", "update_only", "upsert"]
StockMode = Literal["replace", "delta"]


class ImportPreviewRequest(BaseModel):
    """Uploaded sheet plus how to apply it."""
    file_base64: str = Field(..., min_length=1)
    filename: str = Field(..., min_length=1, max_length=255)
    mode: ImportMode = "upsert"
    stock_mode: StockMode = "replace"
    auto_confirm: bool = False


class ImportSummary(BaseModel):
    creates: int = 0
    updates: int = 0
    skips: int = 0
    errors: int = 0
    needs_confirmation: int = 0


class ConflictInfo(BaseModel):
    field: str
    conflict_type: Literal["exact", "identical"]
    severity: Literal["block", "confirm"]
    message: str
    product_id: Optional[int] = None
    product_name: Optional[str] = None


class ImportRowPreview(BaseModel):
    row: int
    status: Literal["ready", "needs_confirmation", "error", "skip"]
    action: Optional[Literal["create", "update"]] = None
    matched_product_id: Optional[int] = None
    errors: list[str] = []
    conflict: Optional[ConflictInfo] = None
    requires_identical_confirmation: bool = False
    category_will_be_created: bool = False
    payload: Optional[dict[str, Any]] = None


class ImportRowError(BaseModel):
    row: int
    error: str


class ImportApplyResult(BaseModel):
    """Outcome of a confirm; counts are zero unless the commit went through."""
    created: int = 0
    updated: int = 0
    failed: int = 0
    errors: list[ImportRowError] = []


class ImportNotification(BaseModel):
    level: Literal["success", "warning", "error"]
    message: str


class ImportPreviewResponse(BaseModel):
    batch_id: Optional[str] = None
    checksum: Optional[str] = None
    expires_at: Optional[datetime] = None
    summary: ImportSummary
    preview: list[ImportRowPreview]
    apply_result: Optional[ImportApplyResult] = None
    notification: Optional[ImportNotification] = None


class ImportConfirmRequest(BaseModel):
    batch_id: str = Field(..., min_length=1)
    checksum: str = Field(..., min_length=1)
    allow_identical_rows: list[int] = []


class ImportBatchResponse(BaseModel):
    """Audit view of the durable batch record."""
    model_config = ConfigDict(from_attributes=True)

    batch_id: str
    checksum: str
    mode: str
    stock_mode: str
    filename: Optional[str] = None
    status: str
    summary: dict[str, Any]
    created_by: Optional[int] = None
    created_at: datetime
    expires_at: datetime
    applied_at: Optional[datetime] = None
    result: Optional[dict[str, Any]] = None
