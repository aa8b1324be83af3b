"""
Bulk catalog import endpoints: preview a sheet, then confirm the staged batch.
"""
from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.core.config import settings
from app.core.database import get_db
from app.core.security import get_catalog_writer
from app.error_handlers import (
    BatchForbiddenError,
    BatchNotFoundError,
    ChecksumMismatchError,
    ImportCommitError,
    ResourceNotFoundError,
)
from app.importer import (
    ERR_CHECKSUM,
    ERR_FORBIDDEN,
    ERR_NOT_FOUND,
    CommitErr,
    commit_import,
    preview_import,
)
from app.logging_config import get_logger
from app.middleware import limiter
from app.models.import_batch import ImportBatchRecord
from app.models.user import User
from app.parsers import decode_upload, read_spreadsheet
from app.schemas.imports import (
    ImportApplyResult,
    ImportBatchResponse,
    ImportConfirmRequest,
    ImportPreviewRequest,
    ImportPreviewResponse,
)
from app.staging import BatchStore, get_batch_store

router = APIRouter(prefix="/products/import", tags=["Catalog Import"])
logger = get_logger("api.imports")


@router.post("/preview", response_model=ImportPreviewResponse)
@limiter.limit(settings.import_rate_limit)
async def preview(
    request: Request,
    body: ImportPreviewRequest,
    current_user: User = Depends(get_catalog_writer),
    store: BatchStore = Depends(get_batch_store),
    db: AsyncSession = Depends(get_db)
):
    """
    Check an uploaded sheet against the catalog and stage the valid rows.

    - **file_base64**: CSV, XLSX or XLSM content, base64 encoded
    - **mode**: create_only, update_only or upsert
    - **stock_mode**: replace sets stock; delta adds the sheet quantity
    - **auto_confirm**: apply right away when no row needs confirmation

    Nothing is written to the catalog unless auto_confirm applies the batch.
    Confirm with the returned batch_id and checksum.
    """
    content = decode_upload(body.file_base64, body.filename)
    rows = read_spreadsheet(content, body.filename)
    result = await preview_import(
        db,
        store,
        rows,
        mode=body.mode,
        stock_mode=body.stock_mode,
        user=current_user,
        filename=body.filename,
        auto_confirm=body.auto_confirm,
    )
    return result.to_dict()


@router.post("/confirm", response_model=ImportApplyResult)
async def confirm(
    body: ImportConfirmRequest,
    current_user: User = Depends(get_catalog_writer),
    store: BatchStore = Depends(get_batch_store),
    db: AsyncSession = Depends(get_db)
):
    """
    Apply a previewed batch, all rows or none.

    - **batch_id**, **checksum**: as returned by preview
    - **allow_identical_rows**: row numbers whose same-name-and-brand
      warning you accept
    """
    outcome = await commit_import(
        db,
        store,
        batch_id=body.batch_id,
        checksum=body.checksum,
        user=current_user,
        allow_identical_rows=body.allow_identical_rows,
    )
    if isinstance(outcome, CommitErr):
        if outcome.kind == ERR_NOT_FOUND:
            raise BatchNotFoundError(body.batch_id)
        if outcome.kind == ERR_CHECKSUM:
            raise ChecksumMismatchError(body.batch_id)
        if outcome.kind == ERR_FORBIDDEN:
            raise BatchForbiddenError(body.batch_id)
        raise ImportCommitError(outcome.detail, outcome.to_dict())
    return outcome.to_dict()


@router.get("/batches/{batch_id}", response_model=ImportBatchResponse)
async def get_batch(
    batch_id: str,
    current_user: User = Depends(get_catalog_writer),
    db: AsyncSession = Depends(get_db)
):
    """Audit record of a previewed batch (staged or applied)."""
    result = await db.execute(
        select(ImportBatchRecord).where(ImportBatchRecord.batch_id == batch_id)
    )
    record = result.scalar_one_or_none()
    if record is None:
        raise ResourceNotFoundError("Import batch", batch_id)
    return record
