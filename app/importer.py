# app/importer.py
"""
Bulk catalog import: preview (stage) and confirm (commit).

preview_import() runs every row through normalize -> validate -> match ->
classify -> dedup, stages the accepted rows under a checksum and returns a
per-row report. commit_import() applies a staged batch in one transaction
and reports the outcome as CommitOk / CommitErr instead of raising.
"""
import secrets
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, Mapping, Optional, Union

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.categories import category_key, ensure_category, find_category
from app.conflicts import (
    SEVERITY_CONFIRM,
    DedupTracker,
    classify_conflict,
    dedup_message,
)
from app.core.config import settings
from app.error_handlers import ImportInputError
from app.logging_config import get_logger
from app.match import find_existing_product, load_catalog
from app.models.import_batch import ImportBatchRecord
from app.models.product import Product
from app.models.user import User
from app.normalizer import ProductDraft, RawProductRow, normalize_row, parse_quantity
from app.staging import (
    IMPORT_MODES,
    STOCK_MODES,
    BatchStore,
    ImportRow,
    StagedBatch,
    batch_expiry,
    compute_checksum,
    new_batch_id,
    utcnow,
)
from app.validation import validate_draft

logger = get_logger("importer")

# Preview row statuses
STATUS_READY = "ready"
STATUS_CONFIRM = "needs_confirmation"
STATUS_ERROR = "error"
STATUS_SKIP = "skip"

# CommitErr kinds
ERR_NOT_FOUND = "not_found"
ERR_CHECKSUM = "checksum_mismatch"
ERR_FORBIDDEN = "forbidden"
ERR_ROW_FAILED = "row_failed"
ERR_CONFLICT = "conflict"

HEADER_OFFSET = 2  # sheet row 1 is the header


@dataclass
class RowPreview:
    """What preview reports for one input row."""
    row: int
    status: str
    action: Optional[str] = None
    matched_product_id: Optional[int] = None
    errors: list[str] = field(default_factory=list)
    conflict: Optional[dict[str, Any]] = None
    requires_identical_confirmation: bool = False
    category_will_be_created: bool = False
    payload: Optional[dict[str, Any]] = None

    def fail(self, message: str) -> None:
        self.status = STATUS_ERROR
        self.errors.append(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "row": self.row,
            "status": self.status,
            "action": self.action,
            "matched_product_id": self.matched_product_id,
            "errors": list(self.errors),
            "conflict": self.conflict,
            "requires_identical_confirmation": self.requires_identical_confirmation,
            "category_will_be_created": self.category_will_be_created,
            "payload": self.payload,
        }


@dataclass(frozen=True)
class CommitOk:
    created: int
    updated: int

    ok = True

    def to_dict(self) -> dict[str, Any]:
        return {"created": self.created, "updated": self.updated, "failed": 0, "errors": []}


@dataclass(frozen=True)
class CommitErr:
    kind: str
    detail: str
    errors: tuple = ()
    failed: int = 0

    ok = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "created": 0,
            "updated": 0,
            "failed": self.failed,
            "errors": list(self.errors),
        }


CommitOutcome = Union[CommitOk, CommitErr]


@dataclass
class PreviewResult:
    batch_id: Optional[str]
    checksum: Optional[str]
    expires_at: Optional[datetime]
    summary: dict[str, int]
    preview: list[RowPreview]
    apply_result: Optional[CommitOutcome] = None
    notification: Optional[dict[str, Any]] = None

    @property
    def staged(self) -> bool:
        return self.batch_id is not None

    def to_dict(self) -> dict[str, Any]:
        data = {
            "batch_id": self.batch_id,
            "checksum": self.checksum,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "summary": dict(self.summary),
            "preview": [entry.to_dict() for entry in self.preview],
        }
        if self.notification is not None:
            data["apply_result"] = self.apply_result.to_dict() if self.apply_result else None
            data["notification"] = self.notification
        return data


def _summarize(entries: Iterable[RowPreview], accepted: Iterable[ImportRow]) -> dict[str, int]:
    entries = list(entries)
    accepted = list(accepted)
    return {
        "creates": sum(1 for r in accepted if r.action == "create"),
        "updates": sum(1 for r in accepted if r.action == "update"),
        "skips": sum(1 for e in entries if e.status == STATUS_SKIP),
        "errors": sum(1 for e in entries if e.status == STATUS_ERROR),
        "needs_confirmation": sum(1 for e in entries if e.status == STATUS_CONFIRM),
    }


def _check_modes(mode: str, stock_mode: str) -> None:
    if mode not in IMPORT_MODES:
        raise ImportInputError(
            f"mode must be one of: {', '.join(IMPORT_MODES)}", details={"mode": mode}
        )
    if stock_mode not in STOCK_MODES:
        raise ImportInputError(
            f"stock_mode must be one of: {', '.join(STOCK_MODES)}",
            details={"stock_mode": stock_mode},
        )


async def preview_import(
    db: AsyncSession,
    store: BatchStore,
    rows: list[Mapping[str, Any]],
    *,
    mode: str = "upsert",
    stock_mode: str = "replace",
    user: Optional[User] = None,
    filename: Optional[str] = None,
    auto_confirm: bool = False,
    now: Optional[datetime] = None,
) -> PreviewResult:
    """
    Evaluate every row against the catalog and stage the ones that pass.

    Nothing in the catalog is written here. Rows with errors stay in the
    report but are left out of the staged batch; when no row qualifies no
    batch is staged and batch_id/checksum are None.
    """
    _check_modes(mode, stock_mode)
    if not rows:
        raise ImportInputError("The sheet has no data rows")

    catalog = await load_catalog(db)
    tracker = DedupTracker()
    entries: dict[int, RowPreview] = {}
    accepted: dict[int, ImportRow] = {}
    known_categories: dict[str, Optional[str]] = {}

    for index, mapping in enumerate(rows):
        row_no = index + HEADER_OFFSET
        raw = RawProductRow.from_mapping(mapping)
        if not raw.supplied_fields():
            entries[row_no] = RowPreview(row=row_no, status=STATUS_SKIP)
            continue

        matched = find_existing_product(raw, catalog)
        matched_id = matched.id if matched is not None else None
        entry = RowPreview(
            row=row_no,
            status=STATUS_READY,
            action="update" if matched is not None else "create",
            matched_product_id=matched_id,
        )
        entries[row_no] = entry

        if mode == "create_only" and matched is not None:
            entry.fail(f"matches existing product #{matched_id}; create_only never updates")
        elif mode == "update_only" and matched is None:
            entry.fail("no existing product matches this row; update_only never creates")

        stock_delta = None
        stock_override = None
        if stock_mode == "delta":
            stock_delta = parse_quantity(raw.stock)
            if stock_delta is None:
                if "stock" in raw.supplied_fields():
                    entry.fail("stock quantity must be a whole number")
                stock_delta = 0
            base = matched.stock if matched is not None else 0
            stock_override = base + stock_delta

        draft = normalize_row(raw, current=matched, stock_override=stock_override)
        for message in validate_draft(draft):
            entry.fail(message)

        key = category_key(draft.category)
        if key and key not in known_categories:
            existing = await find_category(db, draft.category)
            known_categories[key] = existing.name if existing is not None else None
        if known_categories.get(key):
            draft.category = known_categories[key]
        else:
            entry.category_will_be_created = bool(key)

        conflict = classify_conflict(draft, catalog, exclude_id=matched_id)
        if conflict is not None:
            entry.conflict = conflict.to_dict()
            if conflict.blocks:
                entry.fail(conflict.message)
            elif conflict.severity == SEVERITY_CONFIRM:
                entry.requires_identical_confirmation = True

        duplicate = tracker.check(draft, matched_id)
        if duplicate is not None:
            dup_field, other_row, explicit = duplicate
            entry.fail(dedup_message(dup_field, other_row))
            if explicit:
                entries[other_row].fail(dedup_message(dup_field, row_no))
                accepted.pop(other_row, None)

        entry.payload = draft.to_payload()
        if entry.status == STATUS_ERROR:
            continue

        if entry.requires_identical_confirmation:
            entry.status = STATUS_CONFIRM
        accepted[row_no] = ImportRow(
            row=row_no,
            action=entry.action,
            payload=entry.payload,
            matched_product_id=matched_id,
            requires_identical_confirmation=entry.requires_identical_confirmation,
            stock_delta=stock_delta,
            sku_supplied="sku" in draft.supplied,
        )
        tracker.register(row_no, draft, matched_id)

    staged_rows = [accepted[k] for k in sorted(accepted)]
    preview = [entries[k] for k in sorted(entries)]
    summary = _summarize(preview, staged_rows)

    if not staged_rows:
        logger.info(f"Import preview of {len(rows)} row(s) staged nothing: {summary}")
        result = PreviewResult(None, None, None, summary, preview)
        if auto_confirm:
            result.notification = {
                "level": "warning",
                "message": "Nothing was applied: no row passed validation",
            }
        return result

    created_at = now or utcnow()
    batch = StagedBatch(
        batch_id=new_batch_id(),
        checksum=compute_checksum(staged_rows, mode, stock_mode),
        mode=mode,
        stock_mode=stock_mode,
        rows=staged_rows,
        created_by=user.id if user is not None else None,
        created_at=created_at,
        expires_at=batch_expiry(created_at, settings.import_batch_ttl_minutes),
        summary=summary,
    )
    store.put(batch)
    await _write_mirror(db, batch, filename)
    logger.info(
        f"Staged import batch {batch.batch_id}: {len(staged_rows)} row(s), summary={summary}"
    )

    result = PreviewResult(batch.batch_id, batch.checksum, batch.expires_at, summary, preview)
    if auto_confirm:
        await _auto_confirm(db, store, result, user)
    return result


async def _write_mirror(db: AsyncSession, batch: StagedBatch, filename: Optional[str]) -> None:
    """Durable copy of a staged batch. Failures are logged, never raised."""
    record = ImportBatchRecord(
        batch_id=batch.batch_id,
        checksum=batch.checksum,
        mode=batch.mode,
        stock_mode=batch.stock_mode,
        filename=filename,
        rows=[row.to_dict() for row in batch.rows],
        summary=dict(batch.summary),
        created_by=batch.created_by,
        expires_at=batch.expires_at,
        status="staged",
    )
    try:
        db.add(record)
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception(f"Could not write mirror row for import batch {batch.batch_id}")


async def _auto_confirm(
    db: AsyncSession,
    store: BatchStore,
    result: PreviewResult,
    user: Optional[User],
) -> None:
    pending = [entry.row for entry in result.preview if entry.status == STATUS_CONFIRM]
    if pending:
        result.notification = {
            "level": "warning",
            "message": (
                f"Batch left staged: row(s) {', '.join(map(str, pending))} need "
                f"confirmation; confirm the batch explicitly"
            ),
        }
        return

    outcome = await commit_import(
        db, store, batch_id=result.batch_id, checksum=result.checksum, user=user
    )
    result.apply_result = outcome
    result.notification = build_notification(outcome)


def build_notification(outcome: CommitOutcome) -> dict[str, Any]:
    """Short user-facing message about a commit outcome."""
    if isinstance(outcome, CommitOk):
        return {
            "level": "success",
            "message": f"Catalog import applied: {outcome.created} created, {outcome.updated} updated",
        }
    return {"level": "error", "message": f"Catalog import not applied: {outcome.detail}"}


def _draft_from_row(row: ImportRow) -> ProductDraft:
    supplied = frozenset({"sku"}) if row.sku_supplied else frozenset()
    return ProductDraft(**row.payload, supplied=supplied)


def _row_error(row: ImportRow, message: str) -> dict[str, Any]:
    return {"row": row.row, "error": message}


async def commit_import(
    db: AsyncSession,
    store: BatchStore,
    *,
    batch_id: str,
    checksum: str,
    user: Optional[User],
    allow_identical_rows: Iterable[int] = (),
) -> CommitOutcome:
    """
    Apply a staged batch all-or-nothing.

    Checks, in order: the batch exists and has not expired, the checksum
    matches, the caller created the batch or is an admin. Every row is then
    re-checked against the catalog as it stands inside this transaction;
    the first failing row rolls everything back. Counts are only reported
    after the commit went through.
    """
    batch = store.get(batch_id)
    if batch is None:
        logger.warning(f"Confirm rejected: import batch {batch_id} not found or expired")
        return CommitErr(ERR_NOT_FOUND, "Import batch not found or expired")

    if not secrets.compare_digest(str(checksum or ""), batch.checksum):
        logger.warning(f"Confirm rejected: checksum mismatch for import batch {batch_id}")
        return CommitErr(ERR_CHECKSUM, "Checksum does not match the staged batch")

    is_owner = user is not None and batch.created_by is not None and user.id == batch.created_by
    if not (is_owner or (user is not None and user.is_admin)):
        logger.warning(f"Confirm rejected: user may not confirm import batch {batch_id}")
        return CommitErr(ERR_FORBIDDEN, "Only the creator or an admin may confirm this batch")

    # claiming removes the batch, so a concurrent confirm of the same batch sees not_found
    if store.claim(batch_id) is None:
        logger.warning(f"Confirm rejected: import batch {batch_id} is already being applied")
        return CommitErr(ERR_NOT_FOUND, "Import batch not found or expired")

    outcome = None
    try:
        outcome = await _apply_batch(db, batch, allow_identical_rows)
    finally:
        if outcome is None or not outcome.ok:
            store.put(batch)

    if outcome.ok:
        logger.info(
            f"Applied import batch {batch_id}: {outcome.created} created, {outcome.updated} updated"
        )
    return outcome


async def _apply_batch(
    db: AsyncSession,
    batch: StagedBatch,
    allow_identical_rows: Iterable[int],
) -> CommitOutcome:
    """Re-check and write every row of a claimed batch in one transaction."""
    batch_id = batch.batch_id
    allowed = set(allow_identical_rows or ())
    failed = len(batch.rows)

    async def abort(row: ImportRow, message: str) -> CommitErr:
        await db.rollback()
        logger.warning(f"Import batch {batch_id} rolled back at row {row.row}: {message}")
        return CommitErr(
            ERR_ROW_FAILED,
            f"Row {row.row}: {message}",
            errors=(_row_error(row, message),),
            failed=failed,
        )

    try:
        catalog = await load_catalog(db)
        tracker = DedupTracker()
        created = updated = 0

        for row in batch.rows:
            draft = _draft_from_row(row)
            product = None
            if row.action == "update":
                product = catalog.get(row.matched_product_id)
                if product is None:
                    return await abort(
                        row, f"product #{row.matched_product_id} no longer exists"
                    )
                if row.stock_delta is not None:
                    draft.stock = product.stock + row.stock_delta
            elif row.stock_delta is not None:
                draft.stock = row.stock_delta

            violations = validate_draft(draft)
            if violations:
                return await abort(row, "; ".join(violations))

            duplicate = tracker.check(draft, row.matched_product_id)
            if duplicate is not None:
                return await abort(row, dedup_message(duplicate[0], duplicate[1]))

            conflict = classify_conflict(draft, catalog, exclude_id=row.matched_product_id)
            if conflict is not None:
                if conflict.blocks:
                    return await abort(row, conflict.message)
                if row.row not in allowed:
                    return await abort(
                        row,
                        f"{conflict.message}; add row {row.row} to allow_identical_rows",
                    )

            category = await ensure_category(db, draft.category)
            draft.category = category.name
            values = draft.to_payload()

            if product is None:
                product = Product(**values)
                db.add(product)
                await db.flush()
                created += 1
            else:
                catalog.remove(product)
                for name, value in values.items():
                    setattr(product, name, value)
                updated += 1
            catalog.add(product)
            tracker.register(row.row, draft, product.id)

        counts = {"created": created, "updated": updated}
        record = (
            await db.execute(
                select(ImportBatchRecord).where(ImportBatchRecord.batch_id == batch_id)
            )
        ).scalar_one_or_none()
        if record is not None:
            record.status = "applied"
            record.applied_at = utcnow()
            record.result = counts

        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        logger.warning(f"Import batch {batch_id} rolled back on constraint violation: {exc.orig}")
        return CommitErr(
            ERR_CONFLICT,
            "A product was changed concurrently; preview again",
            failed=failed,
        )
    except SQLAlchemyError:
        await db.rollback()
        raise

    return CommitOk(created=created, updated=updated)
