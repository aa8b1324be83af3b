"""
Staging area for previewed import batches.
Batches live in process memory with a TTL until they are confirmed.

The store sits behind BatchStore so a shared backend can replace the
in-process dict for multi-instance deployments. The in-memory store is
single-process only: two server workers would each see their own batches.
"""
import hashlib
import json
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, asdict
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from app.logging_config import get_logger

logger = get_logger("staging")

IMPORT_MODES = ("create_only", "update_only", "upsert")
STOCK_MODES = ("replace", "delta")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ImportRow:
    """One accepted line of a batch; consumed exactly once at commit."""
    row: int
    action: str  # 'create' | 'update'
    payload: dict[str, Any]
    matched_product_id: Optional[int] = None
    requires_identical_confirmation: bool = False
    stock_delta: Optional[int] = None
    sku_supplied: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ImportRow":
        return cls(**data)


@dataclass
class StagedBatch:
    """A previewed batch waiting for confirmation."""
    batch_id: str
    checksum: str
    mode: str
    stock_mode: str
    rows: list[ImportRow]
    created_by: Optional[int]
    created_at: datetime
    expires_at: datetime
    summary: dict[str, int] = field(default_factory=dict)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or utcnow()) >= self.expires_at


def new_batch_id() -> str:
    return uuid.uuid4().hex


def compute_checksum(rows: list[ImportRow], mode: str, stock_mode: str) -> str:
    """
    SHA-256 fingerprint over the accepted rows, mode and stock_mode.

    Serialization is canonical JSON (sorted keys, no whitespace) so identical
    input always yields the identical hex digest.
    """
    body = json.dumps(
        {
            "rows": [row.to_dict() for row in rows],
            "mode": mode,
            "stock_mode": stock_mode,
        },
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )
    return hashlib.sha256(body.encode("utf-8")).hexdigest()


class BatchStore(ABC):
    """Keyed store of staged batches."""

    @abstractmethod
    def get(self, batch_id: str) -> Optional[StagedBatch]:
        """Return the batch, or None when absent or expired."""

    @abstractmethod
    def put(self, batch: StagedBatch) -> None:
        """Stage a batch under its batch_id."""

    @abstractmethod
    def delete(self, batch_id: str) -> None:
        """Remove a batch after confirm or cancel."""

    @abstractmethod
    def claim(self, batch_id: str) -> Optional[StagedBatch]:
        """
        Remove and return the batch in one step, or None when absent or
        expired. Only one caller can claim a given batch; a caller whose
        apply fails puts it back.
        """

    @abstractmethod
    def sweep_expired(self) -> int:
        """Drop every expired batch; return how many were removed."""


class InMemoryBatchStore(BatchStore):
    """Process-local batch store with TTL expiry, swept on every access."""

    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self._batches: dict[str, StagedBatch] = {}
        self._clock = clock

    def __len__(self) -> int:
        return len(self._batches)

    def get(self, batch_id: str) -> Optional[StagedBatch]:
        self.sweep_expired()
        return self._batches.get(batch_id)

    def put(self, batch: StagedBatch) -> None:
        self.sweep_expired()
        self._batches[batch.batch_id] = batch

    def delete(self, batch_id: str) -> None:
        self._batches.pop(batch_id, None)

    def claim(self, batch_id: str) -> Optional[StagedBatch]:
        self.sweep_expired()
        return self._batches.pop(batch_id, None)

    def sweep_expired(self) -> int:
        now = self._clock()
        expired = [k for k, batch in self._batches.items() if batch.is_expired(now)]
        for k in expired:
            del self._batches[k]
        if expired:
            logger.info(f"Swept {len(expired)} expired import batch(es)")
        return len(expired)


_default_store = InMemoryBatchStore()


def get_batch_store() -> BatchStore:
    """Dependency for FastAPI endpoints; override to plug in another store."""
    return _default_store


def batch_expiry(created_at: datetime, ttl_minutes: int) -> datetime:
    return created_at + timedelta(minutes=ttl_minutes)
