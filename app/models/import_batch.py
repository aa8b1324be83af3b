"""
Durable mirror of staged import batches, kept for audit and crash visibility.
"""
from typing import Optional
from datetime import datetime
from sqlalchemy import String, Integer, ForeignKey, Index, DateTime, JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base


JSONType = JSON().with_variant(JSONB(), "postgresql")


class ImportBatchRecord(Base):
    """One staged catalog import, as seen at preview time."""

    __tablename__ = "import_batches"

    batch_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    checksum: Mapped[str] = mapped_column(String(64), nullable=False)
    mode: Mapped[str] = mapped_column(String(20), nullable=False)  # 'create_only', 'update_only', 'upsert'
    stock_mode: Mapped[str] = mapped_column(String(20), nullable=False)  # 'replace', 'delta'
    filename: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    rows: Mapped[list] = mapped_column(JSONType, nullable=False)
    summary: Mapped[dict] = mapped_column(JSONType, nullable=False)

    created_by: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # Lifecycle
    status: Mapped[str] = mapped_column(String(20), default="staged", nullable=False)  # 'staged', 'applied'
    applied_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    result: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)

    # Relationships
    creator = relationship("User", back_populates="import_batches")

    # Indexes
    __table_args__ = (
        Index("idx_import_batches_status", "status"),
        Index("idx_import_batches_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<ImportBatchRecord(batch_id={self.batch_id}, status={self.status})>"
