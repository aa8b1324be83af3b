"""Tests for the staged batch store and checksum."""
from datetime import timedelta

from app.staging import (
    ImportRow,
    InMemoryBatchStore,
    StagedBatch,
    batch_expiry,
    compute_checksum,
    new_batch_id,
    utcnow,
)


def rows(price=100.0):
    return [
        ImportRow(row=2, action="create", payload={"name": "Tea", "price": price}),
        ImportRow(row=3, action="update", payload={"name": "Milk", "price": 40.0}, matched_product_id=4),
    ]


def batch(batch_id="b1", created_at=None, ttl=30):
    created_at = created_at or utcnow()
    return StagedBatch(
        batch_id=batch_id,
        checksum=compute_checksum(rows(), "upsert", "replace"),
        mode="upsert",
        stock_mode="replace",
        rows=rows(),
        created_by=1,
        created_at=created_at,
        expires_at=batch_expiry(created_at, ttl),
    )


class TestChecksum:
    """Tests for the batch fingerprint."""

    def test_deterministic(self):
        assert compute_checksum(rows(), "upsert", "replace") == compute_checksum(rows(), "upsert", "replace")

    def test_hex_sha256(self):
        digest = compute_checksum(rows(), "upsert", "replace")
        assert len(digest) == 64
        int(digest, 16)

    def test_row_content_changes_digest(self):
        assert compute_checksum(rows(100.0), "upsert", "replace") != compute_checksum(rows(100.01), "upsert", "replace")

    def test_mode_and_stock_mode_covered(self):
        base = compute_checksum(rows(), "upsert", "replace")
        assert compute_checksum(rows(), "create_only", "replace") != base
        assert compute_checksum(rows(), "upsert", "delta") != base

    def test_key_order_irrelevant(self):
        a = [ImportRow(row=2, action="create", payload={"name": "Tea", "price": 1.0})]
        b = [ImportRow(row=2, action="create", payload={"price": 1.0, "name": "Tea"})]
        assert compute_checksum(a, "upsert", "replace") == compute_checksum(b, "upsert", "replace")


class TestImportRow:
    def test_round_trips_through_dict(self):
        row = ImportRow(row=2, action="update", payload={"name": "Tea"}, matched_product_id=1, stock_delta=-2)
        assert ImportRow.from_dict(row.to_dict()) == row


class TestInMemoryBatchStore:
    """Tests for put/get/delete and expiry sweeping."""

    def test_put_get_delete(self):
        store = InMemoryBatchStore()
        store.put(batch("b1"))
        assert store.get("b1").batch_id == "b1"
        store.delete("b1")
        assert store.get("b1") is None

    def test_delete_missing_is_noop(self):
        InMemoryBatchStore().delete("nope")

    def test_expired_batch_not_returned(self):
        now = [utcnow()]
        store = InMemoryBatchStore(clock=lambda: now[0])
        store.put(batch("b1", created_at=now[0], ttl=30))
        now[0] += timedelta(minutes=31)
        assert store.get("b1") is None
        assert len(store) == 0

    def test_sweep_counts_removed(self):
        now = [utcnow()]
        store = InMemoryBatchStore(clock=lambda: now[0])
        store.put(batch("old", created_at=now[0], ttl=1))
        store.put(batch("new", created_at=now[0], ttl=60))
        now[0] += timedelta(minutes=5)
        assert store.sweep_expired() == 1
        assert store.get("new") is not None

    def test_batch_ids_unique(self):
        assert len({new_batch_id() for _ in range(100)}) == 100

    def test_claim_removes_batch(self):
        """Only the first claim gets the batch."""
        store = InMemoryBatchStore()
        store.put(batch("b1"))
        assert store.claim("b1").batch_id == "b1"
        assert store.claim("b1") is None
        assert store.get("b1") is None

    def test_claim_expired_batch(self):
        now = [utcnow()]
        store = InMemoryBatchStore(clock=lambda: now[0])
        store.put(batch("b1", created_at=now[0], ttl=1))
        now[0] += timedelta(minutes=2)
        assert store.claim("b1") is None
