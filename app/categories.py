"""
Category auto-provisioning.

Categories are matched case-insensitively on name. ``find_category`` is the
read-only path used by preview; ``ensure_category`` inserts when missing and
is idempotent under repeated or concurrent calls (insert-or-ignore on the
lower-cased name key).
"""
from typing import Optional

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from app.logging_config import get_logger
from app.models.category import Category

logger = get_logger("categories")


def category_key(name: str) -> str:
    return " ".join((name or "").split()).lower()


async def find_category(db: AsyncSession, name: str) -> Optional[Category]:
    """Existing category for ``name`` (any casing), or None."""
    key = category_key(name)
    if not key:
        return None
    result = await db.execute(select(Category).where(Category.name_key == key))
    return result.scalar_one_or_none()


def _insert_ignore(dialect_name: str):
    if dialect_name == "postgresql":
        return postgresql.insert(Category)
    if dialect_name == "sqlite":
        return sqlite.insert(Category)
    raise NotImplementedError(f"Category provisioning is not supported on {dialect_name}")


async def ensure_category(db: AsyncSession, name: str) -> Category:
    """
    Make sure a category named ``name`` exists and return it.

    Runs inside the caller's transaction; nothing is committed here.
    """
    existing = await find_category(db, name)
    if existing is not None:
        return existing

    display_name = " ".join(name.split())
    stmt = _insert_ignore(db.get_bind().dialect.name).values(
        name=display_name,
        name_key=category_key(name),
        description=f"{display_name} products",
    ).on_conflict_do_nothing(index_elements=["name_key"])
    await db.execute(stmt)
    logger.info(f"Provisioned category '{display_name}'")

    category = await find_category(db, name)
    if category is None:
        raise RuntimeError(f"Category '{display_name}' missing after insert")
    return category
