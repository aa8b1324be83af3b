"""Initial schema - users, categories, products, import batches

Revision ID: 001
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSONType = sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), 'postgresql')


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    # Create users table
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=True),
        sa.Column('role', sa.String(length=50), nullable=False, server_default='customer'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_users'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    # Create categories table
    op.create_table(
        'categories',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('name_key', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_categories'),
    )
    op.create_index('ix_categories_name_key', 'categories', ['name_key'], unique=True)

    # Create products table
    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('sku', sa.String(length=100), nullable=True),
        sa.Column('barcode', sa.String(length=64), nullable=True),
        sa.Column('name', sa.String(length=500), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('brand', sa.String(length=255), nullable=True),
        sa.Column('content', sa.String(length=100), nullable=True),
        sa.Column('color', sa.String(length=100), nullable=True),
        sa.Column('category', sa.String(length=255), nullable=False),
        sa.Column('price', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('mrp', sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column('default_discount', sa.Numeric(precision=10, scale=2), nullable=False, server_default='0'),
        sa.Column('discount_type', sa.String(length=20), nullable=False, server_default='fixed'),
        sa.Column('uom', sa.String(length=50), nullable=False, server_default='pcs'),
        sa.Column('stock', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('expiry_date', sa.String(length=10), nullable=True),
        sa.Column('image', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_products'),
    )
    op.create_index('uq_products_sku_lower', 'products', [sa.text('lower(sku)')], unique=True)
    op.create_index('uq_products_barcode_lower', 'products', [sa.text('lower(barcode)')], unique=True)
    op.create_index('idx_products_name', 'products', ['name'])
    op.create_index('idx_products_category', 'products', ['category'])

    # Create import_batches table
    op.create_table(
        'import_batches',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('batch_id', sa.String(length=64), nullable=False),
        sa.Column('checksum', sa.String(length=64), nullable=False),
        sa.Column('mode', sa.String(length=20), nullable=False),
        sa.Column('stock_mode', sa.String(length=20), nullable=False),
        sa.Column('filename', sa.String(length=255), nullable=True),
        sa.Column('rows', JSONType, nullable=False),
        sa.Column('summary', JSONType, nullable=False),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='staged'),
        sa.Column('applied_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('result', JSONType, nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ['created_by'], ['users.id'],
            name='fk_import_batches_created_by_users', ondelete='SET NULL'
        ),
        sa.PrimaryKeyConstraint('id', name='pk_import_batches'),
        sa.UniqueConstraint('batch_id', name='uq_import_batches_batch_id'),
    )
    op.create_index('ix_import_batches_created_by', 'import_batches', ['created_by'])
    op.create_index('idx_import_batches_status', 'import_batches', ['status'])
    op.create_index('idx_import_batches_created_at', 'import_batches', ['created_at'])


def downgrade() -> None:
    # Drop tables in reverse order
    op.drop_table('import_batches')
    op.drop_table('products')
    op.drop_table('categories')
    op.drop_table('users')
