"""Initial billing schema: catalogue, stock ledger, stock history, accounts

Revision ID: b7c1d2e3f4a5
Revises:
Create Date: 2026-10-19

This migration creates:
1. products (catalogue + current stock position, optimistic version column)
2. stock_ledger (one running position per product code)
3. stock_history (append-only audit trail, no FK so DELETE markers survive)
4. companies, admin_credentials, cashier_users
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'b7c1d2e3f4a5'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ==========================================================================
    # 1. PRODUCTS
    # ==========================================================================
    op.create_table('products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_code', sa.String(length=64), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('category', sa.String(length=120), nullable=True),
        sa.Column('hsn_code', sa.String(length=32), nullable=True),
        sa.Column('brand', sa.String(length=120), nullable=True),
        sa.Column('mrp', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('seller_price', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('profit', sa.Numeric(precision=12, scale=2), nullable=False, server_default='0'),
        sa.Column('discount', sa.Numeric(precision=12, scale=2), nullable=False, server_default='0'),
        sa.Column('gst_category', sa.String(length=16), nullable=False),
        sa.Column('gst', sa.Numeric(precision=5, scale=2), nullable=False, server_default='0'),
        sa.Column('base_unit', sa.String(length=16), nullable=False),
        sa.Column('secondary_unit', sa.String(length=16), nullable=True),
        sa.Column('conversion_rate', sa.Numeric(precision=12, scale=3), nullable=False, server_default='1'),
        sa.Column('base_price', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('secondary_price', sa.Numeric(precision=14, scale=4), nullable=True),
        sa.Column('unit_prices', sa.JSON(), nullable=False),
        sa.Column('stock_quantity', sa.Numeric(precision=18, scale=6), nullable=False, server_default='0'),
        sa.Column('overall_quantity', sa.Numeric(precision=18, scale=6), nullable=False, server_default='0'),
        sa.Column('low_stock_alert', sa.Numeric(precision=14, scale=3), nullable=False, server_default='0'),
        sa.Column('supplier_name', sa.String(length=255), nullable=True),
        sa.Column('batch_number', sa.String(length=64), nullable=True),
        sa.Column('manufacture_date', sa.DateTime(), nullable=True),
        sa.Column('expiry_date', sa.DateTime(), nullable=True),
        sa.Column('manufacture_location', sa.String(length=255), nullable=True),
        sa.Column('incoming_date', sa.DateTime(), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('products', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_products_product_code'), ['product_code'], unique=True)
        batch_op.create_index(batch_op.f('ix_products_product_name'), ['product_name'], unique=False)
        batch_op.create_index(batch_op.f('ix_products_created_at'), ['created_at'], unique=False)
        batch_op.create_index('ix_products_supplier_batch', ['supplier_name', 'batch_number'], unique=False)

    # ==========================================================================
    # 2. STOCK LEDGER
    # ==========================================================================
    op.create_table('stock_ledger',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_code', sa.String(length=64), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('unit', sa.String(length=16), nullable=False),
        sa.Column('total_quantity', sa.Numeric(precision=18, scale=6), nullable=False, server_default='0'),
        sa.Column('available_quantity', sa.Numeric(precision=18, scale=6), nullable=False, server_default='0'),
        sa.Column('selling_quantity', sa.Numeric(precision=18, scale=6), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('stock_ledger', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_stock_ledger_product_code'), ['product_code'], unique=True)

    # ==========================================================================
    # 3. STOCK HISTORY
    # ==========================================================================
    op.create_table('stock_history',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=True),
        sa.Column('product_code', sa.String(length=64), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('action', sa.String(length=16), nullable=False),
        sa.Column('previous_stock', sa.Numeric(precision=18, scale=6), nullable=False),
        sa.Column('added_stock', sa.Numeric(precision=18, scale=6), nullable=False),
        sa.Column('new_stock', sa.Numeric(precision=18, scale=6), nullable=False),
        sa.Column('supplier_name', sa.String(length=255), nullable=False, server_default='N/A'),
        sa.Column('batch_number', sa.String(length=64), nullable=False, server_default='N/A'),
        sa.Column('manufacture_date', sa.DateTime(), nullable=True),
        sa.Column('expiry_date', sa.DateTime(), nullable=True),
        sa.Column('mrp', sa.Numeric(precision=12, scale=2), nullable=False, server_default='0'),
        sa.Column('seller_price', sa.Numeric(precision=12, scale=2), nullable=False, server_default='0'),
        sa.Column('updated_by', sa.String(length=64), nullable=False, server_default='system'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('stock_history', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_stock_history_product_code'), ['product_code'], unique=False)
        batch_op.create_index(batch_op.f('ix_stock_history_action'), ['action'], unique=False)
        batch_op.create_index(batch_op.f('ix_stock_history_created_at'), ['created_at'], unique=False)
        batch_op.create_index('ix_stock_history_code_created', ['product_code', 'created_at'], unique=False)

    # ==========================================================================
    # 4. ACCOUNTS
    # ==========================================================================
    op.create_table('companies',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('business_name', sa.String(length=255), nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone_number', sa.String(length=32), nullable=True),
        sa.Column('gstin', sa.String(length=32), nullable=True),
        sa.Column('business_type', sa.String(length=120), nullable=True),
        sa.Column('business_category', sa.String(length=120), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('city', sa.String(length=120), nullable=True),
        sa.Column('state', sa.String(length=120), nullable=True),
        sa.Column('pincode', sa.String(length=16), nullable=True),
        sa.Column('country', sa.String(length=120), nullable=True),
        sa.Column('logo_url', sa.String(length=512), nullable=True),
        sa.Column('signature_url', sa.String(length=512), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('companies', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_companies_created_at'), ['created_at'], unique=False)

    op.create_table('admin_credentials',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('contact_number', sa.String(length=32), nullable=True),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )

    op.create_table('cashier_users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('cashier_name', sa.String(length=120), nullable=False),
        sa.Column('cashier_id', sa.String(length=64), nullable=False),
        sa.Column('counter_num', sa.String(length=32), nullable=True),
        sa.Column('contact_number', sa.String(length=32), nullable=True),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('cashier_users', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_cashier_users_cashier_id'), ['cashier_id'], unique=True)


def downgrade():
    """Drop all tables (destructive operation)."""
    op.drop_table('cashier_users')
    op.drop_table('admin_credentials')
    op.drop_table('companies')
    op.drop_table('stock_history')
    op.drop_table('stock_ledger')
    op.drop_table('products')
