"""initial schema

Revision ID: b7c41e2d9a10
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the complete shopledger schema:
- stores, categories, suppliers, products: catalog and locations
- inventory_history: append-only stock movement ledger
- purchase_orders, grns, stock_adjustments, transfers: stock workflows
- payment_methods, customers, sales: checkout
- chart_of_accounts, journal_entries, journal_entry_lines: double-entry ledger
- payroll, document_sequences
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'b7c41e2d9a10'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    """
    Create all tables from scratch.

    Identifiers are UUID strings. Line items and per-store stock maps are
    JSON columns.
    """

    # ============================================================================
    # Catalog and locations
    # ============================================================================
    op.create_table(
        'stores',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('address', sa.Text(), nullable=False),
        sa.Column('phone', sa.String(length=64), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'categories',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('is_uncategorized', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
    )

    op.create_table(
        'suppliers',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('contact_person', sa.String(length=255), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=64), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('vat_number', sa.String(length=64), nullable=True),
        sa.Column('tin_number', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )

    # stock == sum(stock_by_store) whenever stock_by_store is set
    op.create_table(
        'products',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('category_id', sa.String(length=36), nullable=True),
        sa.Column('price', sa.Float(), nullable=False, server_default='0'),
        sa.Column('cost', sa.Float(), nullable=False, server_default='0'),
        sa.Column('wholesale_price', sa.Float(), nullable=False, server_default='0'),
        sa.Column('stock', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('stock_by_store', sa.JSON(), nullable=True),
        sa.Column('track_stock', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('available_for_sale', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('sku', sa.String(length=64), nullable=False),
        sa.Column('image_url', sa.Text(), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['category_id'], ['categories.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('sku'),
    )
    op.create_index('ix_products_category_id', 'products', ['category_id'])
    op.create_index('ix_products_category_name', 'products', ['category_id', 'name'])

    # ============================================================================
    # inventory_history: append-only stock ledger
    # ============================================================================
    # product_id has no foreign key: PRODUCT_DELETED entries outlive the product
    op.create_table(
        'inventory_history',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('date', sa.DateTime(), nullable=False),
        sa.Column('type', sa.String(length=32), nullable=False),
        sa.Column('reference_id', sa.String(length=64), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('product_id', sa.String(length=36), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('quantity_change', sa.Integer(), nullable=False),
        sa.Column('current_stock', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.String(length=36), nullable=True),
        sa.Column('store_name', sa.String(length=255), nullable=True),
        sa.Column('user_id', sa.String(length=64), nullable=True),
        sa.Column('user_name', sa.String(length=255), nullable=True),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id'], ),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_inventory_history_date', 'inventory_history', ['date'])
    op.create_index('ix_inventory_history_type', 'inventory_history', ['type'])
    op.create_index('ix_inventory_history_product_id', 'inventory_history', ['product_id'])
    op.create_index('ix_inventory_history_store_id', 'inventory_history', ['store_id'])
    op.create_index('ix_invhist_product_store_date', 'inventory_history', ['product_id', 'store_id', 'date'])
    op.create_index('ix_invhist_reference', 'inventory_history', ['reference_id'])

    # ============================================================================
    # Stock workflows
    # ============================================================================
    op.create_table(
        'purchase_orders',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('reference_no', sa.String(length=64), nullable=False),
        sa.Column('supplier_id', sa.String(length=36), nullable=False),
        sa.Column('supplier_name', sa.String(length=255), nullable=False),
        sa.Column('order_date', sa.DateTime(), nullable=False),
        sa.Column('expected_delivery_date', sa.DateTime(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('items', sa.JSON(), nullable=False),
        sa.Column('total_value', sa.Float(), nullable=False, server_default='0'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['supplier_id'], ['suppliers.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('reference_no'),
    )
    op.create_index('ix_purchase_orders_supplier_id', 'purchase_orders', ['supplier_id'])
    op.create_index('ix_purchase_orders_status', 'purchase_orders', ['status'])

    op.create_table(
        'grns',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('reference_no', sa.String(length=64), nullable=False),
        sa.Column('purchase_order_id', sa.String(length=36), nullable=True),
        sa.Column('supplier_id', sa.String(length=36), nullable=False),
        sa.Column('supplier_name', sa.String(length=255), nullable=False),
        sa.Column('received_date', sa.DateTime(), nullable=False),
        sa.Column('receiving_store_id', sa.String(length=36), nullable=False),
        sa.Column('receiving_store_name', sa.String(length=255), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('items', sa.JSON(), nullable=False),
        sa.Column('total_value', sa.Float(), nullable=False, server_default='0'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('approved_by_user_id', sa.String(length=64), nullable=True),
        sa.Column('approved_by_user_name', sa.String(length=255), nullable=True),
        sa.Column('approval_date', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['purchase_order_id'], ['purchase_orders.id'], ),
        sa.ForeignKeyConstraint(['supplier_id'], ['suppliers.id'], ),
        sa.ForeignKeyConstraint(['receiving_store_id'], ['stores.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('reference_no'),
    )
    op.create_index('ix_grns_purchase_order_id', 'grns', ['purchase_order_id'])
    op.create_index('ix_grns_supplier_id', 'grns', ['supplier_id'])
    op.create_index('ix_grns_receiving_store_id', 'grns', ['receiving_store_id'])
    op.create_index('ix_grns_status', 'grns', ['status'])

    op.create_table(
        'stock_adjustments',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('adjustment_date', sa.DateTime(), nullable=False),
        sa.Column('store_id', sa.String(length=36), nullable=False),
        sa.Column('store_name', sa.String(length=255), nullable=False),
        sa.Column('items', sa.JSON(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('approved_by_user_id', sa.String(length=64), nullable=True),
        sa.Column('approved_by_user_name', sa.String(length=255), nullable=True),
        sa.Column('approval_date', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id'], ),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_stock_adjustments_store_id', 'stock_adjustments', ['store_id'])

    op.create_table(
        'transfers',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('transfer_date', sa.DateTime(), nullable=False),
        sa.Column('transfer_from_store_id', sa.String(length=36), nullable=False),
        sa.Column('transfer_from_store_name', sa.String(length=255), nullable=False),
        sa.Column('transfer_to_store_id', sa.String(length=36), nullable=False),
        sa.Column('transfer_to_store_name', sa.String(length=255), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('items', sa.JSON(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('approved_by_user_id', sa.String(length=64), nullable=True),
        sa.Column('approved_by_user_name', sa.String(length=255), nullable=True),
        sa.Column('approval_date', sa.DateTime(), nullable=True),
        sa.Column('received_by_user_id', sa.String(length=64), nullable=True),
        sa.Column('received_by_user_name', sa.String(length=255), nullable=True),
        sa.Column('received_date', sa.DateTime(), nullable=True),
        sa.Column('rejected_by_user_id', sa.String(length=64), nullable=True),
        sa.Column('rejected_by_user_name', sa.String(length=255), nullable=True),
        sa.Column('rejected_date', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('transfer_from_store_id <> transfer_to_store_id', name='ck_transfers_distinct_stores'),
        sa.ForeignKeyConstraint(['transfer_from_store_id'], ['stores.id'], ),
        sa.ForeignKeyConstraint(['transfer_to_store_id'], ['stores.id'], ),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_transfers_transfer_from_store_id', 'transfers', ['transfer_from_store_id'])
    op.create_index('ix_transfers_transfer_to_store_id', 'transfers', ['transfer_to_store_id'])
    op.create_index('ix_transfers_status', 'transfers', ['status'])

    op.create_table(
        'document_sequences',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('document_type', sa.String(length=32), nullable=False),
        sa.Column('next_number', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('document_type'),
    )

    # ============================================================================
    # Checkout
    # ============================================================================
    op.create_table(
        'payment_methods',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('is_cash_equivalent', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('is_credit', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
    )

    op.create_table(
        'customers',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False, server_default=''),
        sa.Column('phone', sa.String(length=64), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('loyalty_points', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('loyalty_points >= 0', name='ck_customers_loyalty_points_nonneg'),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'sales',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('date', sa.DateTime(), nullable=False),
        sa.Column('items', sa.JSON(), nullable=False),
        sa.Column('subtotal', sa.Float(), nullable=False, server_default='0'),
        sa.Column('tax', sa.Float(), nullable=False, server_default='0'),
        sa.Column('total', sa.Float(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='completed'),
        sa.Column('type', sa.String(length=16), nullable=False, server_default='sale'),
        sa.Column('gift_card_amount_used', sa.Float(), nullable=True),
        sa.Column('customer_id', sa.String(length=36), nullable=True),
        sa.Column('customer_name', sa.String(length=255), nullable=True),
        sa.Column('discount_percentage', sa.Float(), nullable=True),
        sa.Column('discount_amount', sa.Float(), nullable=True),
        sa.Column('loyalty_points_used', sa.Integer(), nullable=True),
        sa.Column('loyalty_points_discount_amount', sa.Float(), nullable=True),
        sa.Column('original_sale_id', sa.String(length=36), nullable=True),
        sa.Column('tax_rate_applied', sa.Float(), nullable=True),
        sa.Column('payment_method_id', sa.String(length=36), nullable=True),
        sa.Column('employee_id', sa.String(length=64), nullable=True),
        sa.Column('employee_name', sa.String(length=255), nullable=True),
        sa.Column('held_by_employee_id', sa.String(length=64), nullable=True),
        sa.Column('held_by_employee_name', sa.String(length=255), nullable=True),
        sa.Column('store_id', sa.String(length=36), nullable=True),
        sa.Column('store_name', sa.String(length=255), nullable=True),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ),
        sa.ForeignKeyConstraint(['original_sale_id'], ['sales.id'], ),
        sa.ForeignKeyConstraint(['payment_method_id'], ['payment_methods.id'], ),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id'], ),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_sales_date', 'sales', ['date'])
    op.create_index('ix_sales_status', 'sales', ['status'])
    op.create_index('ix_sales_type', 'sales', ['type'])
    op.create_index('ix_sales_customer_id', 'sales', ['customer_id'])
    op.create_index('ix_sales_original_sale_id', 'sales', ['original_sale_id'])
    op.create_index('ix_sales_store_id', 'sales', ['store_id'])
    op.create_index('ix_sales_store_date', 'sales', ['store_id', 'date'])

    # ============================================================================
    # Double-entry accounting
    # ============================================================================
    op.create_table(
        'chart_of_accounts',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('account_code', sa.String(length=16), nullable=False),
        sa.Column('account_name', sa.String(length=255), nullable=False),
        sa.Column('account_type', sa.String(length=16), nullable=False),
        sa.Column('account_category', sa.String(length=64), nullable=True),
        sa.Column('parent_account_id', sa.String(length=36), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['parent_account_id'], ['chart_of_accounts.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('account_code'),
    )

    op.create_table(
        'journal_entries',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('entry_date', sa.DateTime(), nullable=False),
        sa.Column('entry_number', sa.String(length=16), nullable=False),
        sa.Column('reference_type', sa.String(length=32), nullable=True),
        sa.Column('reference_id', sa.String(length=64), nullable=True),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('posted_by_user_id', sa.String(length=64), nullable=True),
        sa.Column('posted_by_user_name', sa.String(length=255), nullable=True),
        sa.Column('is_posted', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('entry_number'),
    )
    op.create_index('ix_journal_entries_entry_date', 'journal_entries', ['entry_date'])
    op.create_index('ix_journal_entries_reference', 'journal_entries', ['reference_type', 'reference_id'])

    op.create_table(
        'journal_entry_lines',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('journal_entry_id', sa.String(length=36), nullable=False),
        sa.Column('line_number', sa.Integer(), nullable=False),
        sa.Column('account_id', sa.String(length=36), nullable=False),
        sa.Column('account_code', sa.String(length=16), nullable=False),
        sa.Column('account_name', sa.String(length=255), nullable=False),
        sa.Column('debit', sa.Float(), nullable=False, server_default='0'),
        sa.Column('credit', sa.Float(), nullable=False, server_default='0'),
        sa.Column('description', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['journal_entry_id'], ['journal_entries.id'], ),
        sa.ForeignKeyConstraint(['account_id'], ['chart_of_accounts.id'], ),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_journal_entry_lines_journal_entry_id', 'journal_entry_lines', ['journal_entry_id'])
    op.create_index('ix_journal_entry_lines_account_id', 'journal_entry_lines', ['account_id'])

    op.create_table(
        'payroll',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('user_name', sa.String(length=255), nullable=False),
        sa.Column('base_salary', sa.Float(), nullable=False, server_default='0'),
        sa.Column('total_allowances', sa.Float(), nullable=False, server_default='0'),
        sa.Column('total_deductions', sa.Float(), nullable=False, server_default='0'),
        sa.Column('overtime_amount', sa.Float(), nullable=False, server_default='0'),
        sa.Column('net_salary', sa.Float(), nullable=False, server_default='0'),
        sa.Column('period_start', sa.DateTime(), nullable=False),
        sa.Column('period_end', sa.DateTime(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('approved_by_user_id', sa.String(length=64), nullable=True),
        sa.Column('approved_at', sa.DateTime(), nullable=True),
        sa.Column('paid_by_user_id', sa.String(length=64), nullable=True),
        sa.Column('paid_at', sa.DateTime(), nullable=True),
        sa.Column('journal_entry_id', sa.String(length=36), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['journal_entry_id'], ['journal_entries.id'], ),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_payroll_user_id', 'payroll', ['user_id'])
    op.create_index('ix_payroll_status', 'payroll', ['status'])


def downgrade():
    """Drop all tables (destructive operation)."""
    op.drop_table('payroll')
    op.drop_table('journal_entry_lines')
    op.drop_table('journal_entries')
    op.drop_table('chart_of_accounts')
    op.drop_table('sales')
    op.drop_table('customers')
    op.drop_table('payment_methods')
    op.drop_table('document_sequences')
    op.drop_table('transfers')
    op.drop_table('stock_adjustments')
    op.drop_table('grns')
    op.drop_table('purchase_orders')
    op.drop_table('inventory_history')
    op.drop_table('products')
    op.drop_table('suppliers')
    op.drop_table('categories')
    op.drop_table('stores')
