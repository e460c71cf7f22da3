"""Core schema: receipts, items, preferences, corrections, budget ledger

Revision ID: 001_core_schema
Revises:
Create Date: 2025-03-01 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001_core_schema'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Receipts (created by the OCR step; this service fills status and counters)
    op.create_table(
        'receipts',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('merchant_name', sa.Text),
        sa.Column('total_amount', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('purchase_date', sa.Date),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending',
                  comment='pending, processing, completed, failed'),
        sa.Column('auto_processed', sa.Boolean, nullable=False, server_default='false'),
        sa.Column('requires_review', sa.Boolean, nullable=False, server_default='true'),
        sa.Column('auto_categorized_count', sa.Integer, nullable=False, server_default='0'),
        sa.Column('manual_review_count', sa.Integer, nullable=False, server_default='0'),
        sa.Column('reviewed_at', sa.TIMESTAMP(timezone=True)),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text('NOW()')),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text('NOW()')),
    )
    op.create_index('idx_receipts_user_status', 'receipts', ['user_id', 'status', 'created_at'])

    # Receipt items, one row per line; upserted by line number so retries overwrite
    op.create_table(
        'receipt_items',
        sa.Column('id', sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column('receipt_id', sa.String(64), sa.ForeignKey('receipts.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('line_number', sa.Integer, nullable=False),
        sa.Column('name', sa.Text, nullable=False),
        sa.Column('quantity', sa.Numeric(12, 3), nullable=False, server_default='1'),
        sa.Column('price', sa.Numeric(12, 2), nullable=False),
        sa.Column('category', sa.String(32)),
        sa.Column('confidence_score', sa.Numeric(4, 3)),
        sa.Column('categorization_method', sa.String(32)),
        sa.Column('normalized_name', sa.Text),
        sa.Column('master_product_id', sa.Integer),
        sa.Column('auto_categorized', sa.Boolean, nullable=False, server_default='false'),
        sa.Column('requires_review', sa.Boolean, nullable=False, server_default='true'),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text('NOW()')),
    )
    op.create_unique_constraint('uq_receipt_items_line', 'receipt_items', ['receipt_id', 'line_number'])
    op.create_index('idx_receipt_items_user_category', 'receipt_items', ['user_id', 'category'])

    # Auto-processing preferences; absent row means defaults
    op.create_table(
        'user_preferences',
        sa.Column('user_id', sa.String(64), primary_key=True),
        sa.Column('auto_process_receipts', sa.Boolean, nullable=False, server_default='true'),
        sa.Column('confidence_threshold', sa.Numeric(3, 2), nullable=False, server_default='0.70'),
        sa.Column('always_review', sa.Boolean, nullable=False, server_default='false'),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text('NOW()')),
        sa.CheckConstraint('confidence_threshold BETWEEN 0.50 AND 0.95', name='ck_user_preferences_threshold'),
    )

    # User category overrides; latest row per (user, normalized_name) wins
    op.create_table(
        'categorization_corrections',
        sa.Column('id', sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('product_name', sa.Text, nullable=False, comment='Name as the user saw it'),
        sa.Column('normalized_name', sa.Text, nullable=False, comment='Lookup key'),
        sa.Column('category_id', sa.String(32), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text('NOW()')),
    )
    op.create_index(
        'idx_corrections_user_name_created',
        'categorization_corrections',
        ['user_id', 'normalized_name', sa.text('created_at DESC')],
    )

    # Monthly spend per category
    op.create_table(
        'budget_categories',
        sa.Column('id', sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('category', sa.String(32), nullable=False),
        sa.Column('month', sa.Date, nullable=False, comment='First day of the month'),
        sa.Column('budget_limit', sa.Numeric(12, 2)),
        sa.Column('spent', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text('NOW()')),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text('NOW()')),
    )
    op.create_unique_constraint('uq_budget_categories_month', 'budget_categories', ['user_id', 'category', 'month'])

    # One row per (receipt, category) already added to budget_categories
    op.create_table(
        'budget_ledger_applications',
        sa.Column('receipt_id', sa.String(64), nullable=False),
        sa.Column('category', sa.String(32), nullable=False),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('month', sa.Date, nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('applied_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text('NOW()')),
        sa.PrimaryKeyConstraint('receipt_id', 'category', name='pk_budget_ledger_applications'),
    )


def downgrade() -> None:
    op.drop_table('budget_ledger_applications')
    op.drop_table('budget_categories')
    op.drop_index('idx_corrections_user_name_created', table_name='categorization_corrections')
    op.drop_table('categorization_corrections')
    op.drop_table('user_preferences')
    op.drop_table('receipt_items')
    op.drop_index('idx_receipts_user_status', table_name='receipts')
    op.drop_table('receipts')
