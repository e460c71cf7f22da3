"""Master-product catalog: retailers, master products, aliases, price history

Revision ID: 002_product_catalog
Revises: 001_core_schema
Create Date: 2025-03-08 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '002_product_catalog'
down_revision = '001_core_schema'
branch_labels = None
depends_on = None


RETAILERS = ['Lidl', 'Kaufland', 'Billa', 'Fantastico', 'Metro', 'T-Market']


def upgrade() -> None:
    op.create_table(
        'retailers',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('name', sa.Text, nullable=False, unique=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text('NOW()')),
    )

    op.create_table(
        'master_products',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('normalized_name', sa.Text, nullable=False, unique=True, comment='Canonical key from the normalizer'),
        sa.Column('display_name', sa.Text, nullable=False),
        sa.Column('category_id', sa.String(32)),
        sa.Column('brand', sa.Text),
        sa.Column('size', sa.Numeric(10, 3)),
        sa.Column('unit', sa.String(8)),
        sa.Column('fat_content', sa.Numeric(5, 2)),
        sa.Column('product_type', sa.Text),
        sa.Column('barcode', sa.String(32)),
        sa.Column('keywords', postgresql.ARRAY(sa.Text), nullable=False, server_default='{}'),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text('NOW()')),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text('NOW()')),
    )
    op.create_index('idx_master_products_category_updated', 'master_products', ['category_id', 'updated_at'])

    op.create_table(
        'product_aliases',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('master_product_id', sa.Integer,
                  sa.ForeignKey('master_products.id', ondelete='CASCADE'), nullable=False),
        sa.Column('retailer_id', sa.Integer, sa.ForeignKey('retailers.id', ondelete='CASCADE'), nullable=False),
        sa.Column('alias_name', sa.Text, nullable=False, comment='Raw name as printed by this retailer'),
        sa.Column('barcode', sa.String(32)),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text('NOW()')),
    )
    op.create_unique_constraint('uq_product_aliases_retailer_name', 'product_aliases', ['retailer_id', 'alias_name'])

    op.create_table(
        'price_history',
        sa.Column('id', sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column('master_product_id', sa.Integer,
                  sa.ForeignKey('master_products.id', ondelete='CASCADE'), nullable=False),
        sa.Column('retailer_id', sa.Integer, sa.ForeignKey('retailers.id', ondelete='CASCADE'), nullable=False),
        sa.Column('unit_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('total_price', sa.Numeric(12, 2)),
        sa.Column('quantity', sa.Numeric(12, 3), nullable=False, server_default='1'),
        sa.Column('currency', sa.String(3), nullable=False, server_default='BGN'),
        sa.Column('seen_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text('NOW()')),
        sa.Column('receipt_id', sa.String(64)),
        sa.Column('location', sa.Text),
    )
    op.create_index('idx_price_history_product_seen', 'price_history', ['master_product_id', 'seen_at'])

    retailers = sa.table('retailers', sa.column('name', sa.Text))
    op.bulk_insert(retailers, [{'name': name} for name in RETAILERS])


def downgrade() -> None:
    op.drop_index('idx_price_history_product_seen', table_name='price_history')
    op.drop_table('price_history')
    op.drop_table('product_aliases')
    op.drop_index('idx_master_products_category_updated', table_name='master_products')
    op.drop_table('master_products')
    op.drop_table('retailers')
