"""Create discounts, voucher_codes and discount_usages tables

Revision ID: d001_create_discount_tables
Revises:
Create Date: 2026-10-19

This migration creates the tables for discount management:
- discounts: sales and vouchers with limits and validity windows
- voucher_codes: redeemable codes attached to a voucher
- discount_usages: append-only redemption ledger
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = 'd001_create_discount_tables'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'discounts',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('tenant_id', sa.String(), nullable=False),
        sa.Column('code', sa.String(50), nullable=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('kind', sa.String(20), nullable=False, server_default='voucher'),
        sa.Column('type', sa.String(20), nullable=False, server_default='percentage'),
        sa.Column('value', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('scope', sa.String(30), nullable=False, server_default='entire_order'),
        sa.Column('apply_once_per_order', sa.Boolean(), nullable=False, server_default=sa.false()),

        # Minimum requirements
        sa.Column('min_order_amount', sa.Numeric(10, 2), nullable=True),
        sa.Column('min_quantity', sa.Integer(), nullable=True),

        # Usage limits
        sa.Column('usage_limit', sa.Integer(), nullable=True),
        sa.Column('used_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('apply_once_per_customer', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('max_uses_per_customer', sa.Integer(), nullable=True),
        sa.Column('only_for_staff', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('single_use', sa.Boolean(), nullable=False, server_default=sa.false()),

        # Validity window
        sa.Column('starts_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('ends_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),

        # Applicability
        sa.Column('applicable_product_ids', sa.JSON(), nullable=True),
        sa.Column('applicable_collection_ids', sa.JSON(), nullable=True),
        sa.Column('applicable_category_ids', sa.JSON(), nullable=True),
        sa.Column('applicable_variant_ids', sa.JSON(), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),

        # Timestamps
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),

        # NULL codes (sales without a code) do not collide
        sa.UniqueConstraint('tenant_id', 'code', name='uq_discounts_tenant_code'),
    )
    op.create_index('ix_discounts_tenant_id', 'discounts', ['tenant_id'])
    op.create_index('idx_discounts_tenant_kind', 'discounts', ['tenant_id', 'kind'])
    op.create_index('idx_discounts_tenant_active', 'discounts', ['tenant_id', 'is_active'])

    op.create_table(
        'voucher_codes',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('tenant_id', sa.String(), nullable=False),
        sa.Column('discount_id', sa.String(), sa.ForeignKey('discounts.id', ondelete='CASCADE'), nullable=False),
        sa.Column('code', sa.String(50), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        sa.Column('used_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('usage_limit', sa.Integer(), nullable=True),
        sa.Column('is_manually_created', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('used_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('tenant_id', 'code', name='uq_voucher_codes_tenant_code'),
    )
    op.create_index('ix_voucher_codes_tenant_id', 'voucher_codes', ['tenant_id'])
    op.create_index('ix_voucher_codes_discount_id', 'voucher_codes', ['discount_id'])
    op.create_index('idx_voucher_codes_discount_status', 'voucher_codes', ['discount_id', 'status'])

    op.create_table(
        'discount_usages',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('tenant_id', sa.String(), nullable=False),
        sa.Column('discount_id', sa.String(), sa.ForeignKey('discounts.id', ondelete='CASCADE'), nullable=False),
        sa.Column('voucher_code_id', sa.String(), sa.ForeignKey('voucher_codes.id', ondelete='SET NULL'), nullable=True),
        sa.Column('customer_id', sa.String(), nullable=True),
        sa.Column('order_id', sa.String(), nullable=True),
        sa.Column('discount_amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('used_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_discount_usages_tenant_id', 'discount_usages', ['tenant_id'])
    op.create_index('ix_discount_usages_discount_id', 'discount_usages', ['discount_id'])
    op.create_index('ix_discount_usages_voucher_code_id', 'discount_usages', ['voucher_code_id'])
    op.create_index('ix_discount_usages_customer_id', 'discount_usages', ['customer_id'])
    op.create_index('ix_discount_usages_order_id', 'discount_usages', ['order_id'])


def downgrade() -> None:
    op.drop_table('discount_usages')
    op.drop_table('voucher_codes')
    op.drop_table('discounts')
