"""initial schema: product links, order links, jobs

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '0001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'product_links',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('bunjang_pid', sa.String(length=64), nullable=False),
        sa.Column('bunjang_product_name', sa.String(length=512), nullable=True),
        sa.Column('shopify_product_gid', sa.String(length=128), nullable=False),
        sa.Column('bunjang_quantity', sa.Integer(), nullable=True),
        sa.Column('sync_status', sa.String(length=16), nullable=False, server_default='PENDING'),
        sa.Column('sync_error', sa.Text(), nullable=True),
        sa.Column('last_inventory_sync_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('bunjang_updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text("timezone('utc', now())"), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text("timezone('utc', now())"), nullable=False),
    )
    op.create_index('ix_product_links_bunjang_pid', 'product_links', ['bunjang_pid'], unique=True)
    op.create_index('ix_product_links_shopify_product_gid', 'product_links', ['shopify_product_gid'])
    op.create_index('ix_product_links_sync_status', 'product_links', ['sync_status'])

    op.create_table(
        'marketplace_order_links',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('shopify_order_id', sa.String(length=64), nullable=False),
        sa.Column('shopify_order_gid', sa.String(length=128), nullable=False),
        sa.Column('line_item_id', sa.String(length=64), nullable=False),
        sa.Column('bunjang_pid', sa.String(length=64), nullable=False),
        sa.Column('bunjang_order_id', sa.String(length=64), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='claimed'),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('failure_tag', sa.String(length=128), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text("timezone('utc', now())"), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text("timezone('utc', now())"), nullable=False),
        sa.UniqueConstraint('shopify_order_id', 'line_item_id', name='uq_order_link_order_line_item'),
    )
    op.create_index('ix_marketplace_order_links_shopify_order_id', 'marketplace_order_links', ['shopify_order_id'])
    op.create_index('ix_marketplace_order_links_bunjang_pid', 'marketplace_order_links', ['bunjang_pid'])
    op.create_index('ix_marketplace_order_links_bunjang_order_id', 'marketplace_order_links', ['bunjang_order_id'])

    op.create_table(
        'jobs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('job_type', sa.String(length=64), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='queued'),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('result', sa.JSON(), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('max_attempts', sa.Integer(), nullable=False, server_default='3'),
        sa.Column('run_after', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_attempt_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text("timezone('utc', now())"), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text("timezone('utc', now())"), nullable=False),
    )
    op.create_index('ix_jobs_job_type', 'jobs', ['job_type'])
    op.create_index('ix_jobs_status', 'jobs', ['status'])
    op.create_index('ix_jobs_run_after', 'jobs', ['run_after'])


def downgrade() -> None:
    op.drop_table('jobs')
    op.drop_table('marketplace_order_links')
    op.drop_table('product_links')
