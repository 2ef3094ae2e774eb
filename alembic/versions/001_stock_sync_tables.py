"""Stock sync tables: ledger, change log and alerts

Revision ID: 001_stock_sync_tables
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001_stock_sync_tables'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'stock_sync',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('remote_item_id', sa.String(length=100), nullable=True),
        sa.Column('local_quantity', sa.Integer(), nullable=False),
        sa.Column('remote_quantity', sa.Integer(), nullable=False),
        sa.Column('sync_status', sa.String(length=20), nullable=False),
        sa.Column('last_sync_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_stock_sync_product_id', 'stock_sync', ['product_id'], unique=True)
    op.create_index('ix_stock_sync_remote_item_id', 'stock_sync', ['remote_item_id'])
    op.create_index('ix_stock_sync_sync_status', 'stock_sync', ['sync_status'])

    op.create_table(
        'stock_change_log',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('old_quantity', sa.Integer(), nullable=False),
        sa.Column('new_quantity', sa.Integer(), nullable=False),
        sa.Column('source', sa.String(length=10), nullable=False),
        sa.Column('sync_run_id', sa.String(length=36), nullable=True),
        sa.Column('changed_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_stock_change_log_product_id', 'stock_change_log', ['product_id'])
    op.create_index('ix_stock_change_log_sync_run_id', 'stock_change_log', ['sync_run_id'])
    op.create_index('ix_stock_change_log_changed_at', 'stock_change_log', ['changed_at'])

    op.create_table(
        'stock_alerts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('alert_type', sa.String(length=20), nullable=False),
        sa.Column('threshold', sa.Integer(), nullable=False),
        sa.Column('stock_level', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('last_triggered_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('notification_sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_stock_alerts_product_id', 'stock_alerts', ['product_id'])
    op.create_index('ix_stock_alerts_status', 'stock_alerts', ['status'])
    op.create_index(
        'uq_stock_alerts_open_product_type',
        'stock_alerts',
        ['product_id', 'alert_type'],
        unique=True,
        postgresql_where=sa.text("status <> 'dismissed'")
    )


def downgrade() -> None:
    op.drop_index('uq_stock_alerts_open_product_type', table_name='stock_alerts')
    op.drop_index('ix_stock_alerts_status', table_name='stock_alerts')
    op.drop_index('ix_stock_alerts_product_id', table_name='stock_alerts')
    op.drop_table('stock_alerts')

    op.drop_index('ix_stock_change_log_changed_at', table_name='stock_change_log')
    op.drop_index('ix_stock_change_log_sync_run_id', table_name='stock_change_log')
    op.drop_index('ix_stock_change_log_product_id', table_name='stock_change_log')
    op.drop_table('stock_change_log')

    op.drop_index('ix_stock_sync_sync_status', table_name='stock_sync')
    op.drop_index('ix_stock_sync_remote_item_id', table_name='stock_sync')
    op.drop_index('ix_stock_sync_product_id', table_name='stock_sync')
    op.drop_table('stock_sync')
