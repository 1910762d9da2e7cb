"""Checkout schema: order fragments, order keys and invoice artifacts.

Revision ID: 001_checkout
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '001_checkout'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ### Order collection fragments ###
    op.create_table(
        'order_collections',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.String(255), nullable=False),
        sa.Column('orders', postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), onupdate=sa.func.now()),
    )
    op.create_index('ix_order_collections_user_id', 'order_collections', ['user_id'])

    # ### Order keys (one row per checkout session) ###
    op.create_table(
        'order_keys',
        sa.Column('order_id', sa.String(255), primary_key=True),
        sa.Column('user_id', sa.String(255), nullable=False),
        sa.Column('payment_intent_id', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_order_keys_user_id', 'order_keys', ['user_id'])
    op.create_index('ix_order_keys_payment_intent_id', 'order_keys', ['payment_intent_id'])

    # ### Invoice artifacts ###
    op.create_table(
        'invoice_artifacts',
        sa.Column('order_id', sa.String(255), primary_key=True),
        sa.Column('file_name', sa.String(255), nullable=True),
        sa.Column('storage_path', sa.Text(), nullable=True),
        sa.Column('status', sa.String(50), nullable=False, server_default='pending'),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), onupdate=sa.func.now()),
    )
    op.create_index('ix_invoice_artifacts_status', 'invoice_artifacts', ['status'])


def downgrade() -> None:
    op.drop_index('ix_invoice_artifacts_status', table_name='invoice_artifacts')
    op.drop_table('invoice_artifacts')
    op.drop_index('ix_order_keys_payment_intent_id', table_name='order_keys')
    op.drop_index('ix_order_keys_user_id', table_name='order_keys')
    op.drop_table('order_keys')
    op.drop_index('ix_order_collections_user_id', table_name='order_collections')
    op.drop_table('order_collections')
