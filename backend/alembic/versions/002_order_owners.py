"""Per-user owner rows that serialize writes to order fragments.

Revision ID: 002_order_owners
Revises: 001_checkout
Create Date: 2026-10-19

"""
from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '002_order_owners'
down_revision: Union[str, None] = '001_checkout'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'order_owners',
        sa.Column('user_id', sa.String(255), primary_key=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    # One row per user that already has fragments
    op.execute(
        "INSERT INTO order_owners (user_id) "
        "SELECT DISTINCT user_id FROM order_collections "
        "ON CONFLICT DO NOTHING"
    )


def downgrade() -> None:
    op.drop_table('order_owners')
