"""add_campaign_recommendations

Revision ID: b2d1f8e5a3c0
Revises: a1c0e7d4f2b9
Create Date: 2026-10-12

Weekly campaign recommendations. The unique constraint is the weekly gate:
a second insert for the same brand/campaign/week fails.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'b2d1f8e5a3c0'
down_revision: Union[str, Sequence[str], None] = 'a1c0e7d4f2b9'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'campaign_recommendations',
        sa.Column('id', sa.Integer(), primary_key=True, index=True),
        sa.Column('brand_id', sa.String(), nullable=False, index=True),
        sa.Column('campaign_id', sa.String(), nullable=False, index=True),
        sa.Column('week_identifier', sa.String(10), nullable=False, index=True),
        sa.Column('action', sa.String(), nullable=False),
        sa.Column('confidence', sa.Integer(), nullable=True),
        sa.Column('source', sa.String(), nullable=False, server_default='rules'),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('brand_id', 'campaign_id', 'week_identifier', name='uq_campaign_recommendation_week'),
    )


def downgrade() -> None:
    op.drop_table('campaign_recommendations')
