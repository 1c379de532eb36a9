"""add_meta_and_shopify_tables

Revision ID: a1c0e7d4f2b9
Revises:
Create Date: 2026-10-05

Meta campaign / ad set / ad snapshots, daily insight rows and storefront orders.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'a1c0e7d4f2b9'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create Meta and Shopify tables."""
    op.create_table(
        'meta_campaigns',
        sa.Column('id', sa.Integer(), primary_key=True, index=True),
        sa.Column('brand_id', sa.String(), nullable=False, index=True),
        sa.Column('campaign_id', sa.String(), nullable=False, index=True),
        sa.Column('campaign_name', sa.String(), nullable=True),
        sa.Column('objective', sa.String(), nullable=True),
        sa.Column('status', sa.String(), index=True),

        # Lifetime totals as of the last sync
        sa.Column('budget', sa.Float()),
        sa.Column('budget_type', sa.String(), nullable=True),
        sa.Column('spent', sa.Float()),
        sa.Column('impressions', sa.Integer()),
        sa.Column('clicks', sa.Integer()),
        sa.Column('conversions', sa.Float()),
        sa.Column('revenue', sa.Float()),
        sa.Column('ctr', sa.Float(), nullable=True),
        sa.Column('cpc', sa.Float(), nullable=True),
        sa.Column('roas', sa.Float(), nullable=True),

        sa.Column('synced_at', sa.DateTime()),
        sa.UniqueConstraint('brand_id', 'campaign_id', name='uq_meta_campaign_brand_campaign'),
    )

    op.create_table(
        'meta_adsets',
        sa.Column('id', sa.Integer(), primary_key=True, index=True),
        sa.Column('brand_id', sa.String(), nullable=False, index=True),
        sa.Column('campaign_id', sa.String(), nullable=False, index=True),
        sa.Column('adset_id', sa.String(), nullable=False, index=True),
        sa.Column('adset_name', sa.String(), nullable=True),
        sa.Column('status', sa.String(), index=True),
        sa.Column('budget', sa.Float()),
        sa.Column('spent', sa.Float()),
        sa.Column('impressions', sa.Integer()),
        sa.Column('clicks', sa.Integer()),
        sa.Column('conversions', sa.Float()),
        sa.Column('ctr', sa.Float(), nullable=True),
        sa.Column('cpc', sa.Float(), nullable=True),
        sa.Column('roas', sa.Float(), nullable=True),
        sa.Column('targeting_expansion', sa.String(), nullable=True),
        sa.Column('synced_at', sa.DateTime()),
    )

    op.create_table(
        'meta_ads',
        sa.Column('id', sa.Integer(), primary_key=True, index=True),
        sa.Column('brand_id', sa.String(), nullable=False, index=True),
        sa.Column('campaign_id', sa.String(), nullable=False, index=True),
        sa.Column('adset_id', sa.String(), nullable=True, index=True),
        sa.Column('ad_id', sa.String(), nullable=False, index=True),
        sa.Column('ad_name', sa.String(), nullable=True),
        sa.Column('status', sa.String(), index=True),
        sa.Column('spent', sa.Float()),
        sa.Column('impressions', sa.Integer()),
        sa.Column('clicks', sa.Integer()),
        sa.Column('conversions', sa.Float()),
        sa.Column('ctr', sa.Float(), nullable=True),
        sa.Column('cpc', sa.Float(), nullable=True),
        sa.Column('roas', sa.Float(), nullable=True),
        sa.Column('synced_at', sa.DateTime()),
    )

    # No uniqueness: repeated sync passes may write the same ad/day
    op.create_table(
        'meta_ad_insights',
        sa.Column('id', sa.Integer(), primary_key=True, index=True),
        sa.Column('brand_id', sa.String(), nullable=False, index=True),
        sa.Column('date', sa.Date(), nullable=False, index=True),
        sa.Column('ad_id', sa.String(), nullable=False, index=True),
        sa.Column('adset_id', sa.String(), nullable=True),
        sa.Column('campaign_id', sa.String(), nullable=True, index=True),
        sa.Column('spent', sa.Float(), nullable=True),
        sa.Column('impressions', sa.Integer()),
        sa.Column('clicks', sa.Integer()),
        sa.Column('reach', sa.Integer()),
        sa.Column('actions', sa.JSON(), nullable=True),
        sa.Column('action_values', sa.JSON(), nullable=True),
        sa.Column('synced_at', sa.DateTime()),
    )
    op.create_index(
        'ix_meta_ad_insights_brand_date',
        'meta_ad_insights',
        ['brand_id', 'date']
    )

    op.create_table(
        'meta_daily_stats',
        sa.Column('id', sa.Integer(), primary_key=True, index=True),
        sa.Column('brand_id', sa.String(), nullable=False, index=True),
        sa.Column('level', sa.String(), nullable=False, index=True),
        sa.Column('entity_id', sa.String(), nullable=False, index=True),
        sa.Column('entity_name', sa.String(), nullable=True),
        sa.Column('campaign_id', sa.String(), nullable=True, index=True),
        sa.Column('date', sa.Date(), nullable=False, index=True),
        sa.Column('spend', sa.Float()),
        sa.Column('impressions', sa.Integer()),
        sa.Column('clicks', sa.Integer()),
        sa.Column('reach', sa.Integer()),
        sa.Column('conversions', sa.Float()),
        sa.Column('revenue', sa.Float()),
        sa.Column('ctr', sa.Float(), nullable=True),
        sa.Column('cpc', sa.Float(), nullable=True),
        sa.Column('roas', sa.Float(), nullable=True),
        sa.UniqueConstraint('brand_id', 'level', 'entity_id', 'date', name='uq_meta_daily_stat_entity_date'),
    )

    op.create_table(
        'shopify_orders',
        sa.Column('id', sa.Integer(), primary_key=True, index=True),
        sa.Column('brand_id', sa.String(), nullable=False, index=True),
        sa.Column('shopify_order_id', sa.String(), nullable=False, index=True),
        sa.Column('financial_status', sa.String(), index=True),
        sa.Column('currency', sa.String()),
        sa.Column('total_price', sa.Numeric(10, 2)),
        sa.Column('created_at', sa.DateTime(), nullable=False, index=True),
        sa.Column('cancelled_at', sa.DateTime(), nullable=True),
        sa.Column('synced_at', sa.DateTime()),
    )


def downgrade() -> None:
    """Drop Meta and Shopify tables."""
    op.drop_table('shopify_orders')
    op.drop_table('meta_daily_stats')
    op.drop_index('ix_meta_ad_insights_brand_date', table_name='meta_ad_insights')
    op.drop_table('meta_ad_insights')
    op.drop_table('meta_ads')
    op.drop_table('meta_adsets')
    op.drop_table('meta_campaigns')
