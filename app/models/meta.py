"""
Meta Ads Data Models

Campaign / ad set / ad records and their daily insight rows as synced from
the Marketing API. Ad-level insight rows may overlap (repeated syncs, an
account-level rollup row) and are de-duplicated at read time.
"""
from sqlalchemy import Column, Integer, String, Float, DateTime, JSON, Date, Index, UniqueConstraint
from datetime import datetime

from app.models.base import Base


class MetaCampaign(Base):
    """Campaign snapshot (lifetime totals as of the last sync)"""
    __tablename__ = "meta_campaigns"

    id = Column(Integer, primary_key=True, index=True)
    brand_id = Column(String, index=True, nullable=False)
    campaign_id = Column(String, index=True, nullable=False)
    campaign_name = Column(String, nullable=True)
    objective = Column(String, nullable=True)
    status = Column(String, index=True, default="ACTIVE")  # ACTIVE, PAUSED, ARCHIVED

    budget = Column(Float, default=0)
    budget_type = Column(String, nullable=True)  # daily, lifetime
    spent = Column(Float, default=0)
    impressions = Column(Integer, default=0)
    clicks = Column(Integer, default=0)
    conversions = Column(Float, default=0)
    revenue = Column(Float, default=0)
    ctr = Column(Float, nullable=True)  # percent
    cpc = Column(Float, nullable=True)
    roas = Column(Float, nullable=True)

    synced_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint('brand_id', 'campaign_id', name='uq_meta_campaign_brand_campaign'),
    )


class MetaAdSet(Base):
    __tablename__ = "meta_adsets"

    id = Column(Integer, primary_key=True, index=True)
    brand_id = Column(String, index=True, nullable=False)
    campaign_id = Column(String, index=True, nullable=False)
    adset_id = Column(String, index=True, nullable=False)
    adset_name = Column(String, nullable=True)
    status = Column(String, index=True, default="ACTIVE")

    budget = Column(Float, default=0)
    spent = Column(Float, default=0)
    impressions = Column(Integer, default=0)
    clicks = Column(Integer, default=0)
    conversions = Column(Float, default=0)
    ctr = Column(Float, nullable=True)
    cpc = Column(Float, nullable=True)
    roas = Column(Float, nullable=True)
    targeting_expansion = Column(String, nullable=True)

    synced_at = Column(DateTime, default=datetime.utcnow)


class MetaAd(Base):
    __tablename__ = "meta_ads"

    id = Column(Integer, primary_key=True, index=True)
    brand_id = Column(String, index=True, nullable=False)
    campaign_id = Column(String, index=True, nullable=False)
    adset_id = Column(String, index=True, nullable=True)
    ad_id = Column(String, index=True, nullable=False)
    ad_name = Column(String, nullable=True)
    status = Column(String, index=True, default="ACTIVE")

    spent = Column(Float, default=0)
    impressions = Column(Integer, default=0)
    clicks = Column(Integer, default=0)
    conversions = Column(Float, default=0)
    ctr = Column(Float, nullable=True)
    cpc = Column(Float, nullable=True)
    roas = Column(Float, nullable=True)

    synced_at = Column(DateTime, default=datetime.utcnow)


class MetaAdInsight(Base):
    """
    Raw daily ad-level insight row.

    ``spent`` is NULL until the row has been synced with spend; 0 is a real
    zero. ``ad_id`` is ``account_level_data`` for the account rollup row.
    No uniqueness constraint: the same ad/day can be written by several
    sync passes.
    """
    __tablename__ = "meta_ad_insights"

    id = Column(Integer, primary_key=True, index=True)
    brand_id = Column(String, index=True, nullable=False)
    date = Column(Date, index=True, nullable=False)
    ad_id = Column(String, index=True, nullable=False)
    adset_id = Column(String, nullable=True)
    campaign_id = Column(String, index=True, nullable=True)

    spent = Column(Float, nullable=True)
    impressions = Column(Integer, default=0)
    clicks = Column(Integer, default=0)
    reach = Column(Integer, default=0)
    actions = Column(JSON, nullable=True)  # [{"action_type": "purchase", "value": "2"}]
    action_values = Column(JSON, nullable=True)

    synced_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index('ix_meta_ad_insights_brand_date', 'brand_id', 'date'),
    )


class MetaDailyStat(Base):
    """
    Daily stats per campaign / ad set / ad, one row per entity per day.

    Campaign-level rows double as the secondary source when ad-level
    insights come back all zero for a range.
    """
    __tablename__ = "meta_daily_stats"

    id = Column(Integer, primary_key=True, index=True)
    brand_id = Column(String, index=True, nullable=False)
    level = Column(String, index=True, nullable=False)  # campaign, adset, ad
    entity_id = Column(String, index=True, nullable=False)
    entity_name = Column(String, nullable=True)
    campaign_id = Column(String, index=True, nullable=True)
    date = Column(Date, index=True, nullable=False)

    spend = Column(Float, default=0)
    impressions = Column(Integer, default=0)
    clicks = Column(Integer, default=0)
    reach = Column(Integer, default=0)
    conversions = Column(Float, default=0)
    revenue = Column(Float, default=0)
    ctr = Column(Float, nullable=True)
    cpc = Column(Float, nullable=True)
    roas = Column(Float, nullable=True)

    __table_args__ = (
        UniqueConstraint('brand_id', 'level', 'entity_id', 'date', name='uq_meta_daily_stat_entity_date'),
    )
