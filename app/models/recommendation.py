"""
Campaign Recommendation Model

One recommendation per (brand, campaign, week). ``week_identifier`` is the
Monday of the server-time week the recommendation was generated in.
"""
from sqlalchemy import Column, Integer, String, DateTime, JSON, UniqueConstraint
from datetime import datetime

from app.models.base import Base


class CampaignRecommendation(Base):
    __tablename__ = "campaign_recommendations"

    id = Column(Integer, primary_key=True, index=True)
    brand_id = Column(String, index=True, nullable=False)
    campaign_id = Column(String, index=True, nullable=False)
    week_identifier = Column(String(10), index=True, nullable=False)  # YYYY-MM-DD (Monday)

    action = Column(String, nullable=False)
    confidence = Column(Integer, nullable=True)
    source = Column(String, nullable=False, default="rules")  # llm, rules
    payload = Column(JSON, nullable=False)  # full recommendation + metrics + anomalies

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint('brand_id', 'campaign_id', 'week_identifier', name='uq_campaign_recommendation_week'),
    )
