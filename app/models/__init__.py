"""Database models for the brand ads analytics service"""

from app.models.meta import (
    MetaCampaign,
    MetaAdSet,
    MetaAd,
    MetaAdInsight,
    MetaDailyStat
)

from app.models.shopify import ShopifyOrder

from app.models.recommendation import CampaignRecommendation
