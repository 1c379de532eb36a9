"""
Shopify Data Models

Storefront orders. Order revenue is reported next to Meta-attributed revenue,
never merged into ROAS.
"""
from sqlalchemy import Column, Integer, String, DateTime, Numeric
from datetime import datetime

from app.models.base import Base


class ShopifyOrder(Base):
    """Shopify order as synced from the Admin API"""
    __tablename__ = "shopify_orders"

    id = Column(Integer, primary_key=True, index=True)
    brand_id = Column(String, index=True, nullable=False)
    shopify_order_id = Column(String, index=True, nullable=False)

    financial_status = Column(String, index=True)  # paid, pending, refunded, partially_refunded, voided
    currency = Column(String, default='USD')
    total_price = Column(Numeric(10, 2), default=0)

    created_at = Column(DateTime, index=True, nullable=False)
    cancelled_at = Column(DateTime, nullable=True)
    synced_at = Column(DateTime, default=datetime.utcnow)
