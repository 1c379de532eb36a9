"""
Meta Metrics Service

Brand-level Meta Ads summary for a date range: de-duplicated daily rows,
totals, ratios, growth, storefront revenue alongside platform revenue, and
data-quality warnings.
"""
from datetime import date, datetime, time, timedelta
from typing import Dict, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import get_settings
from app.models.meta import MetaAdInsight, MetaDailyStat
from app.models.shopify import ShopifyOrder
from app.services import metric_ratios
from app.services.meta_aggregation import aggregate_with_fallback, empty_summary, summarize_days
from app.utils.dates import SERVER_LOCAL, local_day_string
from app.utils.response_cache import ResponseCache
from app.utils.logger import log

settings = get_settings()

EXCLUDED_ORDER_STATUSES = ("voided", "refunded")


class MetaMetricsService:
    """Service for brand-level Meta Ads metrics"""

    def __init__(self, db: Session, cache: Optional[ResponseCache] = None):
        self.db = db
        self.cache = cache

    def get_brand_metrics(
        self,
        brand_id: str,
        from_date: date,
        to_date: date,
        user_timezone: Optional[str] = None,
        now: Optional[datetime] = None,
        bypass_cache: bool = False,
    ) -> Dict:
        """
        Summary for [from_date, to_date] inclusive.

        Cached per brand + range until the TTL runs out or the user's local
        day rolls over, whichever comes first. Data-store failures return a
        zeroed summary with a ``notice``; those are never cached.
        """
        now = now or datetime.now()
        tz_name = user_timezone or settings.default_timezone or SERVER_LOCAL
        key = f"meta:{brand_id}:{from_date.isoformat()}:{to_date.isoformat()}:{tz_name}"

        try:
            if bypass_cache or self.cache is None:
                summary = self._compute(brand_id, from_date, to_date)
            else:
                summary = self.cache.get_or_compute(
                    key,
                    lambda: self._compute(brand_id, from_date, to_date),
                    ttl=settings.metrics_cache_ttl_seconds,
                    boundary_fn=lambda: local_day_string(now, tz_name),
                )
        except SQLAlchemyError as e:
            log.error(f"Error loading Meta metrics for brand {brand_id}: {str(e)}")
            summary = empty_summary()
            summary.update(metric_ratios.revenue_summary(0, 0))
            summary["warnings"] = []
            summary["source"] = None
            summary["notice"] = "Meta data could not be loaded right now. Showing zeros until the data source recovers."

        result = dict(summary)
        result["_date_range"] = {
            "from": from_date.isoformat(),
            "to": to_date.isoformat(),
            "timezone": tz_name,
            "local_day": local_day_string(now, tz_name),
        }
        return result

    def _compute(self, brand_id: str, from_date: date, to_date: date) -> Dict:
        insights = self.db.query(MetaAdInsight).filter(
            MetaAdInsight.brand_id == brand_id,
            MetaAdInsight.date >= from_date,
            MetaAdInsight.date <= to_date,
        ).all()
        campaign_stats = self.db.query(MetaDailyStat).filter(
            MetaDailyStat.brand_id == brand_id,
            MetaDailyStat.level == "campaign",
            MetaDailyStat.date >= from_date,
            MetaDailyStat.date <= to_date,
        ).all()

        aggregation = aggregate_with_fallback(insights, campaign_stats)
        summary = summarize_days(aggregation.days)

        storefront = self._storefront_revenue(brand_id, from_date, to_date)
        summary.update(metric_ratios.revenue_summary(summary["spend"], summary["revenue"], storefront))
        summary["source"] = aggregation.source
        summary["warnings"] = self._warnings(summary, aggregation.fallback_reason)

        log.info(
            f"Meta metrics for {brand_id} {from_date}..{to_date}: "
            f"{len(aggregation.days)} days, spend ${summary['spend']:,.2f}, ROAS {summary['roas']:.2f}x"
        )
        return summary

    def _storefront_revenue(self, brand_id: str, from_date: date, to_date: date) -> Optional[float]:
        """Shopify order revenue for the range, None when the brand has no orders synced"""
        start = datetime.combine(from_date, time.min)
        end = datetime.combine(to_date + timedelta(days=1), time.min)
        total, count = self.db.query(
            func.coalesce(func.sum(ShopifyOrder.total_price), 0),
            func.count(ShopifyOrder.id),
        ).filter(
            ShopifyOrder.brand_id == brand_id,
            ShopifyOrder.created_at >= start,
            ShopifyOrder.created_at < end,
            ShopifyOrder.cancelled_at.is_(None),
            or_(
                ShopifyOrder.financial_status.is_(None),
                ShopifyOrder.financial_status.notin_(EXCLUDED_ORDER_STATUSES),
            ),
        ).one()
        if not count:
            return None
        return float(total)

    def _warnings(self, summary: Dict, fallback_reason: Optional[str]) -> List[Dict]:
        warnings = metric_ratios.validate_metrics(summary["spend"], summary["revenue"], summary["roas"])
        if fallback_reason:
            warnings.append({
                "type": "secondary_source_fallback",
                "severity": "warning",
                "message": fallback_reason,
            })
        if summary.get("has_missing_spend"):
            warnings.append({
                "type": "missing_spend",
                "severity": "warning",
                "message": "Some days have ad rows without spend synced yet. Totals may be understated.",
            })
        return warnings
