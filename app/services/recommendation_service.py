"""
Campaign Recommendation Service

Weekly-gated campaign recommendations. Answers: "What should I change on this
campaign this week?"

Pipeline: weekly gate -> campaign / ad set / ad history -> metrics ->
anomalies -> LLM (bounded by a timeout) -> rule engine fallback -> persist.
"""
from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.meta import MetaAd, MetaAdSet, MetaCampaign, MetaDailyStat
from app.models.recommendation import CampaignRecommendation
from app.services import metric_ratios
from app.services.campaign_metrics import calculate_campaign_metrics
from app.services.llm_service import LLMService
from app.services.recommendation_rules import (
    RuleInputs,
    build_specific_actions,
    detect_performance_anomalies,
    determine_primary_recommendation,
)
from app.services.trend_analysis import (
    AD_TREND_THRESHOLD,
    ADSET_TREND_THRESHOLD,
    HistoricalWindow,
    build_historical_window,
    entity_trend,
    split_weeks,
)
from app.utils.dates import get_week_identifier, week_bounds
from app.utils.helpers import to_float
from app.utils.logger import log


class CampaignNotFoundError(LookupError):
    """No synced campaign for this brand/campaign id"""


def _campaign_dict(campaign: Optional[MetaCampaign]) -> Dict:
    if campaign is None:
        return {}
    return {
        "campaign_id": campaign.campaign_id,
        "campaign_name": campaign.campaign_name,
        "objective": campaign.objective,
        "status": campaign.status,
        "budget": to_float(campaign.budget),
        "budget_type": campaign.budget_type,
        "spent": to_float(campaign.spent),
        "impressions": to_float(campaign.impressions),
        "clicks": to_float(campaign.clicks),
        "conversions": to_float(campaign.conversions),
        "revenue": to_float(campaign.revenue),
        "ctr": campaign.ctr,
        "cpc": campaign.cpc,
        "roas": campaign.roas,
    }


SUM_FIELDS = ("spend", "spent", "revenue", "clicks", "impressions", "conversions")
RATIO_FIELDS = ("ctr", "cpc", "roas")


def _merge_request_figures(snapshot: Dict, campaign_data: Dict) -> Dict:
    """
    Overlay request figures on the synced snapshot. Stored ratios are dropped
    once any sum is overridden and re-derived from the merged sums.
    """
    snapshot = dict(snapshot)
    overridden = any(key in campaign_data for key in SUM_FIELDS)
    if overridden:
        for key in RATIO_FIELDS:
            snapshot.pop(key, None)
    campaign = {**snapshot, **campaign_data}
    if "spend" in campaign_data and "spent" not in campaign_data:
        campaign["spent"] = campaign_data["spend"]

    if overridden:
        spend = to_float(campaign.get("spent"))
        clicks = to_float(campaign.get("clicks"))
        derived = {
            "ctr": metric_ratios.ctr(clicks, to_float(campaign.get("impressions"))),
            "cpc": metric_ratios.cpc(spend, clicks),
            "roas": metric_ratios.roas(to_float(campaign.get("revenue")), spend),
        }
        for key, value in derived.items():
            if campaign.get(key) is None:
                campaign[key] = value
    return campaign


class RecommendationService:
    """Service for weekly campaign recommendations"""

    def __init__(self, db: Session, llm: Optional[LLMService] = None):
        self.db = db
        self.llm = llm if llm is not None else LLMService()

    # ------------------------------------------------------------------
    # Weekly gate
    # ------------------------------------------------------------------

    def check_weekly_gate(self, brand_id: str, campaign_id: str, now: Optional[datetime] = None) -> Dict:
        """
        Whether a recommendation was already generated this server-time week.

        The week is always taken from server time. Client timezones are
        ignored here so nobody can roll into next week early.
        """
        now = now or datetime.now()
        week_identifier = get_week_identifier(now)
        monday, _ = week_bounds(now)

        existing = self.db.query(CampaignRecommendation).filter(
            CampaignRecommendation.brand_id == brand_id,
            CampaignRecommendation.campaign_id == campaign_id,
            CampaignRecommendation.week_identifier == week_identifier,
        ).first()

        return {
            "blocked": existing is not None,
            "week_identifier": week_identifier,
            "next_available": (monday + timedelta(days=7)).isoformat(),
            "existing": existing.payload if existing else None,
            "generated_at": existing.created_at.isoformat() if existing and existing.created_at else None,
        }

    def _blocked_response(self, gate: Dict) -> Dict:
        existing = gate.get("existing") or {}
        return {
            "success": True,
            "blocked": True,
            "message": (
                "A recommendation was already generated for this campaign this week. "
                f"The next one can be generated from {gate['next_available']}."
            ),
            "week_identifier": gate["week_identifier"],
            "next_available": gate["next_available"],
            "recommendation": existing.get("recommendation"),
            "source": existing.get("source"),
        }

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def _stats(self, brand_id: str, level: str, entity_ids: List[str], today: date) -> List[MetaDailyStat]:
        if not entity_ids:
            return []
        return self.db.query(MetaDailyStat).filter(
            MetaDailyStat.brand_id == brand_id,
            MetaDailyStat.level == level,
            MetaDailyStat.entity_id.in_(entity_ids),
            MetaDailyStat.date >= today - timedelta(days=14),
            MetaDailyStat.date < today,
        ).all()

    def _entity_history(
        self,
        brand_id: str,
        level: str,
        entities: List[Any],
        id_field: str,
        threshold: float,
        today: date,
    ) -> List[Dict]:
        ids = [getattr(e, id_field) for e in entities]
        by_entity = defaultdict(list)
        for row in self._stats(brand_id, level, ids, today):
            by_entity[row.entity_id].append(row)

        results = []
        for entity in entities:
            last_7, previous_7 = split_weeks(by_entity.get(getattr(entity, id_field), []), today)
            record = {
                column.name: getattr(entity, column.name)
                for column in entity.__table__.columns
                if column.name not in ("id", "synced_at")
            }
            record["historical"] = entity_trend(last_7, previous_7, threshold)
            results.append(record)
        return results

    def load_history(self, brand_id: str, campaign_id: str, today: date) -> Dict:
        """Campaign window plus ad set / ad trends. DB errors degrade to empty history."""
        try:
            campaign_stats = self._stats(brand_id, "campaign", [campaign_id], today)
            adsets = self.db.query(MetaAdSet).filter(
                MetaAdSet.brand_id == brand_id, MetaAdSet.campaign_id == campaign_id
            ).all()
            ads = self.db.query(MetaAd).filter(
                MetaAd.brand_id == brand_id, MetaAd.campaign_id == campaign_id
            ).all()
            return {
                "window": build_historical_window(campaign_stats, today),
                "adsets": self._entity_history(brand_id, "adset", adsets, "adset_id", ADSET_TREND_THRESHOLD, today),
                "ads": self._entity_history(brand_id, "ad", ads, "ad_id", AD_TREND_THRESHOLD, today),
                "notice": None,
            }
        except SQLAlchemyError as e:
            log.error(f"Error loading history for campaign {campaign_id}: {str(e)}")
            return {
                "window": HistoricalWindow(),
                "adsets": [],
                "ads": [],
                "notice": "Historical data is temporarily unavailable; recommendation uses current totals only.",
            }

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    async def generate(
        self,
        brand_id: str,
        campaign_id: str,
        campaign_data: Dict,
        now: Optional[datetime] = None,
    ) -> Dict:
        """Generate, persist and return this week's recommendation for a campaign"""
        now = now or datetime.now()
        gate = self.check_weekly_gate(brand_id, campaign_id, now)
        if gate["blocked"]:
            log.info(f"Recommendation for {brand_id}/{campaign_id} blocked until {gate['next_available']}")
            return self._blocked_response(gate)

        campaign_row = self.db.query(MetaCampaign).filter(
            MetaCampaign.brand_id == brand_id,
            MetaCampaign.campaign_id == campaign_id,
        ).first()
        if campaign_row is None:
            raise CampaignNotFoundError(f"Campaign {campaign_id} not found for brand {brand_id}")

        # Request figures are fresher than the last synced snapshot
        campaign = _merge_request_figures(_campaign_dict(campaign_row), campaign_data or {})

        today = now.date()
        history = self.load_history(brand_id, campaign_id, today)
        window: HistoricalWindow = history["window"]

        metrics = calculate_campaign_metrics(campaign, window)
        inputs = RuleInputs.from_campaign(
            campaign,
            metrics,
            average_daily_spend=window.averages.get("spend") if window.last_7_days else None,
        )
        anomalies = detect_performance_anomalies(inputs)
        specific_actions = build_specific_actions(history["adsets"], history["ads"])

        recommendation = await self.llm.generate_campaign_recommendation(
            campaign,
            metrics,
            window.to_dict(),
            history["adsets"],
            history["ads"],
            anomalies,
            specific_actions,
        )
        source = "llm"
        if recommendation is None:
            recommendation = determine_primary_recommendation(
                inputs, anomalies, history["adsets"], history["ads"]
            ).to_dict()
            source = "rules"

        result = {
            "success": True,
            "blocked": False,
            "recommendation": recommendation,
            "metrics": metrics,
            "anomalies": [a.to_dict() for a in anomalies],
            "source": source,
            "week_identifier": gate["week_identifier"],
            "next_available": gate["next_available"],
            "generated_at": now.isoformat(),
        }
        if history["notice"]:
            result["notice"] = history["notice"]

        if not self._persist(brand_id, campaign_id, gate["week_identifier"], result, now):
            # Another request won the race for this week
            return self._blocked_response(self.check_weekly_gate(brand_id, campaign_id, now))

        log.info(
            f"Generated {source} recommendation '{recommendation['action']}' "
            f"for {brand_id}/{campaign_id} (week {gate['week_identifier']})"
        )
        return result

    def _persist(self, brand_id: str, campaign_id: str, week_identifier: str, result: Dict, now: datetime) -> bool:
        record = CampaignRecommendation(
            brand_id=brand_id,
            campaign_id=campaign_id,
            week_identifier=week_identifier,
            action=result["recommendation"]["action"],
            confidence=result["recommendation"].get("confidence"),
            source=result["source"],
            payload={
                "recommendation": result["recommendation"],
                "metrics": result["metrics"],
                "anomalies": result["anomalies"],
                "source": result["source"],
            },
            created_at=now,
        )
        self.db.add(record)
        try:
            self.db.commit()
            return True
        except IntegrityError:
            self.db.rollback()
            log.warning(f"Recommendation for {brand_id}/{campaign_id} week {week_identifier} already exists")
            return False
