"""
Marketing Consultant Service

Answers free-text questions ("how did we do last week?") from the brand's
Meta campaign data. The date range is read from the question when it names
one, otherwise the last 30 complete days are used.
"""
from datetime import datetime, timedelta
from typing import Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.meta import MetaAd, MetaAdSet, MetaCampaign, MetaDailyStat
from app.services.campaign_metrics import analyze_campaign_data
from app.services.llm_service import LLMService
from app.utils.dates import DateRange, local_today, parse_range
from app.utils.logger import log

DEFAULT_RANGE_DAYS = 30


class ConsultantService:
    """Service for the marketing consultant endpoint"""

    def __init__(self, db: Session, llm: Optional[LLMService] = None):
        self.db = db
        self.llm = llm if llm is not None else LLMService()

    def resolve_range(self, prompt: str, now: datetime, tz_name: Optional[str] = None) -> DateRange:
        parsed = parse_range(prompt, now, tz_name)
        if parsed:
            return parsed
        yesterday = local_today(now, tz_name) - timedelta(days=1)
        return DateRange(yesterday - timedelta(days=DEFAULT_RANGE_DAYS - 1), yesterday, f"last {DEFAULT_RANGE_DAYS} days")

    def gather_analysis(self, brand_id: str, date_range: DateRange) -> Dict:
        campaigns = self.db.query(MetaCampaign).filter(MetaCampaign.brand_id == brand_id).all()
        adsets = self.db.query(MetaAdSet).filter(MetaAdSet.brand_id == brand_id).all()
        ads = self.db.query(MetaAd).filter(MetaAd.brand_id == brand_id).all()
        stats = self.db.query(MetaDailyStat).filter(
            MetaDailyStat.brand_id == brand_id,
            MetaDailyStat.level == "campaign",
            MetaDailyStat.date >= date_range.start,
            MetaDailyStat.date <= date_range.end,
        ).all()

        names = {c.campaign_id: c.campaign_name for c in campaigns}
        rows = [
            {
                "date": s.date,
                "campaign_id": s.campaign_id or s.entity_id,
                "campaign_name": s.entity_name or names.get(s.campaign_id or s.entity_id),
                "spend": s.spend,
                "revenue": s.revenue,
                "impressions": s.impressions,
                "clicks": s.clicks,
                "conversions": s.conversions,
                "ctr": s.ctr,
                "cpc": s.cpc,
                "roas": s.roas,
            }
            for s in stats
        ]
        return analyze_campaign_data(campaigns, rows, adsets, ads)

    async def answer(
        self,
        brand_id: str,
        prompt: str,
        marketing_goal: Optional[str] = None,
        now: Optional[datetime] = None,
        user_timezone: Optional[str] = None,
    ) -> Dict:
        now = now or datetime.now()
        date_range = self.resolve_range(prompt, now, user_timezone)

        notice = None
        try:
            analysis = self.gather_analysis(brand_id, date_range)
        except SQLAlchemyError as e:
            log.error(f"Error gathering marketing data for brand {brand_id}: {str(e)}")
            analysis = analyze_campaign_data([], [])
            notice = "Campaign data could not be loaded right now; figures below are zero."

        answer = await self.llm.answer_marketing_question(prompt, {"date_range": date_range.to_dict(), **analysis}, marketing_goal)
        source = "llm"
        if not answer:
            answer = self._fallback_answer(analysis, date_range)
            source = "rules"

        result = {
            "success": True,
            "answer": answer,
            "source": source,
            "analysis": analysis,
            "date_range": date_range.to_dict(),
        }
        if notice:
            result["notice"] = notice
        return result

    def _fallback_answer(self, analysis: Dict, date_range: DateRange) -> str:
        """Plain summary from the numbers when the LLM is unavailable"""
        if not analysis["total_spend"]:
            return f"No Meta ad spend recorded for {date_range.label} ({date_range.start} to {date_range.end})."

        lines = [
            f"For {date_range.label} ({date_range.start} to {date_range.end}) you spent "
            f"${analysis['total_spend']:,.2f} on Meta for ${analysis['total_revenue']:,.2f} in attributed revenue "
            f"({analysis['average_roas']:.2f}x ROAS, {analysis['average_ctr']:.2f}% CTR, "
            f"${analysis['average_cpc']:.2f} CPC)."
        ]
        if analysis["top_performers"]:
            best = analysis["top_performers"][0]
            lines.append(f"Best campaign: {best['campaign_name']} at {best['roas']:.2f}x ROAS.")
        if analysis["under_performers"]:
            worst = analysis["under_performers"][-1]
            lines.append(f"Weakest campaign: {worst['campaign_name']} at {worst['roas']:.2f}x ROAS.")
        trends = analysis["trends"]
        for bucket in ("declining", "improving"):
            if trends.get(bucket):
                lines.append(f"{bucket.capitalize()}: {'; '.join(trends[bucket])}.")
        return " ".join(lines)
