"""
Campaign Recommendations API

Weekly AI recommendations per campaign, with a rule-based fallback.
"""
from fastapi import APIRouter, Depends, Query, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session
from typing import Any, Dict, Optional

from app.models.base import get_db
from app.services.recommendation_service import CampaignNotFoundError, RecommendationService
from app.utils.logger import log

router = APIRouter(prefix="/ai/campaign-recommendations", tags=["recommendations"])


class CampaignRecommendationRequest(BaseModel):
    brand_id: str
    campaign_id: str
    campaign_data: Dict[str, Any]
    user_timezone: Optional[str] = None


@router.post("")
async def generate_campaign_recommendation(
    request: CampaignRecommendationRequest,
    db: Session = Depends(get_db),
):
    """
    Generate this week's recommendation for a campaign

    One recommendation per campaign per Monday-Sunday server week. A second
    request in the same week returns ``blocked: true`` with the existing
    recommendation. ``user_timezone`` is accepted but never moves the week.
    """
    try:
        service = RecommendationService(db)
        return await service.generate(request.brand_id, request.campaign_id, request.campaign_data)

    except CampaignNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        log.error(f"Error generating campaign recommendation: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/status")
async def get_recommendation_status(
    brand_id: str = Query(..., description="Brand ID"),
    campaign_id: str = Query(..., description="Campaign ID"),
    db: Session = Depends(get_db),
):
    """Whether a recommendation can be generated for this campaign this week"""
    try:
        service = RecommendationService(db)
        gate = service.check_weekly_gate(brand_id, campaign_id)
        return {
            "success": True,
            "blocked": gate["blocked"],
            "week_identifier": gate["week_identifier"],
            "next_available": gate["next_available"],
            "generated_at": gate["generated_at"],
            "recommendation": (gate["existing"] or {}).get("recommendation"),
        }

    except Exception as e:
        log.error(f"Error checking recommendation status: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))
