"""
Meta Ads Metrics API

Brand-level Meta Ads summary for a date range.
"""
from fastapi import APIRouter, Depends, Query, HTTPException
from sqlalchemy.orm import Session
from typing import Optional
from datetime import date, datetime, timedelta

from app.models.base import get_db
from app.services.meta_metrics_service import MetaMetricsService
from app.utils.dates import local_today
from app.utils.response_cache import ResponseCache, get_response_cache
from app.utils.logger import log

router = APIRouter(prefix="/metrics", tags=["metrics"])


def _parse_date(value: Optional[str], name: str) -> Optional[date]:
    if not value:
        return None
    try:
        return datetime.strptime(value[:10], "%Y-%m-%d").date()
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid {name} format. Use YYYY-MM-DD")


@router.get("/meta")
async def get_meta_metrics(
    brand_id: str = Query(..., description="Brand ID"),
    from_date: Optional[str] = Query(None, description="Start date (YYYY-MM-DD), defaults to 30 days ago"),
    to_date: Optional[str] = Query(None, description="End date (YYYY-MM-DD), defaults to today"),
    user_timezone: Optional[str] = Query(None, description="IANA timezone or 'server-local'"),
    bypass_cache: bool = Query(False, description="Skip the response cache"),
    db: Session = Depends(get_db),
    cache: ResponseCache = Depends(get_response_cache),
):
    """
    Meta Ads summary for a brand

    Returns:
    - Spend, impressions, clicks, conversions, reach
    - CTR, CPC, cost per result, ROAS (platform-attributed revenue)
    - Storefront revenue and blended ROAS, reported separately
    - Growth for each metric across the range
    - Daily breakdown and data-quality warnings
    """
    now = datetime.now()
    end = _parse_date(to_date, "to_date") or local_today(now, user_timezone)
    start = _parse_date(from_date, "from_date") or end - timedelta(days=29)
    if start > end:
        raise HTTPException(status_code=400, detail="from_date must not be after to_date")

    try:
        service = MetaMetricsService(db, cache)
        return service.get_brand_metrics(
            brand_id,
            start,
            end,
            user_timezone=user_timezone,
            now=now,
            bypass_cache=bypass_cache,
        )

    except HTTPException:
        raise
    except Exception as e:
        log.error(f"Error getting Meta metrics: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))
