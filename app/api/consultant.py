"""
Marketing Consultant API

Free-text marketing questions answered from the brand's own data.
"""
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session
from typing import Optional

from app.models.base import get_db
from app.services.consultant_service import ConsultantService
from app.utils.logger import log

router = APIRouter(prefix="/ai", tags=["consultant"])


class ConsultantRequest(BaseModel):
    brand_id: str
    prompt: str
    marketing_goal: Optional[str] = None
    user_timezone: Optional[str] = None


@router.post("/marketing-consultant")
async def marketing_consultant(
    request: ConsultantRequest,
    db: Session = Depends(get_db),
):
    """
    Ask a marketing question

    Examples:
    - "How did my campaigns do last week?"
    - "Where should I move budget based on the last 14 days?"
    """
    if not request.prompt.strip():
        raise HTTPException(status_code=400, detail="Prompt cannot be empty")

    try:
        service = ConsultantService(db)
        return await service.answer(
            request.brand_id,
            request.prompt,
            marketing_goal=request.marketing_goal,
            user_timezone=request.user_timezone,
        )

    except Exception as e:
        log.error(f"Error answering marketing question: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))
