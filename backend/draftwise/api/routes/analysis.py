from __future__ import annotations

import datetime as dt
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from draftwise.api.dependencies import get_analysis_service, get_current_user, get_db_session
from draftwise.models.schemas import AnalyzeRequest, AnalyzeResponse
from draftwise.models.tables import Content, Profile
from draftwise.services.analysis_service import AnalysisService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/content", tags=["analysis"])


@router.post("/analyze", response_model=AnalyzeResponse)
async def analyze_content(
    payload: AnalyzeRequest,
    db: AsyncSession = Depends(get_db_session),
    user: Profile = Depends(get_current_user),
    service: AnalysisService = Depends(get_analysis_service),
):
    """Run the AI analysis for a content item and store the result.

    The three sections replace whatever analysis the item had before.
    Model failures surface as ``AnalysisFailed`` (500) and a missing API
    key as ``AnalysisUnavailable`` (503) through the application's error
    handler.
    """
    content_id = str(payload.id)
    item = await db.get(Content, content_id)
    if item is None or item.user_id != user.id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Content not found or access denied")

    analysis = await service.analyze(payload.text)

    item.seo_analysis = analysis.seo.model_dump(exclude_none=True)
    item.readability_analysis = analysis.readability.model_dump(exclude_none=True)
    item.engagement_analysis = analysis.engagement.model_dump(exclude_none=True)
    item.updated_at = dt.datetime.now(dt.timezone.utc)
    await db.commit()
    logger.info("[analysis] stored analysis content=%s user=%s", content_id, user.id)

    return AnalyzeResponse(analysis=analysis)
