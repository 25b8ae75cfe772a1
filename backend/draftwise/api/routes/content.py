from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from draftwise.api.dependencies import get_current_user, get_db_session
from draftwise.models.schemas import ContentCreate, ContentCreated, ContentSummary
from draftwise.models.tables import Content, Profile, empty_document

router = APIRouter(prefix="/api/content", tags=["content"])


@router.get("", response_model=List[ContentSummary])
async def list_content(
    db: AsyncSession = Depends(get_db_session),
    user: Profile = Depends(get_current_user),
):
    """List the current user's content, newest first."""
    result = await db.scalars(
        select(Content)
        .where(Content.user_id == user.id)
        .order_by(Content.created_at.desc())
    )
    return [ContentSummary.model_validate(c) for c in result.all()]


@router.post("", response_model=ContentCreated, status_code=status.HTTP_201_CREATED)
async def create_content(
    payload: ContentCreate,
    db: AsyncSession = Depends(get_db_session),
    user: Profile = Depends(get_current_user),
):
    item = Content(
        user_id=user.id,
        title=payload.title,
        body=payload.body if payload.body is not None else empty_document(),
    )
    db.add(item)
    await db.commit()
    await db.refresh(item)
    return ContentCreated(id=item.id)
