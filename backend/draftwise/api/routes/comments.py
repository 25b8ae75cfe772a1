"""Comments on content items.

A user may only read or add comments on content they own; anything else,
including content that does not exist, is answered with 403 so ids of other
users' content are not disclosed.
"""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from draftwise.api.dependencies import get_current_user, get_db_session
from draftwise.models.schemas import CommentCreate, CommentRead
from draftwise.models.tables import Comment, Content, Profile

router = APIRouter(prefix="/api/content", tags=["comments"])


async def _visible_content(db: AsyncSession, content_id: str, user: Profile) -> Content:
    item = await db.get(Content, content_id)
    if item is None or item.user_id != user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Content not found or access denied")
    return item


@router.get("/{content_id}/comments", response_model=List[CommentRead])
async def list_comments(
    content_id: str,
    db: AsyncSession = Depends(get_db_session),
    user: Profile = Depends(get_current_user),
):
    await _visible_content(db, content_id, user)
    result = await db.scalars(
        select(Comment)
        .where(Comment.content_id == content_id)
        .order_by(Comment.created_at.asc())
    )
    return [CommentRead.model_validate(c) for c in result.unique().all()]


@router.post("/{content_id}/comments", response_model=CommentRead, status_code=status.HTTP_201_CREATED)
async def create_comment(
    content_id: str,
    payload: CommentCreate,
    db: AsyncSession = Depends(get_db_session),
    user: Profile = Depends(get_current_user),
):
    """Add a comment (or a reply when ``parent_comment_id`` is set)."""
    await _visible_content(db, content_id, user)

    text = payload.comment_text.strip()
    if not text:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Comment text cannot be empty")

    if payload.parent_comment_id:
        parent = await db.get(Comment, payload.parent_comment_id)
        if parent is None or parent.content_id != content_id:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid parent_comment_id")

    comment = Comment(
        content_id=content_id,
        user_id=user.id,
        comment_text=text,
        parent_comment_id=payload.parent_comment_id,
    )
    db.add(comment)
    await db.commit()
    # Reload with the joined author for the response
    created = await db.scalar(
        select(Comment).where(Comment.id == comment.id).execution_options(populate_existing=True)
    )
    return CommentRead.model_validate(created)
