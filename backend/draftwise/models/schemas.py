"""Pydantic schemas for request and response models.

Pydantic models validate and serialise data crossing the API boundary.
This module defines the API-facing shapes for content, comments, billing
and webhook acknowledgements, plus the domain schema the AI analysis must
conform to before it is persisted.

Schemas are kept separate from the ORM models so the shape
exposed through the API can differ from what is stored.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .enums import ContentStatus, SubscriptionStatus


# ---------------------------------------------------------------------------
# AI analysis contract


class AnalysisSection(BaseModel):
    """One scored section of the analysis with actionable suggestions."""

    model_config = ConfigDict(extra="allow")

    score: float = Field(ge=0, le=100)
    suggestions: List[str] = Field(default_factory=list)


class SeoAnalysis(AnalysisSection):
    keywords: Optional[List[str]] = None


class ReadabilityAnalysis(AnalysisSection):
    gradeLevel: Optional[str] = None

    @field_validator("gradeLevel", mode="before")
    @classmethod
    def _coerce_grade(cls, v: Any) -> Any:
        # Models sometimes answer with a bare number
        if isinstance(v, (int, float)):
            return str(v)
        return v


class EngagementAnalysis(AnalysisSection):
    tone: Optional[str] = None


class AnalysisResults(BaseModel):
    """Complete analysis returned by the model for a piece of text."""

    seo: SeoAnalysis
    readability: ReadabilityAnalysis
    engagement: EngagementAnalysis


class AnalyzeRequest(BaseModel):
    id: UUID
    text: str = Field(min_length=10, description="Text to analyze; at least 10 characters")


class AnalyzeResponse(BaseModel):
    success: bool = True
    analysis: AnalysisResults


# ---------------------------------------------------------------------------
# Content


class ContentCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    # Editor JSON documents are arbitrarily nested; stored as given
    body: Optional[Dict[str, Any]] = None


class ContentCreated(BaseModel):
    id: str


class ContentSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    created_at: datetime
    updated_at: datetime
    title: str
    status: ContentStatus
    scheduled_publish_at: Optional[datetime] = None
    published_at: Optional[datetime] = None


# ---------------------------------------------------------------------------
# Comments


class ProfileSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None


class CommentCreate(BaseModel):
    # Blank text is rejected by the route with 400
    comment_text: str
    parent_comment_id: Optional[str] = None


class CommentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: str
    created_at: datetime
    comment_text: str
    parent_comment_id: Optional[str] = None
    profiles: Optional[ProfileSummary] = Field(default=None, validation_alias="author")


# ---------------------------------------------------------------------------
# Billing


class CheckoutRequest(BaseModel):
    price_id: Optional[str] = None


class PortalRequest(BaseModel):
    return_url: Optional[str] = None


class RedirectUrl(BaseModel):
    url: str


class SubscriptionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    status: SubscriptionStatus
    price_id: Optional[str] = None
    quantity: Optional[int] = None
    cancel_at_period_end: bool
    created: datetime
    current_period_start: datetime
    current_period_end: datetime
    ended_at: Optional[datetime] = None
    cancel_at: Optional[datetime] = None
    canceled_at: Optional[datetime] = None
    trial_start: Optional[datetime] = None
    trial_end: Optional[datetime] = None


class WebhookAck(BaseModel):
    received: bool = True
    type: Optional[str] = None
    ignored: Optional[bool] = None
    filtered: Optional[bool] = None
    actions: List[str] = Field(default_factory=list)
    anomalies: int = 0
