"""SQLAlchemy ORM models for the Draftwise API.

These models define the relational schema: user profiles, content and
comments authored in the editor, and the two billing mirrors kept in
sync with Stripe (``customers`` and ``subscriptions``).  Enumerated
fields are stored as their string values so the tables stay readable
from SQL and compatible with rows written by other clients.

If you extend or modify these models remember to apply the matching
schema change to existing databases; ``init_db`` only creates missing
tables.
"""

from __future__ import annotations

import datetime as dt
import uuid

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from draftwise.core.database import Base
from .enums import ContentStatus, SubscriptionStatus


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def _uuid() -> str:
    return str(uuid.uuid4())


def _value_enum(enum_cls: type) -> Enum:
    return Enum(
        enum_cls,
        values_callable=lambda members: [m.value for m in members],
        native_enum=False,
        length=32,
    )


def empty_document() -> dict:
    """Return an empty rich-text editor document."""
    return {"type": "doc", "content": []}


class Profile(Base):
    """Public profile of an authenticated user, keyed by the auth subject."""

    __tablename__ = "profiles"

    id = Column(String, primary_key=True)
    email = Column(String, nullable=True)
    full_name = Column(String, nullable=True)
    avatar_url = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    contents = relationship("Content", back_populates="owner")
    comments = relationship("Comment", back_populates="author")


class Content(Base):
    """A piece of content written in the editor plus its latest AI analysis."""

    __tablename__ = "content"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String, ForeignKey("profiles.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    body = Column(JSON, nullable=False, default=empty_document)
    status = Column(_value_enum(ContentStatus), nullable=False, default=ContentStatus.DRAFT)
    scheduled_publish_at = Column(DateTime(timezone=True), nullable=True)
    published_at = Column(DateTime(timezone=True), nullable=True)

    # Analysis sections are stored verbatim as returned by the model
    seo_analysis = Column(JSON, nullable=True)
    readability_analysis = Column(JSON, nullable=True)
    engagement_analysis = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    owner = relationship("Profile", back_populates="contents")
    comments = relationship("Comment", back_populates="content", cascade="all, delete-orphan")

    __table_args__ = (Index("ix_content_user_created_at", "user_id", "created_at"),)


class Comment(Base):
    """Comment on a content item; replies point at their parent comment."""

    __tablename__ = "comments"

    id = Column(String(36), primary_key=True, default=_uuid)
    content_id = Column(String(36), ForeignKey("content.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String, ForeignKey("profiles.id"), nullable=False)
    comment_text = Column(Text, nullable=False)
    parent_comment_id = Column(String(36), ForeignKey("comments.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    content = relationship("Content", back_populates="comments")
    author = relationship("Profile", back_populates="comments", lazy="joined")


class Customer(Base):
    """Link between an application user and their Stripe customer."""

    __tablename__ = "customers"

    # Application user id; at most one Stripe customer per user
    id = Column(String, primary_key=True)
    stripe_customer_id = Column(String, nullable=False)


class Subscription(Base):
    """Mirror of a Stripe subscription, keyed by the Stripe subscription id.

    Rows are never deleted; a deleted subscription arrives as
    ``status=canceled``.  ``user_id`` is not a foreign key so a subscription
    can be mirrored before the owner's profile row exists.
    """

    __tablename__ = "subscriptions"

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    status = Column(_value_enum(SubscriptionStatus), nullable=False)
    metadata_ = Column("metadata", JSON, nullable=True)
    price_id = Column(String, nullable=True)
    quantity = Column(Integer, nullable=True)
    cancel_at_period_end = Column(Boolean, nullable=False, default=False)
    created = Column(DateTime(timezone=True), nullable=False)
    current_period_start = Column(DateTime(timezone=True), nullable=False)
    current_period_end = Column(DateTime(timezone=True), nullable=False)
    ended_at = Column(DateTime(timezone=True), nullable=True)
    cancel_at = Column(DateTime(timezone=True), nullable=True)
    canceled_at = Column(DateTime(timezone=True), nullable=True)
    trial_start = Column(DateTime(timezone=True), nullable=True)
    trial_end = Column(DateTime(timezone=True), nullable=True)
