"""Common dependencies for FastAPI routes.

Every collaborator a route needs (database sessions, the Stripe gateway,
the billing stores, the webhook verifier, the reconciler and the analysis
service) is built here from settings and injected with ``Depends``.
Tests replace any of them through ``app.dependency_overrides``.
"""

from __future__ import annotations

from typing import AsyncGenerator, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from draftwise.core import database
from draftwise.core.config import get_webhook_secret_list, settings
from draftwise.core.security import auth_scheme, authenticate
from draftwise.models.tables import Profile
from draftwise.services.analysis_service import AnalysisService
from draftwise.services.billing_store import CustomerLinkStore, SubscriptionStore
from draftwise.services.reconciler import EventReconciler
from draftwise.services.stripe_gateway import StripeGateway
from draftwise.services.webhook_verifier import WebhookVerifier


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Return the application's session factory."""
    return database.AsyncSessionLocal


async def get_db_session(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> AsyncGenerator[AsyncSession, None]:
    """Yield a request-scoped session, closed after the request."""
    async with session_factory() as session:
        yield session


async def get_current_user(
    db: AsyncSession = Depends(get_db_session),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(auth_scheme),
) -> Profile:
    return await authenticate(db, credentials)


# -----------------------------------------------------------------------------
# Billing collaborators


def get_stripe_gateway() -> StripeGateway:
    return StripeGateway(settings.STRIPE_API_KEY, user_metadata_key=settings.STRIPE_USER_METADATA_KEY)


def get_customer_store(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> CustomerLinkStore:
    return CustomerLinkStore(session_factory)


def get_subscription_store(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> SubscriptionStore:
    return SubscriptionStore(session_factory)


def get_webhook_verifier() -> WebhookVerifier:
    return WebhookVerifier(get_webhook_secret_list())


def get_reconciler(
    gateway: StripeGateway = Depends(get_stripe_gateway),
    customers: CustomerLinkStore = Depends(get_customer_store),
    subscriptions: SubscriptionStore = Depends(get_subscription_store),
) -> EventReconciler:
    return EventReconciler(
        gateway,
        customers,
        subscriptions,
        user_metadata_key=settings.STRIPE_USER_METADATA_KEY,
    )


# -----------------------------------------------------------------------------
# AI analysis


def get_analysis_service() -> AnalysisService:
    return AnalysisService(
        settings.OPENAI_API_KEY,
        model=settings.ANALYSIS_MODEL,
        temperature=settings.ANALYSIS_TEMPERATURE,
    )
