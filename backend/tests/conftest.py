from __future__ import annotations

import asyncio
import copy
import hashlib
import hmac
import json
import os
import sys
import time
from pathlib import Path

# Add backend folder to sys.path so `import draftwise...` works in tests when running from backend root
BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

# The application engine is created at import time; never require Postgres in tests
os.environ.setdefault("DB_DEV_FALLBACK_SQLITE", "true")

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from draftwise.core.database import Base
from draftwise.core.exceptions import UpstreamFetchFailed
from draftwise.models import tables  # noqa: F401
from draftwise.models.tables import Profile


@pytest.fixture
def session_factory(tmp_path):
    """A fresh file-backed SQLite database per test.

    NullPool keeps connections from outliving the event loop that opened
    them, so the factory works from both async tests and TestClient.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)

    async def _create():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(_create())
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    yield factory
    asyncio.run(engine.dispose())


@pytest.fixture
def make_profile(session_factory):
    """Insert a profile row and return it (usable from sync tests)."""

    def _make(user_id: str = "user_1", full_name: str | None = "Test User") -> Profile:
        async def _insert():
            async with session_factory() as session:
                profile = Profile(id=user_id, email=f"{user_id}@example.com", full_name=full_name)
                session.add(profile)
                await session.commit()
                return profile

        return asyncio.run(_insert())

    return _make


# -----------------------------------------------------------------------------
# Stripe fakes


def subscription_object(
    sub_id: str = "sub_1",
    *,
    user_id: str | None = "user_1",
    status: str = "active",
    price_id: str = "price_basic",
    period_start: int = 1_700_000_000,
    period_end: int = 1_702_592_000,
    metadata_key: str = "supabaseUserId",
    **overrides,
) -> dict:
    """Return a Stripe-shaped subscription dict."""
    sub = {
        "id": sub_id,
        "object": "subscription",
        "status": status,
        "customer": "cus_1",
        "metadata": {metadata_key: user_id} if user_id else {},
        "items": {
            "object": "list",
            "data": [{"id": "si_1", "price": {"id": price_id, "object": "price"}, "quantity": 1}],
        },
        "cancel_at_period_end": False,
        "created": period_start - 60,
        "current_period_start": period_start,
        "current_period_end": period_end,
        "ended_at": None,
        "cancel_at": None,
        "canceled_at": None,
        "trial_start": None,
        "trial_end": None,
    }
    sub.update(overrides)
    return sub


class FakeGateway:
    """In-memory stand-in for ``StripeGateway``."""

    def __init__(self, configured: bool = True):
        self.configured = configured
        self.subscriptions: dict[str, dict] = {}
        self.fail_retrieve = False
        self.fail_create = False
        self.retrieved: list[str] = []
        self.customers_created: list[tuple] = []
        self.checkout_calls: list[dict] = []
        self.portal_calls: list[tuple] = []

    def retrieve_subscription(self, subscription_id: str) -> dict:
        self.retrieved.append(subscription_id)
        if self.fail_retrieve or subscription_id not in self.subscriptions:
            raise UpstreamFetchFailed(f"failed to retrieve subscription {subscription_id}")
        return copy.deepcopy(self.subscriptions[subscription_id])

    def create_customer(self, email, user_id):
        if self.fail_create:
            raise UpstreamFetchFailed("failed to create Stripe customer")
        self.customers_created.append((email, user_id))
        return f"cus_new_{len(self.customers_created)}"

    def create_portal_session(self, customer_id, return_url, configuration=None):
        self.portal_calls.append((customer_id, return_url, configuration))
        return f"https://billing.stripe.test/session/{customer_id}"

    def create_checkout_session(self, **kwargs):
        if self.fail_create:
            raise UpstreamFetchFailed("failed to create checkout session")
        self.checkout_calls.append(kwargs)
        return "https://checkout.stripe.test/c/pay/cs_test_1"


@pytest.fixture
def fake_gateway():
    return FakeGateway()


@pytest.fixture
def make_subscription():
    return subscription_object


def sign_payload(payload: bytes, secret: str, timestamp: int | None = None) -> str:
    """Build a Stripe-Signature header for ``payload``."""
    ts = int(time.time()) if timestamp is None else timestamp
    signed = f"{ts}.{payload.decode('utf-8')}".encode("utf-8")
    sig = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={ts},v1={sig}"


@pytest.fixture
def signer():
    return sign_payload


def stripe_event(event_type: str, data_object: dict, event_id: str = "evt_test_1") -> dict:
    return {"id": event_id, "object": "event", "type": event_type, "data": {"object": data_object}}


@pytest.fixture
def make_event():
    return stripe_event


@pytest.fixture
def encode():
    return lambda event: json.dumps(event).encode("utf-8")
