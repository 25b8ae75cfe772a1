"""Data access for the billing mirrors.

Both stores write with the database's native ``INSERT .. ON CONFLICT DO
UPDATE`` keyed by primary id, one transaction per upsert.  Concurrent or
duplicate webhook deliveries therefore converge on the last snapshot
written without any application-level locking.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Sequence

from sqlalchemy import Table, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from draftwise.core.exceptions import StoreWriteFailed
from draftwise.models.tables import Customer, Subscription

logger = logging.getLogger(__name__)

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


async def _upsert(session: AsyncSession, table: Table, values: dict[str, Any]) -> None:
    """Insert ``values`` or replace every non-key column of the existing row."""
    dialect = session.get_bind().dialect.name
    insert_fn = _UPSERT_DIALECTS.get(dialect)
    if insert_fn is None:
        raise StoreWriteFailed(f"upsert not supported for dialect {dialect}")
    key_columns = [c.name for c in table.primary_key.columns]
    stmt = insert_fn(table).values(**values)
    stmt = stmt.on_conflict_do_update(
        index_elements=key_columns,
        set_={name: stmt.excluded[name] for name in values if name not in key_columns},
    )
    await session.execute(stmt)


class _Store:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def _write(self, table: Table, values: dict[str, Any], label: str) -> None:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    await _upsert(session, table, values)
        except SQLAlchemyError as exc:
            logger.error("[billing] %s upsert failed id=%s: %s", label, values.get("id"), exc)
            raise StoreWriteFailed(f"{label} upsert failed for {values.get('id')}") from exc


class CustomerLinkStore(_Store):
    """Maps application user ids to Stripe customer ids (table ``customers``)."""

    async def upsert(self, user_id: str, stripe_customer_id: str) -> None:
        await self._write(
            Customer.__table__,
            {"id": user_id, "stripe_customer_id": stripe_customer_id},
            "customer",
        )
        logger.info("[billing] customer link upserted user=%s customer=%s", user_id, stripe_customer_id)

    async def get_customer_id(self, user_id: str) -> Optional[str]:
        async with self._session_factory() as session:
            return await session.scalar(
                select(Customer.stripe_customer_id).where(Customer.id == user_id)
            )


class SubscriptionStore(_Store):
    """Mirrors Stripe subscriptions (table ``subscriptions``)."""

    async def upsert(self, values: dict[str, Any]) -> None:
        """Write a full row as produced by ``subscription_record_values``."""
        await self._write(Subscription.__table__, values, "subscription")
        logger.info(
            "[billing] subscription upserted id=%s user=%s status=%s",
            values.get("id"), values.get("user_id"), getattr(values.get("status"), "value", values.get("status")),
        )

    async def get(self, subscription_id: str) -> Optional[Subscription]:
        async with self._session_factory() as session:
            return await session.get(Subscription, subscription_id)

    async def list_for_user(self, user_id: str) -> Sequence[Subscription]:
        async with self._session_factory() as session:
            result = await session.scalars(
                select(Subscription)
                .where(Subscription.user_id == user_id)
                .order_by(Subscription.created.desc())
            )
            return result.all()
