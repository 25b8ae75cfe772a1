"""Async engine, session factory and declarative base.

``DATABASE_URL`` may be given in any of the usual PostgreSQL spellings; it
is rewritten to the ``psycopg`` async driver (TLS required unless the URL
says otherwise).  Plain ``sqlite`` URLs use ``aiosqlite``.  Without a URL
the process refuses to start unless ``DB_DEV_FALLBACK_SQLITE`` is on, in
which case ``./app.db`` is used.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from sqlalchemy.engine.url import make_url
from sqlalchemy.exc import ArgumentError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from draftwise.core.config import settings

logger = logging.getLogger(__name__)

SQLITE_FALLBACK_URL = "sqlite+aiosqlite:///./app.db"

_POSTGRES_DRIVERS = frozenset(
    {"postgres", "postgresql", "postgresql+psycopg", "postgresql+psycopg2", "postgresql+asyncpg"}
)

# Set when table creation fails at startup; surfaced by /debug/db
last_init_error: Optional[str] = None


def normalize_database_url(raw_url: str) -> str:
    try:
        url = make_url(raw_url)
    except ArgumentError:
        return raw_url
    if url.drivername == "sqlite":
        url = url.set(drivername="sqlite+aiosqlite")
    elif url.drivername in _POSTGRES_DRIVERS:
        query = {"sslmode": "require", **dict(url.query)}
        url = url.set(drivername="postgresql+psycopg", query=query)
    else:
        return raw_url
    return url.render_as_string(hide_password=False)


def resolve_database_url() -> str:
    if settings.DATABASE_URL:
        return normalize_database_url(settings.DATABASE_URL)
    if settings.DB_DEV_FALLBACK_SQLITE:
        logger.warning("DATABASE_URL not set; using SQLite fallback %s", SQLITE_FALLBACK_URL)
        return SQLITE_FALLBACK_URL
    raise RuntimeError("DATABASE_URL is not set (enable DB_DEV_FALLBACK_SQLITE for a local SQLite database)")


db_url = resolve_database_url()
logger.info("Creating async engine for %s", make_url(db_url).render_as_string(hide_password=True))
engine = create_async_engine(db_url, echo=False, pool_pre_ping=True)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

Base = declarative_base()


async def init_db() -> None:
    """Create missing tables.  Existing tables are never altered."""
    global last_init_error
    # Registers the models on Base.metadata
    from draftwise.models import tables  # noqa: F401

    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    except Exception as exc:
        last_init_error = str(exc)
        logger.exception("DB init failed: %s", exc)
        raise


def get_db_debug_info() -> Dict[str, Any]:
    """Describe the active engine without exposing credentials."""
    url = engine.url
    info: Dict[str, Any] = {
        "environment": settings.ENVIRONMENT,
        "using_sqlite_fallback": db_url == SQLITE_FALLBACK_URL,
        "drivername": url.drivername,
        "host": url.host,
        "port": url.port,
        "database": url.database,
        "url": url.render_as_string(hide_password=True),
    }
    if last_init_error:
        info["last_db_init_error"] = last_init_error
    return info
