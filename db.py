# ===============================================================
# db.py
# Async engine, session factory and FastAPI session dependency
# ===============================================================
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from base import Base
import models  # noqa: F401  (registers tables on Base.metadata)
from config import DATABASE_URL as RAW_DATABASE_URL, SQL_ECHO
from logging_setup import get_logger

logger = get_logger(__name__)


def normalize_database_url(url: str) -> str:
    """Heroku/Render style postgres:// URLs -> postgresql+asyncpg://"""
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+asyncpg://", 1)
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


DATABASE_URL = normalize_database_url(RAW_DATABASE_URL)

# -------------------------------------------------
# Engine & session factory
# -------------------------------------------------
engine_kwargs = {"echo": SQL_ECHO}
if not DATABASE_URL.startswith("sqlite"):
    engine_kwargs.update(pool_pre_ping=True, pool_recycle=1800, pool_size=5, max_overflow=10)

engine = create_async_engine(DATABASE_URL, **engine_kwargs)
SessionFactory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


# -------------------------------------------------
# Sessions
# -------------------------------------------------
async def get_session() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency: one session per request."""
    async with SessionFactory() as session:
        yield session


@asynccontextmanager
async def get_async_session() -> AsyncIterator[AsyncSession]:
    """For background tasks and scripts."""
    async with SessionFactory() as session:
        yield session


# -------------------------------------------------
# Schema & health
# -------------------------------------------------
async def init_db() -> None:
    """Create any missing tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info(f"✅ Database ready ({engine.url.get_backend_name()})")


async def test_connection(session: AsyncSession) -> int:
    """SELECT 1; returns the round trip in ms. Raises on failure."""
    started = time.monotonic()
    try:
        await session.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"❌ Database connection failed: {e}")
        raise
    return round((time.monotonic() - started) * 1000)
