"""Database engine, session factory and connectivity probe."""
from __future__ import annotations

import time
from collections.abc import AsyncGenerator
from dataclasses import dataclass

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (AsyncEngine, AsyncSession, async_sessionmaker,
                                    create_async_engine)

from lifedash.core.config import get_settings

settings = get_settings()

engine: AsyncEngine = create_async_engine(settings.async_database_url, future=True)

AsyncSessionLocal = async_sessionmaker(engine, expire_on_commit=False)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield a SQLAlchemy async session."""
    async with AsyncSessionLocal() as session:
        yield session


@dataclass(frozen=True)
class DatabaseProbe:
    ok: bool
    latency_ms: int
    error: str | None = None


async def probe_database(session: AsyncSession) -> DatabaseProbe:
    """Run a trivial query and report whether the database answered."""

    started = time.perf_counter()
    try:
        await session.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        latency = int((time.perf_counter() - started) * 1000)
        return DatabaseProbe(ok=False, latency_ms=latency, error=str(exc))
    latency = int((time.perf_counter() - started) * 1000)
    return DatabaseProbe(ok=True, latency_ms=latency)
