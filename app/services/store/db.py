"""Async engine and session plumbing for the profile, message and reply-cache tables."""

import asyncio
import logging
from typing import Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.services.store.models import Base
from core.conf import settings

logger = logging.getLogger(__name__)

DATABASE_URL = settings.DATABASE_URL


def make_session_factory(url: str) -> async_sessionmaker[AsyncSession]:
    engine = create_async_engine(url, echo=False, future=True)
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


SessionLocal = make_session_factory(DATABASE_URL)


async def init_database(url: Optional[str] = None) -> bool:
    """Create any missing tables. Returns False instead of raising so startup can continue."""
    url = url or DATABASE_URL
    engine: Optional[AsyncEngine] = None
    try:
        logger.info(f"[store] Ensuring smart reply tables at {url}")
        engine = create_async_engine(url, echo=False)
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info(f"[store] Tables ready: {', '.join(sorted(Base.metadata.tables))}")
        return True
    except Exception as e:
        logger.error(f"[store] Table creation failed: {e}")
        return False
    finally:
        if engine is not None:
            await engine.dispose()


if __name__ == "__main__":
    asyncio.run(init_database())
