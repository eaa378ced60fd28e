"""
Async Database Helper for Celery Tasks

Celery tasks are synchronous and call async services through asyncio.run().
Each run gets its own event loop, so the engine here uses NullPool and is
disposed when the session closes: pooled connections must not outlive the loop
that opened them.
"""

from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.platform.config import settings


@asynccontextmanager
async def get_async_db():
    """
    Get async database session for use in sync Celery tasks.

    Usage in Celery task:
        async def _run():
            async with get_async_db() as db:
                return await NotificationFanoutService(db).send_follow_up_reminders()

        asyncio.run(_run())
    """
    engine = create_async_engine(settings.DATABASE_URL, poolclass=NullPool)
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    try:
        async with session_factory() as session:
            yield session
    finally:
        await engine.dispose()
