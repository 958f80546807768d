# app/db/session.py
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.core.config import settings

# Background crawls hold connections for minutes; stale ones are re-checked before use
engine = create_async_engine(settings.database_url, echo=False, pool_pre_ping=True)

# Request handlers and background tasks each open their own session from here
AsyncSessionLocal = async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)

async def get_session() -> AsyncIterator[AsyncSession]:
    async with AsyncSessionLocal() as session:
        yield session
