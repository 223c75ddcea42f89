"""
Database connection using SQLAlchemy + asyncpg.

Only finished pipeline runs are persisted (as summaries); everything the
pipeline computes while running stays in memory.
"""

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from app.config import get_settings

settings = get_settings()

# Connection pool; echo logs every SQL statement when enabled
engine = create_async_engine(settings.database_url, echo=settings.database_echo)

# expire_on_commit=False keeps objects usable after commit (needed for async)
async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass
