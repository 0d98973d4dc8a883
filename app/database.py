"""
Database Connection Module
Handles the PostgreSQL connection using the SQLAlchemy async engine.
"""

import logging

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from app.core.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()

# Create async engine (no connection is opened until first use)
engine = create_async_engine(
    settings.database_url,
    echo=settings.database_echo,
    pool_size=5,  # Connection pool size
    max_overflow=10  # Extra connections when pool is full
)

# Session factory - one session per catalog fetch
async_session_maker = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False
)


# Base class for all our models
class Base(DeclarativeBase):
    pass


async def init_db():
    """
    Create all catalog tables in the database.
    Called once at application startup when the SQL source is in use.
    """
    # Import models so they register on Base.metadata
    import app.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created successfully")
