"""
Database session management with SQLAlchemy async
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool
from core.config import settings
import logging

logger = logging.getLogger(__name__)


def build_engine(database_url: str = None, **kwargs) -> AsyncEngine:
    """Create an async engine for the live store"""
    return create_async_engine(
        database_url or settings.DATABASE_URL,
        echo=False,
        poolclass=kwargs.pop("poolclass", NullPool),
        future=True,
        **kwargs
    )


def build_session_maker(bind: AsyncEngine) -> async_sessionmaker:
    """Session factory shared by the API and the background workers"""
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False
    )


# Create async engine
engine = build_engine()

# Create session factory
async_session_maker = build_session_maker(engine)


async def get_session() -> AsyncSession:
    """Get database session"""
    async with async_session_maker() as session:
        yield session
