"""
FastAPI dependencies shared by the routers
"""

from typing import AsyncGenerator
from sqlalchemy.ext.asyncio import AsyncSession
from core.database import async_session_maker
from ingestion.progress import ProgressTracker

# Shared with the background workers started by api.main
progress_tracker = ProgressTracker()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Live store session per request"""
    async with async_session_maker() as session:
        yield session


def get_progress_tracker() -> ProgressTracker:
    return progress_tracker
