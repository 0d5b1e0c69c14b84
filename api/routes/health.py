"""
Health check endpoint with live store and import worker status
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import func, select, text
from sqlalchemy.exc import SQLAlchemyError
from api.dependencies import get_db, get_progress_tracker
from ingestion.progress import ProgressTracker
from models import DataImport
from schemas.api import HealthCheckResponse
from datetime import datetime
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(
    request: Request,
    db: AsyncSession = Depends(get_db),
    tracker: ProgressTracker = Depends(get_progress_tracker)
):
    """
    Health check endpoint.

    Returns:
    - Live store connectivity
    - Number of queued or running imports
    - Imports currently in flight in this process
    """
    db_connected = False
    unfinished = 0

    try:
        await db.execute(text("SELECT 1"))
        db_connected = True
        result = await db.execute(
            select(func.count()).select_from(DataImport).where(DataImport.finished.is_(None))
        )
        unfinished = result.scalar_one()
    except SQLAlchemyError as e:
        logger.error(f"Database connection failed: {str(e)}")

    scheduler = getattr(request.app.state, "scheduler", None)

    return HealthCheckResponse(
        timestamp=datetime.utcnow(),
        database_connected=db_connected,
        scheduler_running=bool(scheduler and scheduler.scheduler.running),
        unfinished_imports=unfinished,
        imports_in_flight=tracker.job_ids(),
    )
