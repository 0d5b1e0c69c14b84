"""
FastAPI application initialization
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from api.dependencies import progress_tracker
from api.middleware import RequestContextMiddleware
from api.routes import health, imports
from core.config import settings
from core.database import async_session_maker
from core.logging import setup_logging
from ingestion.scheduler import WorkerScheduler
import logging

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the background workers with the app, stop them on shutdown"""
    logger.info("Starting airport sync backend")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Database: {settings.DATABASE_URL.split('@')[1] if '@' in settings.DATABASE_URL else 'configured'}")

    scheduler = None
    if settings.SCHEDULER_ENABLED:
        scheduler = WorkerScheduler(session_maker=async_session_maker, tracker=progress_tracker)
        await scheduler.start()
    app.state.scheduler = scheduler

    yield

    logger.info("Shutting down airport sync backend")
    if scheduler is not None:
        await scheduler.stop()


app = FastAPI(
    title="Airport Sync Backend API",
    description="Imports flight simulator airport snapshots into the live store",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

app.add_middleware(RequestContextMiddleware)

app.include_router(health.router)
app.include_router(imports.router)


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "Airport Sync Backend API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
        "endpoints": {
            "imports": "/imports"
        }
    }
