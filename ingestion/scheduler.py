import logging
import asyncio
from datetime import datetime
from typing import Dict, Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.ext.asyncio import async_sessionmaker
from core.config import Settings, settings as default_settings
from core.database import build_engine, build_session_maker
from ingestion.orchestrator import ImportOrchestrator
from ingestion.population import AirportPopulator, LoggingPopulator, PopulationWorker
from ingestion.progress import ProgressTracker
from models.base import SnapshotSource

logger = logging.getLogger(__name__)


class WorkerScheduler:
    """Runs the import orchestrator and the population workers as interval jobs"""

    def __init__(
        self,
        session_maker: Optional[async_sessionmaker] = None,
        tracker: Optional[ProgressTracker] = None,
        settings: Settings = None,
        populators: Optional[Dict[SnapshotSource, AirportPopulator]] = None,
    ):
        self.settings = settings or default_settings
        self.scheduler = AsyncIOScheduler()
        self.stop_event = asyncio.Event()
        self.tracker = tracker or ProgressTracker()

        self.engine = None
        if session_maker is None:
            self.engine = build_engine()
            session_maker = build_session_maker(self.engine)
        self.session_maker = session_maker

        self.orchestrator = ImportOrchestrator(
            session_maker, self.tracker, stop_event=self.stop_event, settings=self.settings
        )
        populators = populators or {}
        self.population_workers = [
            PopulationWorker(
                source,
                populators.get(source) or LoggingPopulator(),
                session_maker,
                stop_event=self.stop_event,
                batch_size=self.settings.POPULATION_BATCH_SIZE,
                error_backoff_seconds=self.settings.IMPORT_ERROR_BACKOFF_SECONDS,
            )
            for source in SnapshotSource
        ]

    def _add_job(self, func, seconds: float, job_id: str):
        self.scheduler.add_job(
            func,
            trigger=IntervalTrigger(seconds=seconds),
            id=job_id,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            next_run_time=datetime.now(),
        )

    async def start(self):
        """Recover interrupted population batches, then schedule every worker"""
        for worker in self.population_workers:
            try:
                await worker.reset_queued()
            except Exception:
                # poll() retries the recovery before scanning
                logger.exception(f"Startup recovery of {worker.source.value} population worker failed")

        self._add_job(self.orchestrator.poll, self.settings.IMPORT_POLL_SECONDS, "data_import")
        for worker in self.population_workers:
            self._add_job(
                worker.poll, self.settings.POPULATION_POLL_SECONDS, f"populate_{worker.source.value}"
            )
        self.scheduler.start()
        logger.info("Worker scheduler started")

    async def stop(self):
        """Signal the workers, let a running import finalize, then shut down"""
        self.stop_event.set()
        if self.scheduler.running:
            self.scheduler.pause()

        # AsyncIOExecutor.shutdown() cancels job tasks that are still running
        timeout = self.settings.SHUTDOWN_TIMEOUT_SECONDS
        if not await self.orchestrator.wait_idle(timeout):
            logger.warning(f"Data import still running after {timeout} seconds, cancelling it")

        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        if self.engine is not None:
            await self.engine.dispose()
        logger.info("Worker scheduler stopped")
