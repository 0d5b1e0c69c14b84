"""
Import orchestrator - drains the queue of uploaded snapshot imports.

State machine per job:

    Idle -> Dispatching -> Running-Phase[i] -> Finalizing -> Idle

- Only one job runs at a time (asyncio.Lock around the drain loop)
- Any failure inside a job is caught at the job boundary and written to the
  job's status log; the job is finalized no matter what
- Finalizing stamps the finish time and processed count, stores the
  serialized progress (or the error text) and deletes the snapshot file
- Loop level failures (store unreachable) are logged and followed by a
  backoff that the stop event can cut short
"""

import asyncio
from datetime import datetime
from pathlib import Path
from typing import FrozenSet, Mapping, Optional
from uuid import UUID
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from core.config import Settings, settings as default_settings
from core.exceptions import StoreUnavailableError, SyncException, UnknownImportTypeError
from ingestion.datasets import load_country_lookup, load_identifier_list
from ingestion.pipeline import ImportPipeline
from ingestion.progress import ProgressTracker
from ingestion.snapshot import SnapshotReader
from models import DataImport
from models.base import ImportType
from schemas.api import ERROR_PREFIX
import logging

logger = logging.getLogger(__name__)


class ImportOrchestrator:
    """
    Background processor for DataImport jobs.

    Args:
        session_maker: Factory for live store sessions (one session per job)
        tracker: Progress tracker shared with the status API
        stop_event: Set on shutdown, ends running phases at the next row
        settings: Application settings
        curated_majors / super_airports / countries: Reference datasets,
            read from the configured files for every job when not given
    """

    def __init__(
        self,
        session_maker: async_sessionmaker,
        tracker: ProgressTracker,
        stop_event: Optional[asyncio.Event] = None,
        settings: Settings = None,
        curated_majors: Optional[FrozenSet[str]] = None,
        super_airports: Optional[FrozenSet[str]] = None,
        countries: Optional[Mapping[str, str]] = None,
    ):
        self.session_maker = session_maker
        self.tracker = tracker
        self.stop_event = stop_event or asyncio.Event()
        self.settings = settings or default_settings
        self.curated_majors = curated_majors
        self.super_airports = super_airports
        self.countries = countries
        self._lock = asyncio.Lock()

    @property
    def is_busy(self) -> bool:
        return self._lock.locked()

    async def next_unfinished_job(self, session: AsyncSession) -> Optional[DataImport]:
        """Oldest job that has not been finished yet"""
        try:
            result = await session.execute(
                select(DataImport)
                .where(DataImport.finished.is_(None))
                .order_by(DataImport.started)
                .limit(1)
            )
        except SQLAlchemyError as e:
            raise StoreUnavailableError(
                "Could not query unfinished data imports",
                original_exception=e,
                retry_delay=self.settings.IMPORT_ERROR_BACKOFF_SECONDS
            )
        return result.scalar_one_or_none()

    async def process_pending(self) -> int:
        """
        Process unfinished jobs one after another until none is left.

        Returns:
            Number of jobs handled (0 if another drain is already running)
        """
        if self._lock.locked():
            logger.debug("Data import already in progress, skipping this tick")
            return 0

        handled = 0
        async with self._lock:
            while not self.stop_event.is_set():
                async with self.session_maker() as session:
                    job = await self.next_unfinished_job(session)
                    if job is None:
                        break
                    await self.process_job(session, job)
                handled += 1
        return handled

    async def process_job(self, session: AsyncSession, job: DataImport):
        """Dispatch one job to its pipeline and always finalize it"""
        job_id = job.id
        type_name = job.type
        file_path = job.import_data_source
        logger.info(f"Processing data import {job_id} of type {type_name} from {file_path}")

        self.tracker.start(job_id)
        pipeline = None
        error_message = None
        try:
            try:
                source = ImportType(type_name).source
            except ValueError:
                raise UnknownImportTypeError(
                    f"Unsupported data import type {type_name}",
                    context={"job_id": str(job_id)}
                )

            pipeline = ImportPipeline(
                session,
                job_id,
                source,
                self.tracker,
                stop_event=self.stop_event,
                curated_majors=self._curated_majors(),
                super_airports=self._super_airports(),
                countries=self._countries(),
                batch_size=self.settings.BULK_BATCH_SIZE,
                progress_log_every=self.settings.PROGRESS_LOG_EVERY,
            )
            async with SnapshotReader(file_path) as reader:
                await pipeline.run(reader)

            if pipeline.cancelled:
                self.tracker.mark_cancelled(job_id)
        except Exception as e:
            logger.exception(f"Error processing data import {job_id}")
            await session.rollback()
            message = e.message if isinstance(e, SyncException) else str(e)
            error_message = f"{ERROR_PREFIX}{message}"
        finally:
            processed = pipeline.processed if pipeline is not None else 0
            await self._finalize(session, job_id, file_path, processed, error_message)

    async def _finalize(
        self,
        session: AsyncSession,
        job_id: UUID,
        file_path: str,
        processed: int,
        error_message: Optional[str],
    ):
        try:
            status_log = error_message or self.tracker.serialize(job_id)
            await session.execute(
                update(DataImport)
                .where(DataImport.id == job_id)
                .values(
                    finished=datetime.utcnow(),
                    total_records_processed=processed,
                    import_status_json=status_log,
                )
                .execution_options(synchronize_session=False)
            )
            await session.commit()
            logger.info(f"Data import {job_id} finished, {processed} records processed")
        finally:
            self.tracker.remove(job_id)
            self._delete_snapshot(file_path)

    @staticmethod
    def _delete_snapshot(file_path: str):
        try:
            Path(file_path).unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Could not delete snapshot file {file_path}: {e}")

    async def poll(self) -> int:
        """One scheduler tick, never raises"""
        try:
            return await self.process_pending()
        except Exception as e:
            delay = getattr(e, "retry_delay", self.settings.IMPORT_ERROR_BACKOFF_SECONDS)
            logger.exception(f"Error in data import worker, retrying in {delay} seconds")
            await self.wait(delay)
            return 0

    async def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """
        Wait until a running drain has finalized its current job.

        Callers set the stop event first, otherwise the drain moves on to the
        next queued job. Returns False if the timeout expired.
        """
        async def drained():
            async with self._lock:
                pass

        try:
            await asyncio.wait_for(drained(), timeout=timeout)
            return True
        except asyncio.TimeoutError:
            return False

    async def wait(self, seconds: float) -> bool:
        """Sleep unless the stop event fires first; returns True if stopped"""
        try:
            await asyncio.wait_for(self.stop_event.wait(), timeout=seconds)
            return True
        except asyncio.TimeoutError:
            return False

    def _curated_majors(self) -> FrozenSet[str]:
        if self.curated_majors is not None:
            return self.curated_majors
        return load_identifier_list(self.settings.MAJOR_AIRPORTS_FILE)

    def _super_airports(self) -> FrozenSet[str]:
        if self.super_airports is not None:
            return self.super_airports
        return load_identifier_list(self.settings.SUPER_AIRPORTS_FILE)

    def _countries(self) -> Mapping[str, str]:
        if self.countries is not None:
            return self.countries
        return load_country_lookup(self.settings.COUNTRIES_FILE)
