"""
Population workers - hand airports flagged "needs handling" to a populator.

One worker per snapshot source. The per-source flag on the airport moves
NEEDS_HANDLING -> QUEUED -> HANDLED. Airports still QUEUED when a worker
starts were interrupted by a crash and go back to NEEDS_HANDLING first.
"""

from abc import ABC, abstractmethod
import asyncio
from typing import List, Optional
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from models import Airport
from models.base import ProcessingStatus, SnapshotSource
import logging

logger = logging.getLogger(__name__)


class AirportPopulator(ABC):
    """Collaborator that fills airports of one source with gameplay content"""

    @abstractmethod
    async def populate(self, session: AsyncSession, airports: List[Airport], source: SnapshotSource):
        """Populate a batch of airports; raising leaves the batch unhandled"""
        pass


class LoggingPopulator(AirportPopulator):
    """Default populator, only reports what it was given"""

    async def populate(self, session: AsyncSession, airports: List[Airport], source: SnapshotSource):
        logger.info(
            f"Populating {len(airports)} {source.value} airports: "
            f"{', '.join(a.icao for a in airports)}"
        )


class PopulationWorker:
    """
    Polls for airports of one source that need populating.

    Args:
        source: Snapshot source the worker is responsible for
        populator: Collaborator doing the actual work
        session_maker: Live store session factory
        stop_event: Shutdown signal, checked between batches
        batch_size: Airports per populator call
        error_backoff_seconds: Wait after a failed batch
    """

    def __init__(
        self,
        source: SnapshotSource,
        populator: AirportPopulator,
        session_maker: async_sessionmaker,
        stop_event: Optional[asyncio.Event] = None,
        batch_size: int = 100,
        error_backoff_seconds: float = 30.0,
    ):
        self.source = source
        self.populator = populator
        self.session_maker = session_maker
        self.stop_event = stop_event or asyncio.Event()
        self.batch_size = batch_size
        self.error_backoff_seconds = error_backoff_seconds
        self.recovered = False

    @property
    def status_column(self):
        return getattr(Airport, f"has_been_populated_{self.source.value}")

    @property
    def source_column(self):
        return getattr(Airport, self.source.value)

    async def _set_status(self, session: AsyncSession, icaos: List[str], status: ProcessingStatus):
        await session.execute(
            update(Airport)
            .where(Airport.icao.in_(icaos))
            .values({self.status_column: status})
            .execution_options(synchronize_session=False)
        )
        await session.commit()

    async def reset_queued(self) -> int:
        """Crash recovery: QUEUED airports go back to NEEDS_HANDLING"""
        async with self.session_maker() as session:
            result = await session.execute(
                update(Airport)
                .where(self.status_column == ProcessingStatus.QUEUED)
                .values({self.status_column: ProcessingStatus.NEEDS_HANDLING})
                .execution_options(synchronize_session=False)
            )
            await session.commit()

        self.recovered = True
        reset = result.rowcount or 0
        if reset:
            logger.warning(f"Reset {reset} queued {self.source.value} airports to needs handling")
        return reset

    async def next_batch(self, session: AsyncSession) -> List[Airport]:
        """Airports of this source with a size that still need handling"""
        result = await session.execute(
            select(Airport)
            .where(
                self.status_column == ProcessingStatus.NEEDS_HANDLING,
                self.source_column.is_(True),
                Airport.size.isnot(None),
            )
            .order_by(Airport.icao)
            .limit(self.batch_size)
        )
        return list(result.scalars().all())

    async def poll(self) -> int:
        """
        Handle batches until fewer than batch_size airports are waiting.

        Returns:
            Number of airports handled
        """
        if not self.recovered:
            await self.reset_queued()

        handled = 0
        while not self.stop_event.is_set():
            async with self.session_maker() as session:
                airports = await self.next_batch(session)
                if not airports:
                    break

                icaos = [a.icao for a in airports]
                await self._set_status(session, icaos, ProcessingStatus.QUEUED)
                try:
                    await self.populator.populate(session, airports, self.source)
                except Exception:
                    logger.exception(
                        f"Error populating {len(icaos)} {self.source.value} airports, "
                        f"retrying in {self.error_backoff_seconds} seconds"
                    )
                    await session.rollback()
                    await self._set_status(session, icaos, ProcessingStatus.NEEDS_HANDLING)
                    await self._wait(self.error_backoff_seconds)
                    break

                await self._set_status(session, icaos, ProcessingStatus.HANDLED)
                handled += len(icaos)

            if len(icaos) < self.batch_size:
                break

        if handled:
            logger.info(f"Populated {handled} {self.source.value} airports")
        return handled

    async def _wait(self, seconds: float):
        try:
            await asyncio.wait_for(self.stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass
