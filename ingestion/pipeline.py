"""
Phased import of one LittleNavmap snapshot into the live store.

Phases run strictly in order, each one relying on the rows committed by the
previous one:

    airports -> runways -> runway ends -> approaches -> airport sizes

Every phase streams its snapshot table, hash-reconciles each row against the
live store (New / Updated / Skipped), writes the accumulated sets in bulk and
commits once. Rows of this source that disappeared from the snapshot are
removed after a complete pass. A set stop event ends the current phase at the
next row boundary; whatever was read so far is still written.
"""

import asyncio
from contextlib import aclosing
from typing import Any, Dict, FrozenSet, Mapping, Optional, Set
from uuid import UUID
from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from core.exceptions import MissingReferenceError, RowError, RowValidationError
from ingestion.hashing import (
    AIRPORT_HASH_EXCLUDE,
    CHILD_HASH_EXCLUDE,
    ChangeKind,
    classify_change,
    content_hash,
)
from ingestion.loaders.bulk_loader import BulkLoader
from ingestion.progress import ProgressTracker
from ingestion.sizing import classify_airport_size
from ingestion.snapshot import SnapshotReader
from ingestion.spatial import airport_cells
from models import Airport, Approach, Runway, RunwayEnd
from models.base import ProcessingStatus, SnapshotSource
from schemas.progress import AIRPORT, AIRPORT_SIZE, APPROACH, RUNWAY, RUNWAY_END
from schemas.snapshot import AirportRecord, ApproachRecord, RunwayEndRecord, RunwayRecord
import logging

logger = logging.getLogger(__name__)


class ImportPipeline:
    """
    Runs the import phases for one job.

    Args:
        db_session: Live store session, owned by the caller
        job_id: Import job id (progress key)
        source: Snapshot source all imported rows belong to
        tracker: Shared progress tracker
        stop_event: Shutdown / cancellation signal, checked at every row
        curated_majors: Idents of the curated major airports (size 6)
        super_airports: Idents of airports able to handle super heavies
        countries: ident -> ISO country lookup
    """

    def __init__(
        self,
        db_session: AsyncSession,
        job_id: UUID,
        source: SnapshotSource,
        tracker: ProgressTracker,
        stop_event: Optional[asyncio.Event] = None,
        curated_majors: FrozenSet[str] = frozenset(),
        super_airports: FrozenSet[str] = frozenset(),
        countries: Optional[Mapping[str, str]] = None,
        batch_size: int = 500,
        progress_log_every: int = 1000,
    ):
        self.db = db_session
        self.job_id = job_id
        self.source = source
        self.tracker = tracker
        self.stop_event = stop_event
        self.curated_majors = curated_majors
        self.super_airports = super_airports
        self.countries = countries or {}
        self.batch_size = batch_size
        self.progress_log_every = progress_log_every
        self.loader = BulkLoader(db_session, batch_size=batch_size)

        self.cancelled = False
        self.processed = 0

        # Airports whose runways or approaches changed, their size is recalculated
        self._resize: Set[str] = set()
        # XP11 runways belonging to airports that exist in MSFS
        self._shadowed_runways: Set[int] = set()

    @property
    def populated_column(self) -> str:
        return f"has_been_populated_{self.source.value}"

    async def run(self, reader: SnapshotReader) -> int:
        """
        Run all phases against an opened snapshot.

        Returns:
            Number of snapshot rows and airports processed
        """
        counts = await reader.count_rows()
        for category, total in counts.items():
            self.tracker.set_total(self.job_id, category, total)
        # Corrected once the size phase knows how many airports need a size
        self.tracker.set_total(self.job_id, AIRPORT_SIZE, counts[AIRPORT])

        phases = (
            ("airports", lambda: self.import_airports(reader)),
            ("runways", lambda: self.import_runways(reader)),
            ("runway ends", lambda: self.import_runway_ends(reader)),
            ("approaches", lambda: self.import_approaches(reader)),
            ("airport sizes", self.calculate_sizes),
        )
        for name, phase in phases:
            logger.info(f"Data import {self.job_id}: processing {name}...")
            await phase()
            if self.cancelled:
                logger.warning(f"Data import {self.job_id} cancelled during {name} phase")
                break

        return self.processed

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _should_stop(self) -> bool:
        if not self.cancelled and self.stop_event is not None and self.stop_event.is_set():
            logger.warning(f"Aborting data import of {self.job_id}, the server is shutting down...")
            self.cancelled = True
        return self.cancelled

    def _record(self, category: str, kind: ChangeKind):
        self.tracker.record(self.job_id, category, kind)
        self.processed += 1
        if self.progress_log_every and self.processed % self.progress_log_every == 0:
            status = self.tracker.get(self.job_id)
            logger.info(
                f"Data import {self.job_id} has processed {status.processed} of "
                f"{status.total} [{status.percent_done} %]"
            )

    def _parse(self, record_cls, row: Dict[str, Any], category: str, key: Any):
        try:
            return record_cls(**row)
        except ValidationError as e:
            raise RowValidationError(
                f"Invalid {category} row",
                context={"category": category, "key": key},
                original_exception=e
            )

    def _skip(self, category: str, error: RowError):
        logger.warning(f"Skipping {category} {error.context.get('key')}: {error.message}")
        self._record(category, ChangeKind.SKIPPED)

    async def _delete_stale(self, model, stale_ids) -> int:
        deleted = 0
        stale_ids = sorted(stale_ids)
        for i in range(0, len(stale_ids), self.batch_size):
            chunk = stale_ids[i:i + self.batch_size]
            deleted += await self.loader.delete_where(
                model, model.source == self.source, model.id.in_(chunk)
            )
        return deleted

    # ------------------------------------------------------------------
    # Phase 1: airports
    # ------------------------------------------------------------------

    async def import_airports(self, reader: SnapshotReader) -> int:
        stored = {
            row[0]: row for row in await self.loader.fetch_rows((
                Airport.icao, Airport.content_hash, Airport.msfs, Airport.xp11,
                Airport.gates, Airport.ga_ramps, Airport.longest_runway_length,
                Airport.size, Airport.previous_size, getattr(Airport, self.populated_column),
            ))
        }
        source_flag = self.source.value
        inserts, updates, flag_updates = [], [], []
        seen: Set[str] = set()
        processed = 0

        async with aclosing(reader.iter_airports()) as rows:
            async for row in rows:
                if self._should_stop():
                    break
                processed += 1
                try:
                    record = self._parse(AirportRecord, row, AIRPORT, row.get("ident"))
                except RowError as e:
                    self._skip(AIRPORT, e)
                    continue

                icao = record.icao
                seen.add(icao)
                fields = record.to_row()
                fields["country"] = self.countries.get(icao)
                fields["supports_super"] = icao in self.super_airports
                new_hash = content_hash(fields, exclude=AIRPORT_HASH_EXCLUDE)

                existing = stored.get(icao)
                if existing is None:
                    inserts.append({
                        **fields,
                        **airport_cells(record.latitude, record.longitude),
                        "content_hash": new_hash,
                        "msfs": self.source == SnapshotSource.MSFS,
                        "xp11": self.source == SnapshotSource.XP11,
                        "has_been_populated_msfs": ProcessingStatus.NEEDS_HANDLING,
                        "has_been_populated_xp11": ProcessingStatus.NEEDS_HANDLING,
                        "size": None,
                        "previous_size": None,
                    })
                    self._record(AIRPORT, ChangeKind.NEW)
                    continue

                (_, stored_hash, in_msfs, in_xp11, gates, ga_ramps, longest,
                 size, previous_size, populated) = existing
                in_source = in_msfs if self.source == SnapshotSource.MSFS else in_xp11

                if self.source == SnapshotSource.XP11 and in_msfs:
                    # MSFS values win, XP11 only marks the airport as present
                    if in_source:
                        self._record(AIRPORT, ChangeKind.SKIPPED)
                    else:
                        flag_updates.append({
                            "icao": icao,
                            "xp11": True,
                            "has_been_populated_xp11": ProcessingStatus.NEEDS_HANDLING,
                        })
                        self._record(AIRPORT, ChangeKind.UPDATED)
                    continue

                kind = classify_change(new_hash, stored_hash, exists=True)
                if kind == ChangeKind.SKIPPED and in_source:
                    self._record(AIRPORT, ChangeKind.SKIPPED)
                    continue

                repopulate = (
                    not in_source
                    or gates != record.gates
                    or ga_ramps != record.ga_ramps
                    or longest != record.longest_runway_length
                )
                values_changed = kind == ChangeKind.UPDATED
                updates.append({
                    **fields,
                    **airport_cells(record.latitude, record.longitude),
                    "content_hash": new_hash,
                    source_flag: True,
                    self.populated_column: ProcessingStatus.NEEDS_HANDLING if repopulate else populated,
                    "previous_size": size if values_changed and size is not None else previous_size,
                    "size": None if values_changed else size,
                })
                self._record(AIRPORT, ChangeKind.UPDATED)

        logger.info("Done processing airports, performing bulk insert and update operations...")
        await self.loader.insert_many(Airport, inserts)
        await self.loader.update_many(Airport, updates)
        await self.loader.update_many(Airport, flag_updates)

        if not self.cancelled:
            gone = [
                icao for icao, row in stored.items()
                if icao not in seen and (row[2] if self.source == SnapshotSource.MSFS else row[3])
            ]
            for i in range(0, len(gone), self.batch_size):
                await self.loader.update_where(
                    Airport, {source_flag: False}, Airport.icao.in_(gone[i:i + self.batch_size])
                )
            if gone:
                logger.info(f"{len(gone)} airports no longer in the {self.source.value} snapshot")

        await self.loader.commit()
        logger.info(
            f"Airports: {len(inserts)} new, {len(updates) + len(flag_updates)} updated, "
            f"{processed - len(inserts) - len(updates) - len(flag_updates)} skipped"
        )
        return processed

    # ------------------------------------------------------------------
    # Phase 2: runways
    # ------------------------------------------------------------------

    async def _airport_sources(self) -> Dict[str, bool]:
        """icao -> whether the airport exists in MSFS"""
        rows = await self.loader.fetch_rows((Airport.icao, Airport.msfs))
        return {icao: msfs for icao, msfs in rows}

    async def import_runways(self, reader: SnapshotReader) -> int:
        airports = await self._airport_sources()
        stored = {
            row[0]: row for row in await self.loader.fetch_rows(
                (Runway.id, Runway.content_hash, Runway.airport_icao), Runway.source == self.source
            )
        }
        inserts, updates = [], []
        seen: Set[int] = set()
        processed = 0

        async with aclosing(reader.iter_runways()) as rows:
            async for row in rows:
                if self._should_stop():
                    break
                processed += 1
                try:
                    record = self._parse(RunwayRecord, row, RUNWAY, row.get("runway_id"))
                    if record.airport_icao not in airports:
                        raise MissingReferenceError(
                            f"airport {record.airport_icao} does not exist",
                            context={"category": RUNWAY, "key": record.id, "parent_key": record.airport_icao}
                        )
                except RowError as e:
                    self._skip(RUNWAY, e)
                    continue

                if self.source == SnapshotSource.XP11 and airports[record.airport_icao]:
                    self._shadowed_runways.add(record.id)
                    self._record(RUNWAY, ChangeKind.SKIPPED)
                    continue

                seen.add(record.id)
                fields = record.to_row()
                new_hash = content_hash(fields, exclude=CHILD_HASH_EXCLUDE)
                existing = stored.get(record.id)
                kind = classify_change(new_hash, existing[1] if existing else None, exists=existing is not None)

                if kind == ChangeKind.NEW:
                    inserts.append({**fields, "source": self.source, "content_hash": new_hash})
                    self._resize.add(record.airport_icao)
                elif kind == ChangeKind.UPDATED:
                    updates.append({**fields, "source": self.source, "content_hash": new_hash})
                    self._resize.update((record.airport_icao, existing[2]))
                self._record(RUNWAY, kind)

        logger.info("Done processing runways, performing bulk insert and update operations...")
        await self.loader.insert_many(Runway, inserts)
        await self.loader.update_many(Runway, updates)

        if not self.cancelled:
            stale = set(stored) - seen
            if stale:
                self._resize.update(stored[runway_id][2] for runway_id in stale)
                # Ends first, cascading deletes are not guaranteed on every backend
                stale_ids = sorted(stale)
                for i in range(0, len(stale_ids), self.batch_size):
                    await self.loader.delete_where(
                        RunwayEnd,
                        RunwayEnd.source == self.source,
                        RunwayEnd.runway_id.in_(stale_ids[i:i + self.batch_size]),
                    )
                await self._delete_stale(Runway, stale)

        await self.loader.commit()
        return processed

    # ------------------------------------------------------------------
    # Phase 3: runway ends
    # ------------------------------------------------------------------

    async def import_runway_ends(self, reader: SnapshotReader) -> int:
        runways = {
            runway_id: icao for runway_id, icao in await self.loader.fetch_rows(
                (Runway.id, Runway.airport_icao), Runway.source == self.source
            )
        }
        stored = {
            row[0]: row for row in await self.loader.fetch_rows(
                (RunwayEnd.id, RunwayEnd.content_hash, RunwayEnd.runway_id), RunwayEnd.source == self.source
            )
        }
        inserts, updates = [], []
        seen: Set[int] = set()
        processed = 0

        async with aclosing(reader.iter_runway_ends()) as rows:
            async for row in rows:
                if self._should_stop():
                    break
                processed += 1
                try:
                    record = self._parse(RunwayEndRecord, row, RUNWAY_END, row.get("runway_end_id"))
                    if record.runway_id in self._shadowed_runways:
                        self._record(RUNWAY_END, ChangeKind.SKIPPED)
                        continue
                    if record.runway_id not in runways:
                        raise MissingReferenceError(
                            f"runway {record.runway_id} does not exist",
                            context={"category": RUNWAY_END, "key": record.id, "parent_key": record.runway_id}
                        )
                except RowError as e:
                    self._skip(RUNWAY_END, e)
                    continue

                seen.add(record.id)
                fields = record.to_row()
                new_hash = content_hash(fields, exclude=CHILD_HASH_EXCLUDE)
                existing = stored.get(record.id)
                kind = classify_change(new_hash, existing[1] if existing else None, exists=existing is not None)

                if kind != ChangeKind.SKIPPED:
                    row_values = {**fields, "source": self.source, "content_hash": new_hash}
                    (inserts if kind == ChangeKind.NEW else updates).append(row_values)
                    self._resize.add(runways[record.runway_id])
                    if existing is not None and existing[2] in runways:
                        self._resize.add(runways[existing[2]])
                self._record(RUNWAY_END, kind)

        logger.info("Done processing runway ends, performing bulk insert and update operations...")
        await self.loader.insert_many(RunwayEnd, inserts)
        await self.loader.update_many(RunwayEnd, updates)

        if not self.cancelled:
            stale = set(stored) - seen
            if stale:
                self._resize.update(
                    runways[stored[end_id][2]] for end_id in stale if stored[end_id][2] in runways
                )
                await self._delete_stale(RunwayEnd, stale)

        await self.loader.commit()
        return processed

    # ------------------------------------------------------------------
    # Phase 4: approaches
    # ------------------------------------------------------------------

    async def import_approaches(self, reader: SnapshotReader) -> int:
        airports = await self._airport_sources()
        stored = {
            row[0]: row for row in await self.loader.fetch_rows(
                (Approach.id, Approach.content_hash, Approach.airport_icao), Approach.source == self.source
            )
        }
        inserts, updates = [], []
        seen: Set[int] = set()
        processed = 0

        async with aclosing(reader.iter_approaches()) as rows:
            async for row in rows:
                if self._should_stop():
                    break
                processed += 1
                try:
                    record = self._parse(ApproachRecord, row, APPROACH, row.get("approach_id"))
                    if record.airport_icao not in airports:
                        raise MissingReferenceError(
                            f"airport {record.airport_icao} does not exist",
                            context={"category": APPROACH, "key": record.id, "parent_key": record.airport_icao}
                        )
                except RowError as e:
                    self._skip(APPROACH, e)
                    continue

                if self.source == SnapshotSource.XP11 and airports[record.airport_icao]:
                    self._record(APPROACH, ChangeKind.SKIPPED)
                    continue

                seen.add(record.id)
                fields = record.to_row()
                new_hash = content_hash(fields, exclude=CHILD_HASH_EXCLUDE)
                existing = stored.get(record.id)
                kind = classify_change(new_hash, existing[1] if existing else None, exists=existing is not None)

                if kind != ChangeKind.SKIPPED:
                    row_values = {**fields, "source": self.source, "content_hash": new_hash}
                    (inserts if kind == ChangeKind.NEW else updates).append(row_values)
                    self._resize.add(record.airport_icao)
                    if existing is not None:
                        self._resize.add(existing[2])
                self._record(APPROACH, kind)

        logger.info("Done processing approaches, performing bulk insert and update operations...")
        await self.loader.insert_many(Approach, inserts)
        await self.loader.update_many(Approach, updates)

        if not self.cancelled:
            stale = set(stored) - seen
            if stale:
                self._resize.update(stored[approach_id][2] for approach_id in stale)
                await self._delete_stale(Approach, stale)

        await self.loader.commit()
        return processed

    # ------------------------------------------------------------------
    # Phase 5: airport sizes
    # ------------------------------------------------------------------

    async def calculate_sizes(self) -> int:
        """Classify every airport without a size, after resetting the ones whose data changed"""
        resize = sorted(self._resize)
        for i in range(0, len(resize), self.batch_size):
            await self.loader.update_where(
                Airport,
                {"previous_size": Airport.size, "size": None},
                Airport.icao.in_(resize[i:i + self.batch_size]),
                Airport.size.isnot(None),
            )

        pending = sorted(
            icao for (icao,) in await self.loader.fetch_rows((Airport.icao,), Airport.size.is_(None))
        )
        self.tracker.set_total(self.job_id, AIRPORT_SIZE, len(pending))
        logger.info(f"Calculating sizes of {len(pending)} airports...")

        updates = []
        processed = 0
        for i in range(0, len(pending), self.batch_size):
            if self._should_stop():
                break
            stmt = (
                select(Airport)
                .where(Airport.icao.in_(pending[i:i + self.batch_size]))
                .options(
                    selectinload(Airport.runways).selectinload(Runway.runway_ends),
                    selectinload(Airport.approaches),
                )
                .execution_options(populate_existing=True)
            )
            result = await self.db.execute(stmt)
            for airport in result.scalars():
                if self._should_stop():
                    break
                processed += 1
                # Airports present in MSFS are classified from MSFS data only
                sizing_source = SnapshotSource.MSFS if airport.msfs else SnapshotSource.XP11
                runways = [r for r in airport.runways if r.source == sizing_source]
                approaches = [a for a in airport.approaches if a.source == sizing_source]
                size = classify_airport_size(airport, runways, approaches, self.curated_majors)
                updates.append({"icao": airport.icao, "size": size})

                if airport.previous_size is None:
                    kind = ChangeKind.NEW
                elif airport.previous_size != size:
                    kind = ChangeKind.UPDATED
                else:
                    kind = ChangeKind.SKIPPED
                self._record(AIRPORT_SIZE, kind)

        logger.info("Done calculating airport sizes, performing bulk update operations...")
        await self.loader.update_many(Airport, updates)
        await self.loader.commit()
        return processed
