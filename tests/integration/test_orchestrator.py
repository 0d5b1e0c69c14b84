"""
Integration tests for the import orchestrator (job dispatch and finalization)
"""

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock
import pytest
from core.config import Settings
from core.exceptions import StoreUnavailableError
from ingestion.orchestrator import ImportOrchestrator
from ingestion.pipeline import ImportPipeline
from ingestion.progress import ProgressTracker
from models import Airport, DataImport
from models.base import ImportType
from schemas.api import ERROR_PREFIX
from schemas.progress import ImportStatus


@pytest.fixture
def tracker():
    return ProgressTracker()


@pytest.fixture
def orchestrator(session_maker, tracker, curated_majors):
    return ImportOrchestrator(
        session_maker,
        tracker,
        settings=Settings(IMPORT_ERROR_BACKOFF_SECONDS=12.0),
        curated_majors=curated_majors,
        super_airports=frozenset({"KBIG"}),
        countries={"KBIG": "US", "KSML": "IT"},
    )


@pytest.fixture
def enqueue(session_maker):
    """Create an unfinished job, returns its id"""

    async def _enqueue(path, import_type=ImportType.LITTLE_NAVMAP_MSFS.value):
        async with session_maker() as session:
            job = DataImport(type=import_type, import_data_source=str(path), user_name="tester")
            session.add(job)
            await session.commit()
            return job.id

    return _enqueue


async def load_job(session_maker, job_id) -> DataImport:
    async with session_maker() as session:
        return await session.get(DataImport, job_id)


@pytest.mark.asyncio
async def test_successful_job_is_finalized(orchestrator, enqueue, write_snapshot, sample_snapshot, session_maker, tracker):
    path = write_snapshot(sample_snapshot)
    job_id = await enqueue(path)

    handled = await orchestrator.process_pending()

    assert handled == 1
    job = await load_job(session_maker, job_id)
    assert job.finished is not None
    assert job.total_records_processed == 21

    status = ImportStatus.model_validate_json(job.import_status_json)
    assert status.percent_done == 100
    assert status.cancelled is False
    assert status.elements["airport"].new == 3

    assert not Path(path).exists()
    assert job_id not in tracker

    async with session_maker() as session:
        kbig = await session.get(Airport, "KBIG")
        ksml = await session.get(Airport, "KSML")
    assert (kbig.country, kbig.supports_super, kbig.size) == ("US", True, 6)
    assert (ksml.country, ksml.supports_super) == ("IT", False)


@pytest.mark.asyncio
async def test_failing_job_records_error(orchestrator, enqueue, write_snapshot, snapshot_builder, session_maker):
    builder = snapshot_builder()
    airport = builder.add_airport("KONE")
    builder.add_runway(airport, 5000)
    path = write_snapshot(builder)
    job_id = await enqueue(path)

    assert await orchestrator.process_pending() == 1

    job = await load_job(session_maker, job_id)
    assert job.finished is not None
    assert job.total_records_processed == 0
    assert job.import_status_json == f"{ERROR_PREFIX}Table approach contains no rows"
    assert not Path(path).exists()


@pytest.mark.asyncio
async def test_missing_snapshot_records_error(orchestrator, enqueue, tmp_path, session_maker):
    job_id = await enqueue(tmp_path / "gone.sqlite")

    assert await orchestrator.process_pending() == 1

    job = await load_job(session_maker, job_id)
    assert job.import_status_json == f"{ERROR_PREFIX}Snapshot file does not exist"


@pytest.mark.asyncio
async def test_unknown_type_is_finalized_without_blocking_the_queue(
    orchestrator, enqueue, write_snapshot, sample_snapshot, session_maker
):
    unknown_path = write_snapshot(sample_snapshot)
    unknown_id = await enqueue(unknown_path, "FullSnapshotB")
    good_id = await enqueue(write_snapshot(sample_snapshot))

    assert await orchestrator.process_pending() == 2

    unknown = await load_job(session_maker, unknown_id)
    assert unknown.finished is not None
    assert unknown.import_status_json == f"{ERROR_PREFIX}Unsupported data import type FullSnapshotB"
    assert not Path(unknown_path).exists()

    good = await load_job(session_maker, good_id)
    assert good.finished is not None
    assert good.total_records_processed == 21


@pytest.mark.asyncio
async def test_error_does_not_stop_later_jobs(orchestrator, enqueue, write_snapshot, sample_snapshot, tmp_path, session_maker):
    broken_id = await enqueue(tmp_path / "gone.sqlite")
    good_id = await enqueue(write_snapshot(sample_snapshot))

    assert await orchestrator.process_pending() == 2

    broken = await load_job(session_maker, broken_id)
    good = await load_job(session_maker, good_id)
    assert broken.import_status_json.startswith(ERROR_PREFIX)
    assert good.total_records_processed == 21


@pytest.mark.asyncio
async def test_only_one_drain_runs_at_a_time(orchestrator, enqueue, write_snapshot, sample_snapshot, session_maker):
    first = await enqueue(write_snapshot(sample_snapshot))
    second = await enqueue(write_snapshot(sample_snapshot))

    results = await asyncio.gather(orchestrator.process_pending(), orchestrator.process_pending())

    assert sorted(results) == [0, 2]
    assert not orchestrator.is_busy
    for job_id in (first, second):
        assert (await load_job(session_maker, job_id)).finished is not None


@pytest.mark.asyncio
async def test_cancelled_job_is_finalized(orchestrator, enqueue, write_snapshot, sample_snapshot, session_maker):
    path = write_snapshot(sample_snapshot)
    job_id = await enqueue(path)
    orchestrator.stop_event.set()

    async with session_maker() as session:
        job = await orchestrator.next_unfinished_job(session)
        await orchestrator.process_job(session, job)

    job = await load_job(session_maker, job_id)
    assert job.finished is not None
    assert job.total_records_processed == 0
    assert ImportStatus.model_validate_json(job.import_status_json).cancelled is True
    assert not Path(path).exists()


@pytest.mark.asyncio
async def test_stop_event_prevents_new_jobs(orchestrator, enqueue, write_snapshot, sample_snapshot, session_maker):
    job_id = await enqueue(write_snapshot(sample_snapshot))
    orchestrator.stop_event.set()

    assert await orchestrator.process_pending() == 0
    assert (await load_job(session_maker, job_id)).finished is None


@pytest.mark.asyncio
async def test_poll_backs_off_with_retry_delay(orchestrator):
    orchestrator.process_pending = AsyncMock(side_effect=StoreUnavailableError("store down", retry_delay=7.0))
    orchestrator.wait = AsyncMock(return_value=False)

    assert await orchestrator.poll() == 0
    orchestrator.wait.assert_awaited_once_with(7.0)


@pytest.mark.asyncio
async def test_poll_backs_off_with_configured_delay(orchestrator):
    orchestrator.process_pending = AsyncMock(side_effect=RuntimeError("boom"))
    orchestrator.wait = AsyncMock(return_value=False)

    assert await orchestrator.poll() == 0
    orchestrator.wait.assert_awaited_once_with(12.0)


@pytest.mark.asyncio
async def test_wait_is_cut_short_by_stop_event(orchestrator):
    assert await orchestrator.wait(0.01) is False
    orchestrator.stop_event.set()
    assert await orchestrator.wait(30) is True


@pytest.mark.asyncio
async def test_wait_idle_returns_after_running_job_is_finalized(
    orchestrator, enqueue, write_snapshot, sample_snapshot, session_maker, monkeypatch
):
    path = write_snapshot(sample_snapshot)
    job_id = await enqueue(path)
    in_airports = asyncio.Event()
    release = asyncio.Event()
    import_airports = ImportPipeline.import_airports

    async def held_airports(self, reader):
        in_airports.set()
        await release.wait()
        return await import_airports(self, reader)

    monkeypatch.setattr(ImportPipeline, "import_airports", held_airports)

    drain = asyncio.create_task(orchestrator.process_pending())
    await in_airports.wait()
    orchestrator.stop_event.set()

    assert await orchestrator.wait_idle(timeout=0.05) is False
    assert (await load_job(session_maker, job_id)).finished is None

    release.set()
    assert await orchestrator.wait_idle(timeout=5) is True
    assert await drain == 1

    job = await load_job(session_maker, job_id)
    assert job.finished is not None
    assert ImportStatus.model_validate_json(job.import_status_json).cancelled is True
    assert not Path(path).exists()


@pytest.mark.asyncio
async def test_countries_read_from_configured_file(
    session_maker, tracker, curated_majors, enqueue, write_snapshot, sample_snapshot, tmp_path
):
    countries = tmp_path / "airports.csv"
    countries.write_text("id,ident,iso_country\n1,KBIG,US\n")
    orchestrator = ImportOrchestrator(
        session_maker,
        tracker,
        settings=Settings(COUNTRIES_FILE=str(countries)),
        curated_majors=curated_majors,
        super_airports=frozenset(),
    )
    await enqueue(write_snapshot(sample_snapshot))

    assert await orchestrator.process_pending() == 1

    async with session_maker() as session:
        kbig = await session.get(Airport, "KBIG")
        ksml = await session.get(Airport, "KSML")
    assert (kbig.country, ksml.country) == ("US", None)
