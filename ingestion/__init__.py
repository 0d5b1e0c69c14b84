"""
Snapshot import and population components.

Modules:
    snapshot: Read-only streaming access to uploaded LittleNavmap snapshots
    pipeline: Phased, hash-reconciled import of one snapshot
    orchestrator: Job queue processing, dispatch and finalization
    scheduler: APScheduler integration for the background workers
    population: Workers handing "needs handling" airports to a populator
    progress: Thread-safe in-memory progress per running job
    sizing: Airport size classification
    spatial: S2 cell keys for proximity queries
    hashing: Content hashes and change classification
    datasets: Curated airport lists and the country lookup

Subpackages:
    loaders: Batched live store writes

Architecture:
    Every import runs five phases in order:

    1. Airports - new airports inserted, changed ones updated
    2. Runways - keyed by (source, native id)
    3. Runway ends - primary ends first, then secondary ends
    4. Approaches
    5. Airport sizes - recalculated for every airport without a size

    Each phase commits once. Rows that disappeared from the snapshot are only
    removed after a complete pass.

Usage:
    from ingestion.orchestrator import ImportOrchestrator
    from ingestion.progress import ProgressTracker
    from ingestion.scheduler import WorkerScheduler

Example:
    orchestrator = ImportOrchestrator(async_session_maker, ProgressTracker())
    handled = await orchestrator.process_pending()

    print(f"Processed {handled} data imports")

Error Handling:
    All components use custom exceptions from core.exceptions. Row defects
    are skipped and counted, job failures are written to the job's status
    log and never stop the worker.
"""

__all__ = [
    "SnapshotReader",
    "ImportPipeline",
    "ImportOrchestrator",
    "WorkerScheduler",
    "PopulationWorker",
    "ProgressTracker",
    "BulkLoader",
    "classify_airport_size",
    "content_hash",
]
