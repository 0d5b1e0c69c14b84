"""
Queue a LittleNavmap snapshot for import from the command line.

Usage:
    python scripts/run_import.py LittleNavmapMSFS /path/to/little_navmap_msfs.sqlite --user admin
    python scripts/run_import.py LittleNavmapXP11 /path/to/xp11.sqlite --user admin --process

The snapshot is copied into UPLOAD_DIR (the worker deletes its copy when the
job is finished). With --process the pending jobs are processed right away
instead of waiting for the background worker.
"""

import argparse
import asyncio
import logging
import shutil
import sys
import os
from pathlib import Path
from uuid import uuid4

sys.path.append(os.getcwd())

from core.config import settings
from core.database import build_engine, build_session_maker
from core.logging import setup_logging
from ingestion.orchestrator import ImportOrchestrator
from ingestion.progress import ProgressTracker
from models import DataImport
from models.base import ImportType

logger = logging.getLogger(__name__)


async def enqueue(session_maker, import_type: ImportType, snapshot: Path, user_name: str) -> DataImport:
    upload_dir = Path(settings.UPLOAD_DIR)
    upload_dir.mkdir(parents=True, exist_ok=True)

    job_id = uuid4()
    target = upload_dir / f"{job_id}.sqlite"
    shutil.copyfile(snapshot, target)

    async with session_maker() as session:
        job = DataImport(id=job_id, type=import_type.value, import_data_source=str(target), user_name=user_name)
        session.add(job)
        await session.commit()

    logger.info(f"Queued data import {job_id} ({import_type.value}) from {snapshot}")
    return job


async def main(args) -> int:
    snapshot = Path(args.snapshot)
    if not snapshot.is_file():
        logger.error(f"Snapshot file not found: {snapshot}")
        return 1

    engine = build_engine()
    session_maker = build_session_maker(engine)
    try:
        job = await enqueue(session_maker, ImportType(args.type), snapshot, args.user)

        if args.process:
            orchestrator = ImportOrchestrator(session_maker, ProgressTracker())
            handled = await orchestrator.process_pending()
            logger.info(f"Processed {handled} data imports")

            async with session_maker() as session:
                finished = await session.get(DataImport, job.id)
                logger.info(f"Data import {job.id} result: {finished.import_status_json}")
    finally:
        await engine.dispose()

    return 0


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Queue a LittleNavmap snapshot for import")
    parser.add_argument("type", choices=[t.value for t in ImportType], help="Data import type")
    parser.add_argument("snapshot", help="Path to the LittleNavmap SQLite snapshot")
    parser.add_argument("--user", default="cli", help="User name recorded on the job")
    parser.add_argument("--process", action="store_true", help="Process pending imports now")
    return parser.parse_args(argv)


if __name__ == "__main__":
    setup_logging()
    sys.exit(asyncio.run(main(parse_args())))
