"""
Data import endpoints: upload snapshots and report their progress
"""

from fastapi import APIRouter, Depends, File, Header, HTTPException, Query, Request, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from api.dependencies import get_db, get_progress_tracker
from core.config import settings
from ingestion.progress import ProgressTracker
from models import DataImport
from models.base import ImportType
from schemas.api import DataImportResponse, ImportStatusResponse
from typing import List
from pathlib import Path
from uuid import UUID, uuid4
import shutil
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/imports", tags=["Imports"])


@router.post("/{import_type}", response_model=DataImportResponse, status_code=status.HTTP_201_CREATED)
async def create_import(
    request: Request,
    import_type: ImportType,
    file: UploadFile = File(..., description="LittleNavmap SQLite snapshot"),
    user_name: str = Header(..., alias="X-User-Name", min_length=1),
    db: AsyncSession = Depends(get_db)
):
    """
    Upload a snapshot and queue it for import.

    The file is stored under UPLOAD_DIR and deleted by the import worker once
    the job is finished, whatever the outcome.
    """
    request_id = getattr(request.state, "request_id", "-")
    upload_dir = Path(settings.UPLOAD_DIR)
    upload_dir.mkdir(parents=True, exist_ok=True)

    job_id = uuid4()
    target = upload_dir / f"{job_id}.sqlite"
    with target.open("wb") as out:
        shutil.copyfileobj(file.file, out)

    job = DataImport(
        id=job_id,
        type=import_type.value,
        import_data_source=str(target),
        user_name=user_name,
    )
    db.add(job)
    await db.commit()
    await db.refresh(job)

    logger.info(f"[{request_id}] Queued data import {job_id} ({import_type.value}) for {user_name}")
    return DataImportResponse.from_job(job)


@router.get("", response_model=List[DataImportResponse])
async def list_imports(
    limit: int = Query(50, ge=1, le=500, description="Maximum number of jobs"),
    db: AsyncSession = Depends(get_db),
    tracker: ProgressTracker = Depends(get_progress_tracker)
):
    """Most recent data imports first, running ones with live progress"""
    result = await db.execute(
        select(DataImport).order_by(DataImport.started.desc()).limit(limit)
    )
    return [
        DataImportResponse.from_job(job, live=tracker.get(job.id))
        for job in result.scalars().all()
    ]


@router.get("/{import_id}/status", response_model=ImportStatusResponse)
async def get_import_status(
    import_id: UUID,
    db: AsyncSession = Depends(get_db),
    tracker: ProgressTracker = Depends(get_progress_tracker)
):
    job = await db.get(DataImport, import_id)
    if job is None:
        raise HTTPException(status_code=404, detail=f"Data import {import_id} not found")
    return ImportStatusResponse.from_job(job, live=tracker.get(import_id))
