"""
Pydantic schemas for API request/response models
"""

from pydantic import BaseModel, Field, validator
from typing import Optional, List
from datetime import datetime
from uuid import UUID
from schemas.progress import ImportStatus

ERROR_PREFIX = "ERROR processing: "


def parse_status_log(status_log: Optional[str]):
    """
    Split a persisted status log into (progress, error).

    The log holds either the serialized ImportStatus or an error string.
    """
    if not status_log:
        return None, None
    if status_log.startswith(ERROR_PREFIX):
        return None, status_log[len(ERROR_PREFIX):]
    try:
        return ImportStatus.model_validate_json(status_log), None
    except ValueError:
        return None, status_log


# ============================================================================
# Health Check Schemas
# ============================================================================

class HealthCheckResponse(BaseModel):
    """Health check response model"""
    database_connected: bool
    scheduler_running: bool = False
    unfinished_imports: int = 0
    imports_in_flight: List[UUID] = Field(default_factory=list)
    # Declared after the fields it is derived from
    status: str = Field("unhealthy", description="Overall system status: healthy, unhealthy")
    timestamp: datetime = Field(default_factory=datetime.utcnow)

    @validator("status", pre=True, always=True)
    def determine_status(cls, v, values):
        """Healthy only with a reachable live store"""
        if not values.get("database_connected", False):
            return "unhealthy"
        return "healthy"

    class Config:
        json_schema_extra = {
            "example": {
                "status": "healthy",
                "timestamp": "2024-01-15T10:30:00Z",
                "database_connected": True,
                "scheduler_running": True,
                "unfinished_imports": 1,
                "imports_in_flight": ["550e8400-e29b-41d4-a716-446655440000"]
            }
        }


# ============================================================================
# Data Import Schemas
# ============================================================================

class DataImportResponse(BaseModel):
    """One data import job"""
    id: UUID
    type: str
    user_name: str
    started: datetime
    finished: Optional[datetime] = None
    total_records_processed: int = 0
    progress: Optional[ImportStatus] = None
    error: Optional[str] = None

    @classmethod
    def from_job(cls, job, live: Optional[ImportStatus] = None):
        progress, error = parse_status_log(job.import_status_json)
        return cls(
            id=job.id,
            type=job.type,
            user_name=job.user_name,
            started=job.started,
            finished=job.finished,
            total_records_processed=job.total_records_processed or 0,
            progress=live or progress,
            error=error,
        )


class ImportStatusResponse(BaseModel):
    """
    Status of one import as shown to users.

    state:
        PROCESSING - queued or running (progress is live while running)
        COMPLETE   - finished, progress holds the final counters
        ERROR      - finished with an error message
    """
    id: UUID
    state: str
    finished: Optional[datetime] = None
    total_records_processed: int = 0
    progress: Optional[ImportStatus] = None
    error: Optional[str] = None

    @classmethod
    def from_job(cls, job, live: Optional[ImportStatus] = None):
        if job.finished is None:
            return cls(id=job.id, state="PROCESSING", progress=live)

        progress, error = parse_status_log(job.import_status_json)
        return cls(
            id=job.id,
            state="ERROR" if error else "COMPLETE",
            finished=job.finished,
            total_records_processed=job.total_records_processed or 0,
            progress=progress,
            error=error,
        )

    class Config:
        json_schema_extra = {
            "example": {
                "id": "550e8400-e29b-41d4-a716-446655440000",
                "state": "PROCESSING",
                "finished": None,
                "total_records_processed": 0,
                "progress": ImportStatus.Config.json_schema_extra["example"],
                "error": None
            }
        }
