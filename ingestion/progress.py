"""
In-memory, job keyed progress of running imports.

Written by the import pipeline, read concurrently by the status API, so every
access goes through one lock and readers only ever get copies.
"""

from typing import Dict, Optional
from uuid import UUID
import threading
from ingestion.hashing import ChangeKind
from schemas.progress import ImportElementStatus, ImportStatus, CATEGORIES


class ProgressTracker:
    """Thread-safe map of job id -> ImportStatus"""

    def __init__(self):
        self._lock = threading.Lock()
        self._jobs: Dict[UUID, ImportStatus] = {}

    def start(self, job_id: UUID) -> ImportStatus:
        """Register a job with an empty counter for every category"""
        status = ImportStatus(
            elements={category: ImportElementStatus() for category in CATEGORIES}
        )
        with self._lock:
            self._jobs[job_id] = status
            return status.model_copy(deep=True)

    def set_total(self, job_id: UUID, category: str, total: int):
        """
        Set the expected row count of a category.

        Never drops below what was already processed, and keeps the job total
        equal to the sum of the category totals.
        """
        with self._lock:
            status = self._jobs[job_id]
            element = status.elements.setdefault(category, ImportElementStatus())
            element.total = max(total, element.processed)
            status.total = sum(e.total for e in status.elements.values())

    def record(self, job_id: UUID, category: str, kind: ChangeKind, count: int = 1):
        """Count processed rows; a low estimate is raised instead of overshooting"""
        with self._lock:
            status = self._jobs[job_id]
            element = status.elements.setdefault(category, ImportElementStatus())
            element.processed += count
            if kind == ChangeKind.NEW:
                element.new += count
            elif kind == ChangeKind.UPDATED:
                element.updated += count
            else:
                element.skipped += count

            if element.processed > element.total:
                status.total += element.processed - element.total
                element.total = element.processed
            status.processed += count

    def mark_cancelled(self, job_id: UUID):
        with self._lock:
            if job_id in self._jobs:
                self._jobs[job_id].cancelled = True

    def get(self, job_id: UUID) -> Optional[ImportStatus]:
        with self._lock:
            status = self._jobs.get(job_id)
            return status.model_copy(deep=True) if status is not None else None

    def serialize(self, job_id: UUID) -> Optional[str]:
        with self._lock:
            status = self._jobs.get(job_id)
            return status.model_dump_json() if status is not None else None

    def remove(self, job_id: UUID):
        with self._lock:
            self._jobs.pop(job_id, None)

    def job_ids(self):
        with self._lock:
            return list(self._jobs)

    def __contains__(self, job_id: UUID) -> bool:
        with self._lock:
            return job_id in self._jobs
