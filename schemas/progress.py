"""
Pydantic schemas for import progress, serialized into the job's status log
"""

from pydantic import BaseModel, Field, computed_field
from typing import Dict

# Progress categories, in phase order
AIRPORT = "airport"
RUNWAY = "runway"
RUNWAY_END = "runwayEnd"
APPROACH = "approach"
AIRPORT_SIZE = "airportSize"

CATEGORIES = (AIRPORT, RUNWAY, RUNWAY_END, APPROACH, AIRPORT_SIZE)


def percent(processed: int, total: int) -> int:
    """Percent done, truncated"""
    if total <= 0:
        return 0
    return int(processed * 100 / total)


class ImportElementStatus(BaseModel):
    """Counters for one category of snapshot rows"""
    total: int = 0
    processed: int = 0
    new: int = 0
    updated: int = 0
    skipped: int = 0

    @computed_field
    @property
    def percent_done(self) -> int:
        return percent(self.processed, self.total)


class ImportStatus(BaseModel):
    """
    Progress of one import job.

    Invariants (kept by ingestion.progress.ProgressTracker):
    - processed <= total, for the job and for every element
    - total is the sum of the element totals
    """
    total: int = 0
    processed: int = 0
    elements: Dict[str, ImportElementStatus] = Field(default_factory=dict)
    cancelled: bool = False

    @computed_field
    @property
    def percent_done(self) -> int:
        return percent(self.processed, self.total)

    class Config:
        json_schema_extra = {
            "example": {
                "total": 4,
                "processed": 2,
                "percent_done": 50,
                "cancelled": False,
                "elements": {
                    "airport": {
                        "total": 2, "processed": 2, "new": 1,
                        "updated": 0, "skipped": 1, "percent_done": 100
                    },
                    "airportSize": {
                        "total": 2, "processed": 0, "new": 0,
                        "updated": 0, "skipped": 0, "percent_done": 0
                    }
                }
            }
        }
