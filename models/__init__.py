"""
SQLAlchemy ORM models for the live store.

Models:
    base: Base declarative class and shared enums (SnapshotSource, ImportType, ProcessingStatus)
    airport: Airport reference data with derived size and S2 cell fields
    runway: Runways and runway ends
    approach: Approach procedures
    data_import: Snapshot import jobs

Relationships:
    - Airport → Runway (one-to-many, cascade delete)
    - Runway → RunwayEnd (one-to-many, cascade delete)
    - Airport → Approach (one-to-many, cascade delete)

Usage:
    from models import Airport, Runway, RunwayEnd, Approach, DataImport
    from models.base import SnapshotSource, ImportType, ProcessingStatus
"""

from models.base import Base, SnapshotSource, ImportType, ProcessingStatus
from models.airport import Airport
from models.runway import Runway, RunwayEnd
from models.approach import Approach
from models.data_import import DataImport

__all__ = [
    "Base",
    "SnapshotSource",
    "ImportType",
    "ProcessingStatus",
    "Airport",
    "Runway",
    "RunwayEnd",
    "Approach",
    "DataImport",
]
