"""
Pydantic schemas for data validation and serialization.

Schemas:
    snapshot: Records mapping raw LittleNavmap snapshot rows onto live store columns
    progress: Per job import progress (also the persisted status log format)
    api: API endpoint request/response schemas

Features:
    - Snapshot rows are validated and coerced before they are hashed
    - Progress counters serialize to the JSON stored on finished jobs
    - OpenAPI schema generation for FastAPI

Usage:
    from schemas.snapshot import AirportRecord, RunwayRecord
    from schemas.progress import ImportStatus, AIRPORT
    from schemas.api import ImportStatusResponse, HealthCheckResponse

Example:
    record = AirportRecord(ident="LOWI", name="Innsbruck", laty=47.26, lonx=11.34)
    assert record.to_row()["icao"] == "LOWI"

Validation:
    Invalid snapshot rows raise pydantic.ValidationError, which the import
    pipeline turns into a skipped row.
"""

__all__ = [
    "AirportRecord",
    "RunwayRecord",
    "RunwayEndRecord",
    "ApproachRecord",
    "ImportStatus",
    "ImportElementStatus",
    "DataImportResponse",
    "ImportStatusResponse",
    "HealthCheckResponse",
]
