"""
Pydantic records mapping raw snapshot rows onto live store columns
"""

from pydantic import BaseModel, Field, validator
from typing import Optional, Dict, Any

MAX_ICAO_LENGTH = 5
MAX_NAME_LENGTH = 50


def _to_int(v):
    """Snapshot lengths are stored as REAL in some exports"""
    if v is None or v == "":
        return 0
    return int(float(v))


class SnapshotRecord(BaseModel):
    """Base for snapshot rows: alias = snapshot column, field name = store column"""

    def to_row(self) -> Dict[str, Any]:
        return self.dict()

    class Config:
        populate_by_name = True
        str_strip_whitespace = True


class AirportRecord(SnapshotRecord):
    """
    Row of the snapshot `airport` table.

    Ensures:
    - ident fits the fixed format code (otherwise the row is rejected)
    - name and city fit their columns
    - zero frequencies are treated as "no frequency"
    """

    icao: str = Field(..., alias="ident", min_length=1)
    name: str = "???"
    city: Optional[str] = None
    has_avgas: bool = False
    has_jetfuel: bool = False
    tower_frequency: Optional[int] = None
    atis_frequency: Optional[int] = None
    unicom_frequency: Optional[int] = None
    is_closed: bool = False
    is_military: bool = False
    gates: int = Field(0, alias="num_parking_gate")
    ga_ramps: int = Field(0, alias="num_parking_ga_ramp")
    runway_count: int = Field(0, alias="num_runways")
    longest_runway_length: int = 0
    longest_runway_surface: Optional[str] = None
    latitude: float = Field(..., alias="laty", ge=-90, le=90)
    longitude: float = Field(..., alias="lonx", ge=-180, le=180)
    altitude: int = 0

    @validator("icao")
    def check_icao(cls, v):
        """Fixed format code, at most 5 characters"""
        if len(v) > MAX_ICAO_LENGTH:
            raise ValueError(f"ICAO code {v} too long")
        return v

    @validator("name", pre=True)
    def clean_name(cls, v):
        if v is None or not str(v).strip():
            return "???"
        return str(v).strip()[:MAX_NAME_LENGTH]

    @validator("city", pre=True)
    def clean_city(cls, v):
        if v is None:
            return None
        return str(v).strip()[:MAX_NAME_LENGTH] or None

    @validator("tower_frequency", "atis_frequency", "unicom_frequency", pre=True)
    def zero_frequency_is_none(cls, v):
        if v is None or int(v) == 0:
            return None
        return int(v)

    @validator("gates", "ga_ramps", "runway_count", "longest_runway_length", "altitude", pre=True)
    def truncate_numbers(cls, v):
        return _to_int(v)

    @validator("has_avgas", "has_jetfuel", "is_closed", "is_military", pre=True)
    def null_flag_is_false(cls, v):
        return bool(v) if v is not None else False


class RunwayRecord(SnapshotRecord):
    """Row of the snapshot `runway` table joined with its airport ident."""

    id: int = Field(..., alias="runway_id")
    airport_icao: Optional[str] = Field(None, alias="ident")
    surface: str = "UNKNOWN"
    length: int = 0
    width: int = 0
    altitude: int = 0
    edge_light: Optional[str] = None
    center_light: Optional[str] = None

    @validator("surface", pre=True)
    def unknown_surface(cls, v):
        return v if v else "UNKNOWN"

    @validator("length", "width", "altitude", pre=True)
    def truncate_numbers(cls, v):
        return _to_int(v)


class RunwayEndRecord(SnapshotRecord):
    """Row of the snapshot `runway_end` table, joined to its owning runway."""

    id: int = Field(..., alias="runway_end_id")
    runway_id: int
    name: str
    offset_threshold: int = 0
    has_closed_markings: bool = False
    heading: float = 0.0
    left_vasi_type: Optional[str] = None
    left_vasi_pitch: Optional[float] = None
    right_vasi_type: Optional[str] = None
    right_vasi_pitch: Optional[float] = None
    approach_light_system: Optional[str] = Field(None, alias="app_light_system_type")
    latitude: float = Field(..., alias="laty")
    longitude: float = Field(..., alias="lonx")

    @validator("offset_threshold", pre=True)
    def truncate_offset(cls, v):
        return _to_int(v)

    @validator("has_closed_markings", pre=True)
    def null_flag_is_false(cls, v):
        return bool(v) if v is not None else False


class ApproachRecord(SnapshotRecord):
    """Row of the snapshot `approach` table."""

    id: int = Field(..., alias="approach_id")
    airport_icao: Optional[str] = Field(None, alias="airport_ident")
    runway_name: Optional[str] = None
    type: str
    suffix: Optional[str] = None
