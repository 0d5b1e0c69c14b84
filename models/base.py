from sqlalchemy.orm import declarative_base
import enum

Base = declarative_base()


# ============================================================================
# ENUMS
# ============================================================================

class SnapshotSource(str, enum.Enum):
    """Simulator data source a snapshot (and every row imported from it) belongs to"""
    MSFS = "msfs"
    XP11 = "xp11"


class ImportType(str, enum.Enum):
    """Data import type tag, selects the pipeline"""
    LITTLE_NAVMAP_MSFS = "LittleNavmapMSFS"
    LITTLE_NAVMAP_XP11 = "LittleNavmapXP11"

    @property
    def source(self) -> SnapshotSource:
        if self is ImportType.LITTLE_NAVMAP_MSFS:
            return SnapshotSource.MSFS
        return SnapshotSource.XP11


class ProcessingStatus(str, enum.Enum):
    """Per source airport population state"""
    NEEDS_HANDLING = "needs_handling"
    QUEUED = "queued"
    HANDLED = "handled"
