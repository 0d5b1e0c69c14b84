from sqlalchemy import (
    Column, String, Integer, Float, Boolean, Enum, ForeignKey, ForeignKeyConstraint
)
from sqlalchemy.orm import relationship
from models.base import Base, SnapshotSource


class Runway(Base):
    """
    Runway owned by one airport, aggregate root for its runway ends.

    Keyed by (source, id): id is the native snapshot id, unique only within
    one snapshot source.
    """
    __tablename__ = "runways"

    source = Column(Enum(SnapshotSource), primary_key=True)
    id = Column(Integer, primary_key=True, autoincrement=False)

    airport_icao = Column(
        String(5), ForeignKey("airports.icao", ondelete="CASCADE"), nullable=False, index=True
    )

    surface = Column(String(15), nullable=False)
    length = Column(Integer, nullable=False)
    width = Column(Integer, nullable=False)
    altitude = Column(Integer, default=0, nullable=False)
    edge_light = Column(String(15), nullable=True)
    center_light = Column(String(15), nullable=True)

    content_hash = Column(String(64), nullable=True)

    # Relationships
    airport = relationship("Airport", back_populates="runways")
    runway_ends = relationship(
        "RunwayEnd", back_populates="runway", cascade="all, delete-orphan", passive_deletes=True
    )

    def __repr__(self) -> str:
        return f"<Runway {self.source.value}:{self.id} {self.airport_icao} {self.length}ft>"


class RunwayEnd(Base):
    """Runway end (threshold) owned by one runway of the same source."""
    __tablename__ = "runway_ends"

    source = Column(Enum(SnapshotSource), primary_key=True)
    id = Column(Integer, primary_key=True, autoincrement=False)
    runway_id = Column(Integer, nullable=False)

    name = Column(String(10), nullable=False)
    offset_threshold = Column(Integer, default=0, nullable=False)
    has_closed_markings = Column(Boolean, default=False, nullable=False)
    heading = Column(Float, nullable=False)
    left_vasi_type = Column(String(15), nullable=True)
    left_vasi_pitch = Column(Float, nullable=True)
    right_vasi_type = Column(String(15), nullable=True)
    right_vasi_pitch = Column(Float, nullable=True)
    approach_light_system = Column(String(15), nullable=True)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)

    content_hash = Column(String(64), nullable=True)

    runway = relationship("Runway", back_populates="runway_ends")

    __table_args__ = (
        ForeignKeyConstraint(
            ["source", "runway_id"],
            ["runways.source", "runways.id"],
            ondelete="CASCADE",
        ),
    )

    def __repr__(self) -> str:
        return f"<RunwayEnd {self.source.value}:{self.id} {self.name}>"
