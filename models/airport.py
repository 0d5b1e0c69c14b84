from sqlalchemy import Column, String, Integer, Float, Boolean, Enum, Index
from sqlalchemy.orm import relationship
from models.base import Base, ProcessingStatus


class Airport(Base):
    """
    Airport reference data, aggregate root for runways and approaches.

    Design:
    - icao is the natural key (fixed format, at most 5 characters)
    - msfs / xp11 record which snapshot sources currently contain the airport
    - has_been_populated_* are owned by the population workers, the import only
      flags them back to NEEDS_HANDLING
    - size is None until the size phase has classified the airport, the last
      classification is kept in previous_size so consumers can detect changes
    - s2_cell3..s2_cell9 hold S2 cell tokens for proximity queries
    - content_hash summarizes every mutable snapshot field (see ingestion.hashing)
    """
    __tablename__ = "airports"

    icao = Column(String(5), primary_key=True)

    name = Column(String(50), nullable=False)
    city = Column(String(50), nullable=True)
    country = Column(String(2), nullable=True)

    # Services
    has_avgas = Column(Boolean, default=False, nullable=False)
    has_jetfuel = Column(Boolean, default=False, nullable=False)
    tower_frequency = Column(Integer, nullable=True)
    atis_frequency = Column(Integer, nullable=True)
    unicom_frequency = Column(Integer, nullable=True)
    is_closed = Column(Boolean, default=False, nullable=False)
    is_military = Column(Boolean, default=False, nullable=False)
    supports_super = Column(Boolean, default=False, nullable=False)

    # Runway aggregates
    gates = Column(Integer, default=0, nullable=False)
    ga_ramps = Column(Integer, default=0, nullable=False)
    runway_count = Column(Integer, default=0, nullable=False)
    longest_runway_length = Column(Integer, default=0, nullable=False)
    longest_runway_surface = Column(String(15), nullable=True)

    # Position
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    altitude = Column(Integer, default=0, nullable=False)

    # Sources
    msfs = Column(Boolean, default=False, nullable=False)
    xp11 = Column(Boolean, default=False, nullable=False)
    has_been_populated_msfs = Column(
        Enum(ProcessingStatus), default=ProcessingStatus.NEEDS_HANDLING, nullable=False
    )
    has_been_populated_xp11 = Column(
        Enum(ProcessingStatus), default=ProcessingStatus.NEEDS_HANDLING, nullable=False
    )

    # Derived
    size = Column(Integer, nullable=True, index=True)
    previous_size = Column(Integer, nullable=True)
    s2_cell3 = Column(String(16), nullable=True, index=True)
    s2_cell4 = Column(String(16), nullable=True, index=True)
    s2_cell5 = Column(String(16), nullable=True, index=True)
    s2_cell6 = Column(String(16), nullable=True, index=True)
    s2_cell7 = Column(String(16), nullable=True, index=True)
    s2_cell8 = Column(String(16), nullable=True, index=True)
    s2_cell9 = Column(String(16), nullable=True, index=True)

    content_hash = Column(String(64), nullable=True)

    # Relationships
    runways = relationship(
        "Runway", back_populates="airport", cascade="all, delete-orphan", passive_deletes=True
    )
    approaches = relationship(
        "Approach", back_populates="airport", cascade="all, delete-orphan", passive_deletes=True
    )

    __table_args__ = (
        Index("idx_airport_populated_msfs", "has_been_populated_msfs", "msfs"),
        Index("idx_airport_populated_xp11", "has_been_populated_xp11", "xp11"),
    )

    def __repr__(self) -> str:
        return f"<Airport {self.icao} size={self.size}>"
