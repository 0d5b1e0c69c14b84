from sqlalchemy import Column, String, Integer, Enum, ForeignKey
from sqlalchemy.orm import relationship
from models.base import Base, SnapshotSource


class Approach(Base):
    """Published approach procedure, keyed by (source, native id)."""
    __tablename__ = "approaches"

    source = Column(Enum(SnapshotSource), primary_key=True)
    id = Column(Integer, primary_key=True, autoincrement=False)

    airport_icao = Column(
        String(5), ForeignKey("airports.icao", ondelete="CASCADE"), nullable=False, index=True
    )
    runway_name = Column(String(10), nullable=True)
    type = Column(String(25), nullable=False)
    suffix = Column(String(5), nullable=True)

    content_hash = Column(String(64), nullable=True)

    airport = relationship("Airport", back_populates="approaches")

    def __repr__(self) -> str:
        return f"<Approach {self.source.value}:{self.id} {self.airport_icao} {self.type}>"
