from sqlalchemy import Column, String, Integer, DateTime, Text, Uuid, Index
from datetime import datetime
import uuid
from models.base import Base


class DataImport(Base):
    """
    One uploaded snapshot import job.

    Purpose:
    - Queue for the import orchestrator (finished IS NULL means in flight)
    - Audit trail of all imports, rows are never deleted

    Design:
    - Created by the API when a snapshot is uploaded, afterwards only mutated
      by the orchestrator
    - type holds the ImportType value as plain text and is resolved per job by
      the orchestrator, unknown tags finalize the job with an error
    - import_status_json holds the serialized progress on success, or a human
      readable error string on failure
    - import_data_source is deleted from disk once the job is finalized
    """
    __tablename__ = "data_imports"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    type = Column(String(50), nullable=False)
    import_data_source = Column(String(500), nullable=False)

    started = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    finished = Column(DateTime, nullable=True)
    total_records_processed = Column(Integer, default=0, nullable=False)
    import_status_json = Column(Text, nullable=True)

    user_name = Column(String(256), nullable=False)

    __table_args__ = (
        Index("idx_data_import_unfinished", "finished", "started"),
    )

    def __repr__(self) -> str:
        return f"<DataImport {self.id} {self.type} finished={self.finished}>"
