"""Upload job model for tracking bulk product import progress."""
import enum
import uuid

from sqlalchemy import JSON, Column, DateTime, Integer, String, Text
from sqlalchemy.sql import func

from app.database import Base


class JobStatus(str, enum.Enum):
    """Lifecycle of a background job. Transitions only move forward."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class UploadJob(Base):
    """Model for tracking CSV/XLSX upload and processing jobs."""

    __tablename__ = "upload_jobs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    file_name = Column(String(500), nullable=False)
    status = Column(String(20), nullable=False, default=JobStatus.PENDING.value)
    total_rows = Column(Integer, default=0, nullable=False)
    processed_rows = Column(Integer, default=0, nullable=False)
    success_count = Column(Integer, default=0, nullable=False)
    failed_count = Column(Integer, default=0, nullable=False)
    error_message = Column(Text, nullable=True)
    errors = Column(JSON, nullable=True)  # [{"row": 2, "error": "..."}]
    created_at = Column(DateTime, server_default=func.now(), nullable=False, index=True)
    updated_at = Column(
        DateTime, server_default=func.now(), onupdate=func.now(), nullable=False
    )
    completed_at = Column(DateTime, nullable=True)

    @property
    def progress(self) -> int:
        """Percentage of rows processed, 0 until the row count is known."""
        if not self.total_rows:
            return 0
        return round(self.processed_rows / self.total_rows * 100)
