"""Report job model for tracking product export generation."""
import enum
import uuid

from sqlalchemy import JSON, Column, DateTime, Integer, String, Text
from sqlalchemy.sql import func

from app.database import Base
from app.models.upload_job import JobStatus


class ReportFormat(str, enum.Enum):
    CSV = "csv"
    XLSX = "xlsx"


class ReportJob(Base):
    """Model for tracking report generation jobs and their output file."""

    __tablename__ = "report_jobs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    format = Column(String(10), nullable=False, default=ReportFormat.CSV.value)
    status = Column(String(20), nullable=False, default=JobStatus.PENDING.value)
    file_path = Column(String(1024), nullable=True)
    download_url = Column(String(1024), nullable=True)
    total_records = Column(Integer, default=0, nullable=False)
    error_message = Column(Text, nullable=True)
    filters = Column(JSON, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False, index=True)
    updated_at = Column(
        DateTime, server_default=func.now(), onupdate=func.now(), nullable=False
    )
    completed_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=True)  # created_at + report TTL
