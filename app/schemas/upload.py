"""Bulk upload request and response schemas."""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class RowError(BaseModel):
    """A single row that could not be imported."""

    row: int = Field(..., ge=1, description="1-based position of the row in the file")
    error: str


class UploadResponse(BaseModel):
    """Acknowledgment returned while the file is processed in background."""

    job_id: str
    status: str
    message: str = "File upload started. Processing in background."


class UploadJobResponse(BaseModel):
    """Upload job status response."""

    id: str
    file_name: str
    status: str
    total_rows: int
    processed_rows: int
    success_count: int
    failed_count: int
    progress: int = 0
    error_message: Optional[str] = None
    errors: Optional[list[RowError]] = None
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True
