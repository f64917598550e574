"""Report request and response schemas."""
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator

from app.models.report_job import ReportFormat


class ReportFilters(BaseModel):
    """Optional, AND-combined constraints narrowing a report's products."""

    category_id: Optional[UUID] = Field(None, description="Exact category ID")
    category_name: Optional[str] = Field(
        None, max_length=255, description="Case-insensitive partial category name"
    )
    min_price: Optional[float] = Field(None, ge=0)
    max_price: Optional[float] = Field(None, ge=0)
    start_date: Optional[datetime] = Field(None, description="Created at or after")
    end_date: Optional[datetime] = Field(None, description="Created at or before")

    @field_validator("start_date", "end_date")
    @classmethod
    def to_naive_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        """Stored timestamps are naive UTC; compare like with like."""
        if value is not None and value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value

    @model_validator(mode="after")
    def check_ranges(self):
        if (
            self.min_price is not None
            and self.max_price is not None
            and self.min_price > self.max_price
        ):
            raise ValueError("min_price must not exceed max_price")
        if (
            self.start_date is not None
            and self.end_date is not None
            and self.start_date > self.end_date
        ):
            raise ValueError("start_date must not be after end_date")
        return self


class GenerateReportRequest(ReportFilters):
    """Request to generate a product report."""

    format: ReportFormat = ReportFormat.CSV

    def filters(self) -> ReportFilters:
        return ReportFilters(**self.model_dump(exclude={"format"}))


class GenerateReportResponse(BaseModel):
    """Acknowledgment returned while the report is generated in background."""

    job_id: str
    status: str
    format: str
    expires_at: datetime
    message: str = "Report generation started. Processing in background."


class ReportJobResponse(BaseModel):
    """Report job status response."""

    id: str
    format: str
    status: str
    file_path: Optional[str] = None
    download_url: Optional[str] = None
    total_records: int
    error_message: Optional[str] = None
    filters: Optional[dict] = None
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    class Config:
        from_attributes = True
