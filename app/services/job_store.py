"""Persistence for upload and report job records."""
import enum
import logging
from datetime import datetime, timedelta
from typing import Any, Iterable, Optional

from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.database import utcnow
from app.models.report_job import ReportFormat, ReportJob
from app.models.upload_job import JobStatus, UploadJob
from app.schemas.upload import RowError
from app.services.exceptions import InvalidStatusTransition, JobNotFoundError

logger = logging.getLogger(__name__)

# Same-status rewrites are allowed so progress updates can resend the status.
ALLOWED_TRANSITIONS = {
    JobStatus.PENDING: {JobStatus.PENDING, JobStatus.PROCESSING, JobStatus.FAILED},
    JobStatus.PROCESSING: {JobStatus.PROCESSING, JobStatus.COMPLETED, JobStatus.FAILED},
    JobStatus.COMPLETED: {JobStatus.COMPLETED},
    JobStatus.FAILED: {JobStatus.FAILED},
}


class UploadJobPatch(BaseModel):
    """Sparse update for an upload job. Only explicitly set fields are written."""

    status: Optional[JobStatus] = None
    total_rows: Optional[int] = Field(None, ge=0)
    processed_rows: Optional[int] = Field(None, ge=0)
    success_count: Optional[int] = Field(None, ge=0)
    failed_count: Optional[int] = Field(None, ge=0)
    error_message: Optional[str] = None
    errors: Optional[list[RowError]] = None
    completed_at: Optional[datetime] = None


class ReportJobPatch(BaseModel):
    """Sparse update for a report job. Only explicitly set fields are written."""

    status: Optional[JobStatus] = None
    file_path: Optional[str] = None
    download_url: Optional[str] = None
    total_records: Optional[int] = Field(None, ge=0)
    error_message: Optional[str] = None
    completed_at: Optional[datetime] = None


def check_transition(current: str, new: JobStatus) -> None:
    """Raise InvalidStatusTransition unless current -> new moves forward."""
    if new not in ALLOWED_TRANSITIONS[JobStatus(current)]:
        raise InvalidStatusTransition(
            f"Cannot move job from '{current}' to '{new.value}'"
        )


def _column_value(value: Any) -> Any:
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, list):
        return [_column_value(item) for item in value]
    if isinstance(value, BaseModel):
        return value.model_dump()
    return value


def _get(db: Session, model, job_id: str):
    job = db.get(model, str(job_id))
    if job is None:
        raise JobNotFoundError(f"{_label(model)} with ID {job_id} not found")
    return job


def _label(model) -> str:
    return "Upload job" if model is UploadJob else "Report job"


def _update(db: Session, model, job_id: str, patch: BaseModel):
    """Apply a sparse patch field by field, then bump updated_at."""
    job = _get(db, model, job_id)

    for field in patch.model_fields_set:
        value = getattr(patch, field)
        if field == "status":
            check_transition(job.status, value)
        setattr(job, field, _column_value(value))

    job.updated_at = utcnow()
    db.commit()
    db.refresh(job)
    return job


def _list(db: Session, model, limit: int):
    return db.query(model).order_by(model.created_at.desc()).limit(limit).all()


def _delete_where(
    db: Session, model, statuses: Iterable[JobStatus], completed_before: datetime
):
    jobs = (
        db.query(model)
        .filter(
            model.status.in_([status.value for status in statuses]),
            model.completed_at < completed_before,
        )
        .all()
    )
    for job in jobs:
        db.delete(job)
    db.commit()
    logger.info(f"🧹 Deleted {len(jobs)} {model.__tablename__} finished before {completed_before}")
    return jobs


# Upload jobs

def create_upload_job(db: Session, file_name: str) -> UploadJob:
    now = utcnow()
    job = UploadJob(
        file_name=file_name,
        status=JobStatus.PENDING.value,
        created_at=now,
        updated_at=now,
    )
    db.add(job)
    db.commit()
    db.refresh(job)
    return job


def get_upload_job(db: Session, job_id: str) -> UploadJob:
    return _get(db, UploadJob, job_id)


def update_upload_job(db: Session, job_id: str, patch: UploadJobPatch) -> UploadJob:
    return _update(db, UploadJob, job_id, patch)


def list_upload_jobs(db: Session, limit: int = 50) -> list[UploadJob]:
    return _list(db, UploadJob, limit)


def delete_upload_jobs_where(
    db: Session, statuses: Iterable[JobStatus], completed_before: datetime
) -> list[UploadJob]:
    return _delete_where(db, UploadJob, statuses, completed_before)


# Report jobs

def create_report_job(
    db: Session,
    report_format: ReportFormat,
    filters: dict,
    ttl_hours: int = 24,
) -> ReportJob:
    """
    Create a pending report job.

    The expiry is fixed here, from the creation time, and never moves when
    generation finishes later.
    """
    now = utcnow()
    job = ReportJob(
        format=report_format.value,
        status=JobStatus.PENDING.value,
        filters=filters,
        created_at=now,
        updated_at=now,
        expires_at=now + timedelta(hours=ttl_hours),
    )
    db.add(job)
    db.commit()
    db.refresh(job)
    return job


def get_report_job(db: Session, job_id: str) -> ReportJob:
    return _get(db, ReportJob, job_id)


def update_report_job(db: Session, job_id: str, patch: ReportJobPatch) -> ReportJob:
    return _update(db, ReportJob, job_id, patch)


def list_report_jobs(db: Session, limit: int = 50) -> list[ReportJob]:
    return _list(db, ReportJob, limit)


def expired_report_jobs(db: Session, now: datetime) -> list[ReportJob]:
    """Completed report jobs whose expiry is before now."""
    return (
        db.query(ReportJob)
        .filter(
            ReportJob.status == JobStatus.COMPLETED.value,
            ReportJob.expires_at < now,
        )
        .all()
    )


def delete_report_jobs_where(
    db: Session, statuses: Iterable[JobStatus], completed_before: datetime
) -> list[ReportJob]:
    return _delete_where(db, ReportJob, statuses, completed_before)
