"""Product report API endpoints."""
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from app.api.deps import get_current_user
from app.config import get_settings
from app.database import get_db
from app.schemas.report import (
    GenerateReportRequest,
    GenerateReportResponse,
    ReportJobResponse,
)
from app.services import job_store, reports
from app.services.exceptions import (
    JobNotFoundError,
    ReportExpiredError,
    ReportFileNotFoundError,
    ReportNotReadyError,
)
from app.tasks.report_tasks import run_report_job

router = APIRouter(
    prefix="/api/reports",
    tags=["reports"],
    dependencies=[Depends(get_current_user)],
)

settings = get_settings()
logger = logging.getLogger(__name__)


@router.post("/generate", response_model=GenerateReportResponse, status_code=202)
def generate_report(
    request: GenerateReportRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
):
    """
    Start generating a product report in background.

    Filters (all optional, AND-combined): category_id, category_name
    (partial, case-insensitive), min_price/max_price, start_date/end_date
    on product creation time. The download link expires 24 hours after
    this request.
    """
    job = reports.start_report(db, request)
    background_tasks.add_task(run_report_job, job.id)

    return GenerateReportResponse(
        job_id=job.id,
        status=job.status,
        format=job.format,
        expires_at=job.expires_at,
    )


@router.get("/status/{job_id}", response_model=ReportJobResponse)
def get_report_status(job_id: str, db: Session = Depends(get_db)):
    """Get report job status."""
    try:
        return job_store.get_report_job(db, job_id)
    except JobNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)


@router.get("/jobs", response_model=list[ReportJobResponse])
def list_report_jobs(db: Session = Depends(get_db)):
    """List the most recent report jobs, newest first."""
    return job_store.list_report_jobs(db, limit=settings.jobs_list_limit)


@router.get("/download/{job_id}")
def download_report(job_id: str, db: Session = Depends(get_db)):
    """
    Download a generated report as an attachment.

    Readiness, file presence and expiry are checked on every request.
    """
    try:
        download = reports.get_download(db, job_id)
    except (JobNotFoundError, ReportFileNotFoundError) as e:
        raise HTTPException(status_code=404, detail=e.message)
    except (ReportNotReadyError, ReportExpiredError) as e:
        raise HTTPException(status_code=400, detail=e.message)

    logger.info(f"📤 Serving report {job_id}: {download.file_name}")
    return FileResponse(
        download.file_path,
        media_type=download.media_type,
        filename=download.file_name,
    )
