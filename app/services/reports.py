"""Product report generation, download checks and expiry cleanup."""
import csv
import logging
from datetime import datetime, timedelta
from pathlib import Path
from typing import Iterable, NamedTuple

from openpyxl import Workbook
from sqlalchemy.orm import Session

from app.config import get_settings
from app.database import utcnow
from app.models.product import Product
from app.models.report_job import ReportFormat, ReportJob
from app.models.upload_job import JobStatus
from app.schemas.report import GenerateReportRequest, ReportFilters
from app.services import catalog, job_store
from app.services.exceptions import (
    ReportExpiredError,
    ReportFileNotFoundError,
    ReportNotReadyError,
)
from app.services.job_store import ReportJobPatch

settings = get_settings()
logger = logging.getLogger(__name__)

REPORT_COLUMNS = [
    "Product ID",
    "Unique ID",
    "Product Name",
    "Price",
    "Category ID",
    "Category Name",
    "Image",
    "Created At",
    "Updated At",
]

MEDIA_TYPES = {
    ReportFormat.CSV.value: "text/csv",
    ReportFormat.XLSX.value: "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}

CSV_CHUNK_SIZE = 500


class ReportDownload(NamedTuple):
    file_path: Path
    file_name: str
    media_type: str


def start_report(db: Session, request: GenerateReportRequest) -> ReportJob:
    """Create the pending report job with a copy of the request's filters."""
    filters = request.filters().model_dump(mode="json", exclude_none=True)
    job = job_store.create_report_job(
        db, request.format, filters, ttl_hours=settings.report_ttl_hours
    )
    logger.info(f"🆔 Created report job {job.id} ({job.format}) filters={filters}")
    return job


def report_path(job_id: str, report_format: str) -> Path:
    return Path(settings.reports_dir) / f"products-report-{job_id}.{report_format}"


def download_url_for(job_id: str) -> str:
    return f"/api/reports/download/{job_id}"


def product_values(product: Product) -> list:
    return [
        product.id,
        product.unique_id,
        product.name,
        product.price,
        product.category_id,
        product.category.name if product.category else "",
        product.image or "",
        product.created_at,
        product.updated_at,
    ]


def _csv_cell(value):
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def write_csv(file_path: Path, products: Iterable[Product]) -> int:
    """
    Stream products into a CSV file: one header row, one row per product.

    Returns:
        Number of product rows written
    """
    written = 0
    with open(file_path, "w", encoding="utf-8", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(REPORT_COLUMNS)
        for product in products:
            writer.writerow([_csv_cell(value) for value in product_values(product)])
            written += 1
    return written


def write_xlsx(file_path: Path, products: list[Product]) -> int:
    """Write all products to a single-sheet workbook in one save."""
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = "Products"
    sheet.append(REPORT_COLUMNS)
    for product in products:
        values = product_values(product)
        values[3] = float(values[3])
        sheet.append(values)
    workbook.save(file_path)
    return len(products)


def generate_report_file(db: Session, job_id: str) -> ReportJob:
    """
    Run a pending report job to completion.

    Exceptions propagate; the task boundary records them as a failed job.
    A partially written file is removed before re-raising.
    """
    job = job_store.update_report_job(
        db, job_id, ReportJobPatch(status=JobStatus.PROCESSING)
    )
    logger.info(f"⚙️ Generating report {job_id} as {job.format}")

    filters = ReportFilters.model_validate(job.filters or {})
    file_path = report_path(job_id, job.format)
    file_path.parent.mkdir(parents=True, exist_ok=True)
    query = catalog.filtered_products(db, filters)

    try:
        if job.format == ReportFormat.CSV.value:
            total = write_csv(file_path, query.yield_per(CSV_CHUNK_SIZE))
        else:
            total = write_xlsx(file_path, query.all())
    except Exception:
        file_path.unlink(missing_ok=True)
        raise

    job = job_store.update_report_job(
        db,
        job_id,
        ReportJobPatch(
            status=JobStatus.COMPLETED,
            total_records=total,
            file_path=str(file_path),
            download_url=download_url_for(job_id),
            completed_at=utcnow(),
        ),
    )
    logger.info(f"🏁 Report {job_id} completed: {total} records -> {file_path}")
    return job


def get_download(db: Session, job_id: str) -> ReportDownload:
    """
    Resolve a report for download, re-checking readiness on every call.

    Raises:
        JobNotFoundError: Unknown job
        ReportNotReadyError: Job has not completed
        ReportFileNotFoundError: File missing from disk
        ReportExpiredError: Past the job's expires_at
    """
    job = job_store.get_report_job(db, job_id)

    if job.status != JobStatus.COMPLETED.value:
        raise ReportNotReadyError("Report is not ready yet")

    if not job.file_path or not Path(job.file_path).exists():
        raise ReportFileNotFoundError("Report file not found")

    if job.expires_at is not None and utcnow() >= job.expires_at:
        raise ReportExpiredError("Report has expired")

    file_path = Path(job.file_path)
    return ReportDownload(
        file_path=file_path,
        file_name=file_path.name,
        media_type=MEDIA_TYPES.get(job.format, "application/octet-stream"),
    )


def _remove_file(file_path) -> None:
    if file_path and Path(file_path).exists():
        Path(file_path).unlink()
        logger.info(f"🧹 Removed report file {file_path}")


def cleanup_expired_reports(db: Session) -> int:
    """Delete completed reports past their expiry, file first, then record."""
    expired = job_store.expired_report_jobs(db, utcnow())
    for job in expired:
        _remove_file(job.file_path)
        db.delete(job)
    db.commit()
    logger.info(f"🧹 Cleaned up {len(expired)} expired reports")
    return len(expired)


def cleanup_old_report_jobs(db: Session, days_old: int = 30) -> int:
    """Delete completed/failed report jobs finished more than days_old ago."""
    cutoff = utcnow() - timedelta(days=days_old)
    deleted = job_store.delete_report_jobs_where(
        db, [JobStatus.COMPLETED, JobStatus.FAILED], cutoff
    )
    for job in deleted:
        _remove_file(job.file_path)
    return len(deleted)
