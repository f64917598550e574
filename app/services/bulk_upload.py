"""Bulk product import: row validation, category resolution and batched inserts."""
import logging
import uuid
from datetime import timedelta
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Optional

from sqlalchemy.orm import Session

from app.config import get_settings
from app.database import utcnow
from app.models.category import Category
from app.models.upload_job import JobStatus, UploadJob
from app.schemas.upload import RowError
from app.services import catalog, job_store
from app.services.exceptions import InvalidFileTypeError
from app.services.job_store import UploadJobPatch
from app.services.progress import publish_progress
from app.services.tabular_parser import Row, kind_for_extension, parse_file

settings = get_settings()
logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {".csv", ".xlsx", ".xls"}
ALLOWED_MIME_TYPES = {
    "text/csv",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}

CENTS = Decimal("0.01")
# Product.price is Numeric(10, 2)
MAX_PRICE = Decimal("1e8")


class RowValidationError(ValueError):
    """A row that cannot be imported. Recorded on the job, never fatal."""


def file_extension(filename: str) -> str:
    return Path(filename).suffix.lower()


def validate_upload_filename(filename: str) -> str:
    """
    Check the uploaded file name against the accepted extensions.

    Returns:
        The lower-cased extension, including the leading dot

    Raises:
        InvalidFileTypeError: For anything but .csv, .xlsx or .xls
    """
    extension = file_extension(filename or "")
    if extension not in ALLOWED_EXTENSIONS:
        raise InvalidFileTypeError(
            "Invalid file type. Only CSV and XLSX files are allowed"
        )
    return extension


def start_upload(db: Session, filename: str) -> UploadJob:
    """Validate the file name and create the pending job for it."""
    validate_upload_filename(filename)
    job = job_store.create_upload_job(db, filename)
    logger.info(f"🆔 Created upload job {job.id} for {filename}")
    return job


def _text(value: Any) -> Optional[str]:
    """Cell value as trimmed text; None when missing or blank."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_price(value: Any) -> Decimal:
    """Parse a price cell (string or number) into a two-place Decimal."""
    if isinstance(value, bool):
        raise RowValidationError(f"Invalid price '{value}'")
    try:
        price = Decimal(str(value).strip())
    except InvalidOperation:
        raise RowValidationError(f"Invalid price '{value}'") from None
    if not price.is_finite() or abs(price) >= MAX_PRICE:
        raise RowValidationError(f"Invalid price '{value}'")
    price = price.quantize(CENTS, rounding=ROUND_HALF_UP)
    # 99999999.995 rounds up out of range
    if abs(price) >= MAX_PRICE:
        raise RowValidationError(f"Invalid price '{value}'")
    return price


class CategoryResolver:
    """
    Resolves a row's category reference to a category ID.

    The category list used for name lookups is loaded once per job. The
    resolved ID is still checked against the store for every row.
    """

    def __init__(self, db: Session):
        self.db = db
        self._by_name: Optional[dict[str, Category]] = None

    def _find_by_name(self, name: str) -> Optional[Category]:
        if self._by_name is None:
            self._by_name = {}
            for category in catalog.list_categories(self.db):
                self._by_name.setdefault(category.name.lower(), category)
        return self._by_name.get(name.lower())

    def resolve(self, row: Row) -> str:
        category_id = _text(row.get("categoryId"))

        if not category_id:
            category_name = _text(row.get("categoryName"))
            if category_name:
                category = self._find_by_name(category_name)
                if category is None:
                    raise RowValidationError(f"Category '{category_name}' not found")
                category_id = category.id

        if not category_id:
            raise RowValidationError("Category ID or Category Name is required")

        if catalog.get_category(self.db, category_id) is None:
            raise RowValidationError(f"Category with ID {category_id} not found")

        return category_id


def build_product_record(name: str, price: Any, category_id: str, image: Any) -> dict:
    """Column values for one product insert, with a fresh secondary unique ID."""
    return {
        "id": str(uuid.uuid4()),
        "unique_id": str(uuid.uuid4()),
        "name": name,
        "price": parse_price(price),
        "category_id": category_id,
        "image": _text(image) or "",
    }


def validate_row(row: Row, resolver: CategoryResolver) -> dict:
    """
    Turn one parsed row into a product record.

    Raises:
        RowValidationError: With the message stored in the job's error list
    """
    name = _text(row.get("name"))
    if name is None or _text(row.get("price")) is None:
        raise RowValidationError("Name and price are required")

    category_id = resolver.resolve(row)
    return build_product_record(name, row["price"], category_id, row.get("image"))


def process_rows(
    db: Session, job_id: str, rows: list[Row], batch_size: Optional[int] = None
) -> UploadJob:
    """
    Validate and insert rows in fixed-size batches, updating job progress.

    Row numbers in the error list are 1-based positions across the whole
    file. After every batch the job's processed/success/failed counts are
    written, so success + failed always equals processed.

    Args:
        db: Database session
        job_id: Upload job ID for tracking progress
        rows: Parsed rows in file order
        batch_size: Rows per batch (defaults to settings.upload_batch_size)

    Returns:
        The job as of the last progress update
    """
    batch_size = batch_size or settings.upload_batch_size
    total = len(rows)
    errors: list[RowError] = []
    success_count = 0
    failed_count = 0
    resolver = CategoryResolver(db)
    job = job_store.get_upload_job(db, job_id)

    for start in range(0, total, batch_size):
        batch = rows[start:start + batch_size]
        records = []

        for offset, row in enumerate(batch):
            row_number = start + offset + 1
            try:
                records.append(validate_row(row, resolver))
            except RowValidationError as e:
                logger.debug(f"Row {row_number} rejected for job {job_id}: {e}")
                errors.append(RowError(row=row_number, error=str(e)))
                failed_count += 1
            else:
                success_count += 1

        catalog.insert_products(db, records)

        processed = min(start + batch_size, total)
        changes = {
            "processed_rows": processed,
            "success_count": success_count,
            "failed_count": failed_count,
        }
        if errors:
            changes["errors"] = list(errors)
        job = job_store.update_upload_job(db, job_id, UploadJobPatch(**changes))

        logger.info(
            f"📦 Batch done for job {job_id}: {processed}/{total} rows "
            f"(success={success_count}, failed={failed_count})"
        )
        publish_progress(
            job_id, JobStatus.PROCESSING.value, processed, total, success_count, failed_count
        )

    return job


def process_upload_file(
    db: Session, job_id: str, file_path: str, extension: str
) -> UploadJob:
    """
    Run a pending upload job to completion.

    Exceptions propagate; the task boundary records them as a failed job.
    """
    job_store.update_upload_job(db, job_id, UploadJobPatch(status=JobStatus.PROCESSING))
    logger.info(f"⚙️ Processing upload job {job_id} from {file_path}")

    rows = parse_file(file_path, kind_for_extension(extension))
    job_store.update_upload_job(db, job_id, UploadJobPatch(total_rows=len(rows)))

    process_rows(db, job_id, rows)

    job = job_store.update_upload_job(
        db,
        job_id,
        UploadJobPatch(status=JobStatus.COMPLETED, completed_at=utcnow()),
    )
    logger.info(
        f"🏁 Upload job {job_id} completed: total={job.total_rows}, "
        f"success={job.success_count}, failed={job.failed_count}"
    )
    publish_progress(
        job_id,
        JobStatus.COMPLETED.value,
        job.processed_rows,
        job.total_rows,
        job.success_count,
        job.failed_count,
    )
    return job


def cleanup_old_upload_jobs(db: Session, days_old: int = 30) -> int:
    """Delete completed/failed upload jobs finished more than days_old ago."""
    cutoff = utcnow() - timedelta(days=days_old)
    deleted = job_store.delete_upload_jobs_where(
        db, [JobStatus.COMPLETED, JobStatus.FAILED], cutoff
    )
    return len(deleted)
