"""Background task for bulk product imports."""
import logging
import os

from app.database import SessionLocal, utcnow
from app.models.upload_job import JobStatus
from app.services import job_store
from app.services.bulk_upload import process_upload_file
from app.services.job_store import UploadJobPatch
from app.services.progress import publish_progress

logger = logging.getLogger(__name__)


def run_upload_job(job_id: str, file_path: str, extension: str) -> None:
    """
    Process an uploaded file in background.

    Scheduled with FastAPI BackgroundTasks after the upload request has
    returned, so nothing may propagate out of here: any failure is recorded
    on the job instead. The temp file is removed either way.

    Args:
        job_id: Upload job ID
        file_path: Local path to the uploaded file
        extension: Lower-cased file extension, e.g. ".csv"
    """
    logger.info(f"🚀 Starting upload job: job_id={job_id}, file_path={file_path}")
    db = SessionLocal()

    try:
        process_upload_file(db, job_id, file_path, extension)

    except Exception as e:
        logger.error(f"💥 Upload job {job_id} failed: {e}", exc_info=True)
        db.rollback()
        try:
            job = job_store.update_upload_job(
                db,
                job_id,
                UploadJobPatch(
                    status=JobStatus.FAILED,
                    error_message=str(e),
                    completed_at=utcnow(),
                ),
            )
            publish_progress(
                job_id,
                JobStatus.FAILED.value,
                job.processed_rows,
                job.total_rows,
                job.success_count,
                job.failed_count,
                str(e),
            )
        except Exception as mark_error:
            logger.error(f"❌ Could not mark upload job {job_id} as failed: {mark_error}")

    finally:
        db.close()

        try:
            if os.path.exists(file_path):
                os.remove(file_path)
                logger.info(f"🧹 Temp file cleaned up: {file_path}")
        except OSError as cleanup_error:
            logger.warning(f"⚠️ Failed to clean up temp file {file_path}: {cleanup_error}")
