"""Background task for product report generation."""
import logging

from app.database import SessionLocal, utcnow
from app.models.upload_job import JobStatus
from app.services import job_store
from app.services.job_store import ReportJobPatch
from app.services.reports import generate_report_file

logger = logging.getLogger(__name__)


def run_report_job(job_id: str) -> None:
    """
    Generate a report file in background.

    Like run_upload_job, failures end up on the job record and are never
    raised to the caller.
    """
    logger.info(f"🚀 Starting report job {job_id}")
    db = SessionLocal()

    try:
        generate_report_file(db, job_id)

    except Exception as e:
        logger.error(f"💥 Report job {job_id} failed: {e}", exc_info=True)
        db.rollback()
        try:
            job_store.update_report_job(
                db,
                job_id,
                ReportJobPatch(
                    status=JobStatus.FAILED,
                    error_message=str(e),
                    completed_at=utcnow(),
                ),
            )
        except Exception as mark_error:
            logger.error(f"❌ Could not mark report job {job_id} as failed: {mark_error}")

    finally:
        db.close()
