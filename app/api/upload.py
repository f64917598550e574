"""Bulk product upload API endpoints."""
import asyncio
import json
import logging
import uuid
from pathlib import Path

import redis
import redis.asyncio as aioredis
from fastapi import APIRouter, BackgroundTasks, Depends, File, HTTPException, UploadFile
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from app.api.deps import get_current_user
from app.config import get_settings
from app.database import SessionLocal, get_db
from app.models.upload_job import JobStatus
from app.schemas.upload import UploadJobResponse, UploadResponse
from app.services import bulk_upload, job_store
from app.services.exceptions import InvalidFileTypeError, JobNotFoundError
from app.services.progress import channel_for
from app.tasks.import_tasks import run_upload_job

router = APIRouter(
    prefix="/api/bulk-upload",
    tags=["bulk-upload"],
    dependencies=[Depends(get_current_user)],
)

settings = get_settings()
logger = logging.getLogger(__name__)

CHUNK_SIZE = 8192
TERMINAL_STATUSES = {JobStatus.COMPLETED.value, JobStatus.FAILED.value}


@router.post("", response_model=UploadResponse, status_code=202)
async def upload_file(
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
):
    """
    Accept a CSV/XLSX product file and import it in background.

    This endpoint:
    1. Validates MIME type and extension (no job is created on rejection)
    2. Streams the file to the scratch directory, enforcing the size limit
    3. Creates a pending upload job
    4. Schedules processing and returns the job id immediately
    """
    logger.info(f"📁 Upload received: filename={file.filename}, content_type={file.content_type}")

    if file.content_type not in bulk_upload.ALLOWED_MIME_TYPES:
        logger.warning(f"❌ Invalid content type: {file.content_type}")
        raise HTTPException(status_code=400, detail="Only CSV and XLSX files are allowed")

    try:
        extension = bulk_upload.validate_upload_filename(file.filename)
    except InvalidFileTypeError as e:
        logger.warning(f"❌ Invalid file type: {file.filename}")
        raise HTTPException(status_code=400, detail=e.message)

    upload_dir = Path(settings.upload_dir)
    upload_dir.mkdir(parents=True, exist_ok=True)
    temp_file_path = upload_dir / f"{uuid.uuid4()}{extension}"

    bytes_written = 0
    with open(temp_file_path, "wb") as buffer:
        content = await file.read(CHUNK_SIZE)
        while content:
            bytes_written += len(content)
            if bytes_written > settings.max_upload_size:
                break
            buffer.write(content)
            content = await file.read(CHUNK_SIZE)

    if bytes_written > settings.max_upload_size:
        temp_file_path.unlink(missing_ok=True)
        logger.warning(f"❌ File too large: {file.filename}")
        raise HTTPException(
            status_code=413,
            detail=f"File too large (max {settings.max_upload_size // (1024 * 1024)}MB)",
        )

    logger.info(f"✅ File saved: {temp_file_path} ({bytes_written} bytes)")

    try:
        job = bulk_upload.start_upload(db, file.filename)
    except Exception:
        temp_file_path.unlink(missing_ok=True)
        raise
    background_tasks.add_task(run_upload_job, job.id, str(temp_file_path), extension)

    return UploadResponse(job_id=job.id, status=job.status)


@router.get("/status/{job_id}", response_model=UploadJobResponse)
def get_upload_status(job_id: str, db: Session = Depends(get_db)):
    """
    Get upload job status and progress.

    progress is processed_rows / total_rows as a rounded percentage.
    """
    try:
        job = job_store.get_upload_job(db, job_id)
    except JobNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)

    return UploadJobResponse.model_validate(job)


def _snapshot(job) -> dict:
    return {
        "job_id": job.id,
        "status": job.status,
        "processed": job.processed_rows,
        "total": job.total_rows,
        "success": job.success_count,
        "failed": job.failed_count,
    }


def _current_snapshot(job_id: str) -> dict:
    """Read the job in a short-lived session; the request session may be stale."""
    db = SessionLocal()
    try:
        return _snapshot(job_store.get_upload_job(db, job_id))
    finally:
        db.close()


@router.get("/status/{job_id}/stream")
async def stream_progress(job_id: str, db: Session = Depends(get_db)):
    """
    Server-Sent Events endpoint relaying batch progress from Redis pub/sub.

    The stream ends after a completed or failed event. A job that has
    already finished gets a single event with its final counts.
    """
    try:
        job = job_store.get_upload_job(db, job_id)
    except JobNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)

    if job.status in TERMINAL_STATUSES:
        snapshot = _snapshot(job)

        async def finished():
            yield f"data: {json.dumps(snapshot)}\n\n"

        return StreamingResponse(finished(), media_type="text/event-stream")

    if not settings.redis_url:
        raise HTTPException(status_code=503, detail="Progress streaming is not configured")

    async def event_generator():
        redis_client = aioredis.from_url(settings.redis_url, decode_responses=True)
        pubsub = redis_client.pubsub()

        try:
            await pubsub.subscribe(channel_for(job_id))

            # Events published before the subscription are lost
            snapshot = _current_snapshot(job_id)
            yield f"data: {json.dumps(snapshot)}\n\n"
            if snapshot["status"] in TERMINAL_STATUSES:
                return

            while True:
                message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)

                if message and message["type"] == "message":
                    data = json.loads(message["data"])
                    yield f"data: {json.dumps(data)}\n\n"

                    if data.get("status") in TERMINAL_STATUSES:
                        break

                await asyncio.sleep(0.1)

        except redis.RedisError as e:
            logger.warning(f"⚠️ SSE stream error for job {job_id}: {e}")
            yield f"data: {json.dumps({'status': 'error', 'error': 'Stream error'})}\n\n"

        finally:
            await pubsub.aclose()
            await redis_client.aclose()

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
        },
    )


@router.get("/jobs", response_model=list[UploadJobResponse])
def list_upload_jobs(db: Session = Depends(get_db)):
    """List the most recent upload jobs, newest first."""
    jobs = job_store.list_upload_jobs(db, limit=settings.jobs_list_limit)
    return [UploadJobResponse.model_validate(job) for job in jobs]
