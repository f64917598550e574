"""Best-effort publishing of upload progress over Redis pub/sub."""
import json
import logging
from typing import Optional

import redis

from app.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)


def channel_for(job_id: str) -> str:
    return f"upload:{job_id}"


def publish_progress(
    job_id: str,
    status: str,
    processed: int,
    total: int,
    success: int,
    failed: int,
    error: Optional[str] = None,
) -> None:
    """
    Publish progress to Redis pub/sub for real-time SSE streaming.

    Polling the job record stays the source of truth; a Redis outage only
    costs the live stream.

    Args:
        job_id: Upload job ID
        status: Current status (processing, completed, failed)
        processed: Number of rows processed
        total: Total number of rows
        success: Rows imported so far
        failed: Rows rejected so far
        error: Error message (for failed status)
    """
    if not settings.redis_url:
        return

    message = {
        "job_id": job_id,
        "status": status,
        "processed": processed,
        "total": total,
        "success": success,
        "failed": failed,
    }
    if error:
        message["error"] = error

    try:
        redis_client = redis.Redis.from_url(settings.redis_url, decode_responses=True)
        try:
            redis_client.publish(channel_for(job_id), json.dumps(message))
        finally:
            redis_client.close()
    except redis.RedisError as e:
        logger.warning(f"⚠️ Failed to publish progress for job {job_id}: {e}")
