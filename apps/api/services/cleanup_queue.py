"""Dispatch of immediate file cleanup attempts onto Redis/RQ."""

from __future__ import annotations

import logging
from typing import Optional

from redis import Redis
from rq import Queue
from rq.job import Job

from config import settings


logger = logging.getLogger(__name__)

CLEANUP_QUEUE_NAME = "file_cleanup_jobs"


def get_redis_connection() -> Redis:
    """Build Redis connection used by RQ."""
    return Redis.from_url(settings.REDIS_URL)


def get_cleanup_queue() -> Queue:
    """Return the configured cleanup queue."""
    return Queue(
        name=CLEANUP_QUEUE_NAME,
        connection=get_redis_connection(),
        default_timeout=600,
    )


def enqueue_file_cleanup_job(job_id: str) -> Job:
    """Enqueue a single immediate attempt; retries belong to the cleanup batch processor."""
    queue = get_cleanup_queue()
    return queue.enqueue(
        "services.file_cleanup.attempt_cleanup_job",
        job_id,
        job_id=f"cleanup:{job_id}",
        job_timeout=600,
        result_ttl=86400,
        failure_ttl=86400,
    )


def dispatch_file_cleanup(job_id: Optional[str]) -> bool:
    """Fire-and-forget dispatch. The job row stays pending if the queue is unavailable."""
    if not job_id:
        return False
    try:
        enqueue_file_cleanup_job(job_id)
        return True
    except Exception as exc:
        logger.warning("Cleanup queue unavailable for job %s, left for batch processing: %s", job_id, exc)
        return False
