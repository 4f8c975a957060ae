"""Processor for the durable object-store cleanup queue."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from config import settings
from database import async_session_maker
from models.file_cleanup_job import FileCleanupJob
from services.object_store import ObjectStore, StoredObject, build_object_store

logger = logging.getLogger(__name__)


@dataclass
class FolderDeletionResult:
    found: int = 0
    deleted: int = 0
    failed: int = 0

    @property
    def all_deleted(self) -> bool:
        return self.deleted == self.found


def folder_prefix(folder: str) -> str:
    """Listing prefix for a folder. The trailing slash keeps `ORD-1` from matching `ORD-10`."""
    return f"{folder.strip('/')}/"


async def _list_folder(store: ObjectStore, folder: str) -> List[StoredObject]:
    objects = await store.list_objects(folder_prefix(folder))
    if objects or not settings.CLEANUP_CHECK_LEGACY_DUPLICATED_PREFIX:
        return objects
    # Early uploads nested the folder inside itself.
    base = folder.strip("/")
    legacy_prefix = folder_prefix(f"{base}/{base}")
    objects = await store.list_objects(legacy_prefix)
    if objects:
        logger.info("Found %s objects under legacy prefix %s", len(objects), legacy_prefix)
    return objects


async def _delete_one(store: ObjectStore, obj: StoredObject) -> bool:
    try:
        return await store.delete_object(obj)
    except Exception as exc:
        logger.warning("Failed to delete %s: %s", obj.public_id, exc)
        return False


async def delete_folder_contents(store: ObjectStore, folder: str) -> FolderDeletionResult:
    """Delete every object under `folder`; an empty listing counts as success."""
    objects = await _list_folder(store, folder)
    if not objects:
        logger.info("Folder %s is already empty", folder)
        return FolderDeletionResult()

    outcomes = await asyncio.gather(*(_delete_one(store, obj) for obj in objects))
    deleted = sum(1 for ok in outcomes if ok)
    result = FolderDeletionResult(found=len(objects), deleted=deleted, failed=len(objects) - deleted)
    logger.info("Folder %s: deleted %s/%s objects", folder, result.deleted, result.found)

    try:
        await store.delete_folder(folder)
    except Exception as exc:
        logger.info("Folder %s not removed (may not be empty): %s", folder, exc)

    return result


async def process_cleanup_job(
    db: AsyncSession,
    store: ObjectStore,
    job: FileCleanupJob,
    *,
    count_failure: bool = True,
) -> Dict[str, Any]:
    """Attempt one job and persist its outcome."""
    now = datetime.now(timezone.utc)
    try:
        outcome = await delete_folder_contents(store, job.cloudinary_folder)
        error: Optional[str] = None if outcome.all_deleted else f"{outcome.failed} of {outcome.found} objects remain"
    except Exception as exc:
        logger.exception("Cleanup for order %s failed", job.order_id)
        outcome = None
        error = str(exc)[:1000] or "Unknown error"

    if error is None:
        job.status = "completed"
        job.completed_at = now
        job.last_attempt_at = now
        job.last_error = None
        await db.commit()
        return {"orderId": job.order_id, "jobId": job.id, "status": "completed"}

    if not count_failure:
        # Nothing was written; the job keeps its retry budget.
        return {"orderId": job.order_id, "jobId": job.id, "status": "deferred", "error": error}

    job.retry_count = int(job.retry_count or 0) + 1
    job.last_attempt_at = now
    job.last_error = error
    await db.commit()
    if job.retry_count >= int(settings.CLEANUP_MAX_RETRIES):
        logger.error(
            "Cleanup job %s for order %s abandoned after %s attempts: %s",
            job.id,
            job.order_id,
            job.retry_count,
            error,
        )
    status = "retry" if outcome is not None else "error"
    return {
        "orderId": job.order_id,
        "jobId": job.id,
        "status": status,
        "retryCount": job.retry_count,
        "error": error,
    }


async def process_pending_cleanup_jobs(
    db: AsyncSession,
    store: ObjectStore,
    *,
    limit: Optional[int] = None,
) -> Dict[str, Any]:
    """Process one batch of pending jobs under the retry cap."""
    batch_size = max(int(limit or settings.CLEANUP_BATCH_SIZE), 1)
    result = await db.execute(
        select(FileCleanupJob)
        .where(
            FileCleanupJob.status == "pending",
            FileCleanupJob.retry_count < int(settings.CLEANUP_MAX_RETRIES),
        )
        .order_by(FileCleanupJob.created_at.asc())
        .limit(batch_size)
    )
    jobs = result.scalars().all()
    if not jobs:
        return {"processed": 0, "results": []}

    logger.info("Processing %s pending cleanup jobs", len(jobs))
    results = []
    for job in jobs:
        results.append(await process_cleanup_job(db, store, job))
    return {"processed": len(results), "results": results}


async def get_cleanup_queue_status(db: AsyncSession) -> Dict[str, int]:
    result = await db.execute(
        select(FileCleanupJob.status, func.count(FileCleanupJob.id)).group_by(FileCleanupJob.status)
    )
    counts = {status: int(count) for status, count in result.all()}
    abandoned_result = await db.execute(
        select(func.count(FileCleanupJob.id)).where(
            FileCleanupJob.status == "pending",
            FileCleanupJob.retry_count >= int(settings.CLEANUP_MAX_RETRIES),
        )
    )
    pending = counts.get("pending", 0)
    completed = counts.get("completed", 0)
    return {
        "pending": pending,
        "completed": completed,
        "abandoned": int(abandoned_result.scalar() or 0),
        "total": pending + completed,
    }


async def attempt_cleanup_job_async(job_id: str, store: Optional[ObjectStore] = None) -> Optional[Dict[str, Any]]:
    """Immediate post-deletion attempt; leaves the job untouched unless it fully succeeds."""
    object_store = store or build_object_store()
    async with async_session_maker() as db:
        result = await db.execute(select(FileCleanupJob).where(FileCleanupJob.id == job_id))
        job = result.scalar_one_or_none()
        if not job:
            logger.warning("Cleanup job %s not found", job_id)
            return None
        if job.status != "pending":
            return {"orderId": job.order_id, "jobId": job.id, "status": job.status}
        outcome = await process_cleanup_job(db, object_store, job, count_failure=False)
        if outcome["status"] != "completed":
            logger.info("Immediate cleanup for order %s incomplete, left for the queue", job.order_id)
        return outcome


def attempt_cleanup_job(job_id: str) -> None:
    """RQ worker entrypoint for immediate cleanup attempts."""
    asyncio.run(attempt_cleanup_job_async(job_id))
