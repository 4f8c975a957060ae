"""File cleanup queue endpoints.

Neither endpoint requires credentials, matching the existing deployment's
cron caller.
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from services.file_cleanup import get_cleanup_queue_status, process_pending_cleanup_jobs
from services.object_store import ObjectStore, build_object_store

router = APIRouter()


def get_object_store(request: Request) -> ObjectStore:
    """Return the process-wide object store created at startup."""
    store = getattr(request.app.state, "object_store", None)
    if store is None:
        store = build_object_store()
        request.app.state.object_store = store
    return store


@router.post("/cleanup-cloudinary")
async def run_cleanup(
    db: AsyncSession = Depends(get_db),
    store: ObjectStore = Depends(get_object_store),
):
    """Process one batch of pending file cleanup jobs."""
    result = await process_pending_cleanup_jobs(db, store)
    processed = result["processed"]
    return {
        "success": True,
        "message": f"Processed {processed} deletions" if processed else "No pending deletions",
        "processed": processed,
        "results": result["results"],
    }


@router.get("/cleanup-cloudinary")
async def cleanup_status(db: AsyncSession = Depends(get_db)):
    """Report queue depth."""
    return {"success": True, **await get_cleanup_queue_status(db)}
