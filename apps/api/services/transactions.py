"""Bounded retry loop around read-modify-write units of work."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Type, TypeVar

from fastapi import HTTPException
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from services.errors import TransactionConflictError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# serialization_failure, deadlock_detected
RETRYABLE_SQLSTATES = {"40001", "40P01"}
RETRY_BACKOFF_SECONDS = 0.05


def is_retryable_conflict(exc: BaseException) -> bool:
    if not isinstance(exc, DBAPIError):
        return False
    orig = getattr(exc, "orig", None)
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate in RETRYABLE_SQLSTATES:
        return True
    if isinstance(exc, OperationalError) and "locked" in str(orig or exc).lower():
        return True
    return False


async def run_transaction(
    db: AsyncSession,
    unit_of_work: Callable[[AsyncSession], Awaitable[T]],
    *,
    label: str,
    max_attempts: Optional[int] = None,
    conflict_error: Type[TransactionConflictError] = TransactionConflictError,
) -> T:
    """Run `unit_of_work` and commit, retrying on datastore conflicts.

    The unit of work must re-read whatever state it depends on; it is replayed
    from scratch after a rollback. HTTP errors raised inside it roll back and
    propagate unchanged. Anything else that is not a retryable conflict is
    surfaced as `conflict_error` so no internal detail reaches the client.
    """
    attempts = max(int(max_attempts or settings.TRANSACTION_MAX_ATTEMPTS or 1), 1)
    for attempt in range(1, attempts + 1):
        try:
            result = await unit_of_work(db)
            await db.commit()
            return result
        except HTTPException:
            await db.rollback()
            raise
        except Exception as exc:
            await db.rollback()
            if is_retryable_conflict(exc) and attempt < attempts:
                logger.warning("%s conflicted (attempt %s/%s), retrying", label, attempt, attempts)
                await asyncio.sleep(RETRY_BACKOFF_SECONDS * attempt)
                continue
            logger.exception("%s failed after %s attempt(s)", label, attempt)
            raise conflict_error() from exc
    raise conflict_error()
