"""Order status transitions: admin updates and the scheduled pending promoter."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from config import settings
from database import async_session_maker
from models.order import Order
from services.errors import NotFoundError, ValidationError
from services.transactions import run_transaction

logger = logging.getLogger(__name__)

ORDER_STATUSES = ("pending", "writing", "on the way", "delivered")


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


async def update_order_status(
    db: AsyncSession,
    *,
    order_id: str,
    student_id: str,
    status: str,
    admin_id: str,
) -> Dict[str, Any]:
    """Set an order's status, stamping start/completion times on the relevant transitions."""
    if status not in ORDER_STATUSES:
        raise ValidationError(f"Invalid status. Must be one of: {', '.join(ORDER_STATUSES)}")

    async def _update(session: AsyncSession) -> Dict[str, Any]:
        result = await session.execute(
            select(Order)
            .where(Order.user_id == student_id, Order.id == order_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        order = result.scalar_one_or_none()
        if not order:
            raise NotFoundError("Order not found")

        now = datetime.now(timezone.utc)
        old_status = order.status
        order.status = status
        order.updated_at = now
        order.updated_by = admin_id
        if status == "writing" and order.started_at is None:
            order.started_at = now
        if status == "delivered":
            order.completed_at = now
            created_at = _as_utc(order.created_at)
            if created_at:
                order.turnaround_time_hours = round((now - created_at).total_seconds() / 3600, 2)
        elif order.completed_at is not None:
            order.completed_at = None
            order.turnaround_time_hours = None
        await session.flush()
        return {"oldStatus": old_status, "status": status}

    return await run_transaction(db, _update, label="update_order_status")


async def promote_stale_pending_orders(
    db: AsyncSession,
    *,
    now: Optional[datetime] = None,
    age_minutes: Optional[int] = None,
) -> int:
    """Move orders pending for longer than the threshold to `writing`.

    Each promotion re-checks `status == 'pending'` in its UPDATE so an admin
    change that lands between the scan and the write is left alone.
    """
    current = now or datetime.now(timezone.utc)
    threshold = int(age_minutes if age_minutes is not None else settings.ORDER_PROMOTION_AGE_MINUTES)
    cutoff = current - timedelta(minutes=max(threshold, 0))
    logger.info("Promoting pending orders created before %s", cutoff.isoformat())

    result = await db.execute(
        select(Order.user_id, Order.id).where(
            Order.status == "pending",
            Order.created_at < cutoff,
        )
    )
    candidates = result.all()

    updated = 0
    for user_id, order_id in candidates:
        promoted = await db.execute(
            update(Order)
            .where(
                Order.user_id == user_id,
                Order.id == order_id,
                Order.status == "pending",
            )
            .values(status="writing", updated_at=current)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        if promoted.rowcount == 1:
            updated += 1
            logger.info("Order %s/%s moved from pending to writing", user_id, order_id)

    logger.info("Promoted %s orders from pending to writing", updated)
    return updated


async def run_order_promotion() -> int:
    """Scheduled entrypoint with its own session."""
    async with async_session_maker() as db:
        return await promote_stale_pending_orders(db)
