"""Order submission and deletion against the per-user credit balance."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import case, delete, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from config import settings
from models.file_cleanup_job import FileCleanupJob
from models.order import Order
from models.referral_link import ReferralLink
from models.user import User
from services.errors import (
    DeletionFailedError,
    InsufficientCreditsError,
    NotFoundError,
    OrderConflictError,
    ValidationError,
)
from services.transactions import run_transaction
from services.users import current_balance, load_user

logger = logging.getLogger(__name__)

ORDER_TYPES = ("assignment", "practical")


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _iso(value: Optional[datetime]) -> Optional[str]:
    value = _as_utc(value)
    return value.isoformat() if value else None


def serialize_order(order: Order) -> Dict[str, Any]:
    return {
        "id": order.id,
        "studentId": order.user_id,
        "studentEmail": order.student_email,
        "studentName": order.student_name,
        "assignmentTitle": order.assignment_title,
        "orderType": order.order_type,
        "pageCount": order.page_count,
        "status": order.status,
        "originalFiles": list(order.original_files or []),
        "cloudinaryFolder": order.cloudinary_folder or "",
        "completedFileUrl": order.completed_file_url,
        "turnaroundTimeHours": order.turnaround_time_hours,
        "notes": order.notes,
        "createdAt": _iso(order.created_at),
        "startedAt": _iso(order.started_at),
        "completedAt": _iso(order.completed_at),
        "updatedAt": _iso(order.updated_at),
    }


def _check_cooldown(user: User) -> None:
    cooldown = int(settings.ORDER_SUBMIT_COOLDOWN_SECONDS or 0)
    last_order_at = _as_utc(user.last_order_at)
    if cooldown <= 0 or last_order_at is None:
        return
    elapsed = datetime.now(timezone.utc) - last_order_at
    remaining = timedelta(seconds=cooldown) - elapsed
    if remaining.total_seconds() > 0:
        raise ValidationError(
            f"Please wait {int(remaining.total_seconds()) + 1} seconds before submitting another order"
        )


async def submit_order(
    db: AsyncSession,
    *,
    user_id: str,
    email: Optional[str],
    order_id: str,
    assignment_title: str,
    order_type: str,
    page_count: int,
    uploaded_files: List[Dict[str, str]],
    cloudinary_folder: Optional[str],
) -> Dict[str, Any]:
    """Deduct `page_count` credits and create the order as one atomic unit."""
    if order_type not in ORDER_TYPES:
        raise ValidationError("Invalid order type")
    if page_count < 1 or page_count > int(settings.ORDER_MAX_PAGE_COUNT):
        raise ValidationError("Invalid page count")

    # Non-authoritative precheck; the transaction below decides.
    user = await load_user(db, user_id)
    available = int(user.credits_remaining or 0)
    if available < page_count:
        raise InsufficientCreditsError(page_count, available)
    _check_cooldown(user)

    snapshot = {
        "student_email": email or user.email,
        "student_name": user.name or "Unknown",
        "student_branch": user.branch or "Unknown",
        "student_year": user.year or "Unknown",
    }
    referral_code = user.referral_code

    async def _submit(session: AsyncSession) -> int:
        locked = await session.execute(
            select(User.credits_remaining).where(User.id == user_id).with_for_update()
        )
        row = locked.first()
        if row is None:
            raise NotFoundError("User not found")
        fresh_credits = int(row[0] or 0)
        if fresh_credits < page_count:
            raise InsufficientCreditsError(page_count, fresh_credits)

        if await _order_exists(session, user_id, order_id):
            raise OrderConflictError()

        now = datetime.now(timezone.utc)
        deducted = await session.execute(
            update(User)
            .where(User.id == user_id, User.credits_remaining >= page_count)
            .values(
                credits_remaining=User.credits_remaining - page_count,
                total_orders=User.total_orders + 1,
                total_pages=User.total_pages + page_count,
                last_order_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if deducted.rowcount != 1:
            raise InsufficientCreditsError(page_count, await current_balance(session, user_id))

        session.add(
            Order(
                user_id=user_id,
                id=order_id,
                assignment_title=assignment_title,
                order_type=order_type,
                page_count=page_count,
                original_files=uploaded_files,
                cloudinary_folder=cloudinary_folder or "",
                status="pending",
                started_at=None,
                completed_at=None,
                turnaround_time_hours=None,
                notes=None,
                **snapshot,
            )
        )
        try:
            await session.flush()
        except IntegrityError as exc:
            # A concurrent submission inserted the same order id first.
            raise OrderConflictError() from exc

        if referral_code:
            await session.execute(
                update(ReferralLink)
                .where(ReferralLink.code == referral_code, ReferralLink.active.is_(True))
                .values(orders=ReferralLink.orders + 1)
                .execution_options(synchronize_session=False)
            )

        await session.flush()
        return await current_balance(session, user_id)

    credits_remaining = await run_transaction(db, _submit, label="submit_order")
    logger.info("Order %s created for user %s (%s pages)", order_id, user_id, page_count)
    return {
        "orderId": order_id,
        "creditsRemaining": credits_remaining,
        "creditsDeducted": page_count,
    }


async def _order_exists(db: AsyncSession, user_id: str, order_id: str) -> bool:
    result = await db.execute(
        select(Order.id).where(Order.user_id == user_id, Order.id == order_id)
    )
    return result.scalar_one_or_none() is not None


async def _load_order(db: AsyncSession, user_id: str, order_id: str) -> Optional[Order]:
    result = await db.execute(
        select(Order).where(Order.user_id == user_id, Order.id == order_id)
    )
    return result.scalar_one_or_none()


async def delete_order(
    db: AsyncSession,
    *,
    order_id: str,
    student_id: str,
    page_count: int,
    original_files: Optional[List[Dict[str, str]]] = None,
    cloudinary_folder: Optional[str] = None,
) -> Dict[str, Any]:
    """Delete an order, restore its credits and queue cleanup of its files atomically."""
    if page_count < 0 or page_count > int(settings.DELETE_MAX_PAGE_COUNT):
        raise ValidationError("Invalid input parameters")

    await load_user(db, student_id)
    order = await _load_order(db, student_id, order_id)
    if not order:
        raise NotFoundError("Order not found")

    stored_pages = int(order.page_count or 0)
    if settings.DELETE_ORDER_TRUST_CLIENT_PAGE_COUNT:
        restore_pages = int(page_count)
    else:
        restore_pages = stored_pages
    if int(page_count) != stored_pages:
        logger.warning(
            "Delete of order %s/%s supplied pageCount=%s but order holds %s; restoring %s",
            student_id,
            order_id,
            page_count,
            stored_pages,
            restore_pages,
        )

    files = list(order.original_files or original_files or [])
    folder = (order.cloudinary_folder or cloudinary_folder or "").strip()

    async def _delete(session: AsyncSession) -> Dict[str, Any]:
        user_row = await session.execute(
            select(User.id).where(User.id == student_id).with_for_update()
        )
        if user_row.first() is None:
            raise NotFoundError("User not found")

        removed = await session.execute(
            delete(Order)
            .where(Order.user_id == student_id, Order.id == order_id)
            .execution_options(synchronize_session=False)
        )
        if removed.rowcount != 1:
            raise NotFoundError("Order not found")

        await session.execute(
            update(User)
            .where(User.id == student_id)
            .values(
                credits_remaining=User.credits_remaining + restore_pages,
                total_orders=case((User.total_orders > 1, User.total_orders - 1), else_=0),
                total_pages=case(
                    (User.total_pages > restore_pages, User.total_pages - restore_pages),
                    else_=0,
                ),
            )
            .execution_options(synchronize_session=False)
        )

        job_id: Optional[str] = None
        if files and folder:
            job_id = str(uuid.uuid4())
            session.add(
                FileCleanupJob(
                    id=job_id,
                    order_id=order_id,
                    student_id=student_id,
                    cloudinary_folder=folder,
                    original_files=files,
                    status="pending",
                    retry_count=0,
                )
            )
        await session.flush()

        stats = await session.execute(
            select(User.credits_remaining, User.total_orders, User.total_pages).where(User.id == student_id)
        )
        credits, total_orders, total_pages = stats.one()
        return {
            "cleanupJobId": job_id,
            "newUserStats": {
                "creditsRemaining": int(credits or 0),
                "totalOrders": int(total_orders or 0),
                "totalPages": int(total_pages or 0),
            },
        }

    # The order instance would otherwise linger in the identity map after the bulk delete.
    db.expunge(order)
    outcome = await run_transaction(db, _delete, label="delete_order", conflict_error=DeletionFailedError)
    logger.info("Order %s/%s deleted, %s credits restored", student_id, order_id, restore_pages)
    return {
        "creditsRestored": restore_pages,
        "cloudinaryQueued": outcome["cleanupJobId"] is not None,
        **outcome,
    }


async def list_user_orders(db: AsyncSession, user_id: str) -> List[Dict[str, Any]]:
    result = await db.execute(
        select(Order).where(Order.user_id == user_id).order_by(Order.created_at.desc())
    )
    return [serialize_order(order) for order in result.scalars().all()]


async def get_user_order(db: AsyncSession, user_id: str, order_id: str) -> Dict[str, Any]:
    order = await _load_order(db, user_id, order_id)
    if not order:
        raise NotFoundError("Order not found")
    return serialize_order(order)
