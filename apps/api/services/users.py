"""User records, legacy field migration and credit adjustments."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import case, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from config import settings
from models.referral_link import ReferralLink
from models.user import User
from services.errors import ConflictError, NotFoundError
from services.transactions import run_transaction

logger = logging.getLogger(__name__)

ONBOARDING_FIELDS = ("whatsapp_no", "section", "year", "sem", "branch")


def migrate_legacy_user_fields(user: User) -> bool:
    """Fold legacy counters into the current fields. Returns True if anything changed."""
    changed = False
    if user.credits_remaining is None:
        legacy = user.page_quota
        user.credits_remaining = legacy if legacy is not None else int(settings.DEFAULT_SIGNUP_CREDITS)
        changed = True
    if user.credits_remaining < 0:
        logger.warning("Clamping negative balance %s to 0 for user %s", user.credits_remaining, user.id)
        user.credits_remaining = 0
        changed = True
    if user.total_orders is None:
        user.total_orders = int(user.total_orders_placed or 0)
        changed = True
    if user.total_pages is None:
        user.total_pages = int(user.total_pages_used or 0)
        changed = True
    if user.page_quota is not None or user.total_orders_placed is not None or user.total_pages_used is not None:
        user.page_quota = None
        user.total_orders_placed = None
        user.total_pages_used = None
        changed = True
    return changed


async def load_user(db: AsyncSession, user_id: str) -> User:
    """Load a user, migrating legacy fields once. Raises NotFoundError."""
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise NotFoundError("User not found")
    if migrate_legacy_user_fields(user):
        await db.commit()
        logger.info("Migrated legacy fields for user %s", user_id)
    return user


async def current_balance(db: AsyncSession, user_id: str) -> int:
    result = await db.execute(select(User.credits_remaining).where(User.id == user_id))
    return int(result.scalar() or 0)


def is_onboarding_complete(user: User) -> bool:
    return all((getattr(user, field) or "").strip() for field in ONBOARDING_FIELDS)


def serialize_user(user: User, *, is_admin: bool = False) -> Dict[str, Any]:
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name or "",
        "role": "admin" if is_admin else "student",
        "isActive": bool(user.is_active if user.is_active is not None else True),
        "creditsRemaining": int(user.credits_remaining or 0),
        "totalOrders": int(user.total_orders or 0),
        "totalPages": int(user.total_pages or 0),
        "whatsappNo": user.whatsapp_no or "",
        "section": user.section or "",
        "year": user.year or "",
        "sem": user.sem or "",
        "branch": user.branch or "",
        "referralCode": user.referral_code,
        "createdAt": user.created_at.isoformat() if user.created_at else None,
        "lastOrderAt": user.last_order_at.isoformat() if user.last_order_at else None,
        "onboardingComplete": is_onboarding_complete(user),
    }


async def ensure_user_record(db: AsyncSession, *, user_id: str, email: Optional[str]) -> User:
    """Create the user on first successful login with the default balance."""
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user:
        if migrate_legacy_user_fields(user):
            await db.commit()
        return user

    now = datetime.now(timezone.utc)
    user = User(
        id=user_id,
        email=email or "unknown@example.com",
        is_active=True,
        credits_remaining=int(settings.DEFAULT_SIGNUP_CREDITS),
        total_orders=0,
        total_pages=0,
        last_credit_rollover=now,
    )
    db.add(user)
    await db.commit()
    logger.info("Created user %s with %s credits", user_id, settings.DEFAULT_SIGNUP_CREDITS)
    return user


async def create_student(
    db: AsyncSession,
    *,
    user_id: str,
    email: str,
    name: str,
    referral_code: Optional[str] = None,
) -> Dict[str, Any]:
    """Create a student record for an identity provider account, applying any referral bonus."""
    existing = await db.get(User, user_id)
    if existing:
        raise ConflictError("Student account already exists")

    bonus_credits = 0
    link: Optional[ReferralLink] = None
    if referral_code:
        link_result = await db.execute(
            select(ReferralLink).where(ReferralLink.code == referral_code).limit(1)
        )
        link = link_result.scalar_one_or_none()
        if link and link.active:
            bonus_credits = int(link.credits or 0)
        else:
            link = None

    credits = int(settings.DEFAULT_SIGNUP_CREDITS) + bonus_credits

    async def _create(session: AsyncSession) -> None:
        now = datetime.now(timezone.utc)
        session.add(
            User(
                id=user_id,
                email=email,
                name=name,
                whatsapp_no="",
                section="",
                year="",
                sem="",
                branch="",
                is_active=True,
                credits_remaining=credits,
                total_orders=0,
                total_pages=0,
                last_credit_rollover=now,
                referral_code=referral_code or None,
            )
        )
        if link is not None:
            await session.execute(
                update(ReferralLink)
                .where(ReferralLink.id == link.id)
                .values(signups=ReferralLink.signups + 1)
                .execution_options(synchronize_session=False)
            )
        await session.flush()

    await run_transaction(db, _create, label="create_student")
    logger.info("Created student %s (bonus credits: %s)", user_id, bonus_credits)
    return {
        "id": user_id,
        "email": email,
        "name": name,
        "creditsRemaining": credits,
        "bonusCredits": bonus_credits,
    }


async def adjust_user_credits(db: AsyncSession, *, user_id: str, credit_amount: int) -> Dict[str, int]:
    """Atomically add `credit_amount` (may be negative) to a balance, never below zero."""
    await load_user(db, user_id)

    async def _adjust(session: AsyncSession) -> Dict[str, int]:
        result = await session.execute(
            select(User.credits_remaining).where(User.id == user_id).with_for_update()
        )
        row = result.first()
        if row is None:
            raise NotFoundError("User not found")
        old_credits = int(row[0] or 0)
        adjusted = User.credits_remaining + int(credit_amount)
        await session.execute(
            update(User)
            .where(User.id == user_id)
            .values(credits_remaining=case((adjusted < 0, 0), else_=adjusted))
            .execution_options(synchronize_session=False)
        )
        return {"oldCredits": old_credits, "newCredits": await current_balance(session, user_id)}

    return await run_transaction(db, _adjust, label="adjust_user_credits")


async def update_profile(db: AsyncSession, user: User, changes: Dict[str, Any]) -> User:
    for field, value in changes.items():
        if field in ONBOARDING_FIELDS or field == "name":
            setattr(user, field, (value or "").strip())
    await db.commit()
    return user
