"""Referral link administration."""

from __future__ import annotations

import logging
import secrets
import string
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.referral_link import ReferralLink
from services.errors import AssignlyError, NotFoundError, ValidationError
from services.transactions import run_transaction

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_LENGTH = 8
MAX_CODE_ATTEMPTS = 10
MAX_NAME_LENGTH = 100
MAX_LINK_CREDITS = 100


def generate_referral_code() -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


def _clean_name(name: Any) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Name is required and must be a non-empty string")
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError(f"Name must be {MAX_NAME_LENGTH} characters or less")
    return name.strip()


def _clean_credits(credits: Any) -> int:
    if isinstance(credits, bool) or not isinstance(credits, (int, float)) or credits < 0 or credits > MAX_LINK_CREDITS:
        raise ValidationError(f"Credits must be a number between 0 and {MAX_LINK_CREDITS}")
    return int(credits)


async def _code_exists(db: AsyncSession, code: str) -> bool:
    result = await db.execute(select(ReferralLink.id).where(ReferralLink.code == code).limit(1))
    return result.scalar_one_or_none() is not None


async def create_referral_link(
    db: AsyncSession,
    *,
    name: Any,
    credits: Any,
    admin_id: str,
    admin_email: Optional[str],
) -> Dict[str, Any]:
    clean_name = _clean_name(name)
    clean_credits = _clean_credits(credits)

    code: Optional[str] = None
    for _ in range(MAX_CODE_ATTEMPTS):
        candidate = generate_referral_code()
        if not await _code_exists(db, candidate):
            code = candidate
            break
    if code is None:
        raise AssignlyError("Failed to generate unique code. Please try again.")

    link = ReferralLink(
        id=str(uuid.uuid4()),
        code=code,
        name=clean_name,
        credits=clean_credits,
        clicks=0,
        signups=0,
        orders=0,
        active=True,
        created_by=admin_id,
        created_by_email=admin_email,
    )

    async def _create(session: AsyncSession) -> None:
        session.add(link)
        await session.flush()

    await run_transaction(db, _create, label="create_referral_link")
    logger.info("Referral link %s created with code %s", link.id, code)
    return {"id": link.id, "code": code, "name": clean_name, "credits": clean_credits}


async def update_referral_link(
    db: AsyncSession,
    *,
    link_id: str,
    admin_id: str,
    active: Optional[bool] = None,
    name: Any = None,
    credits: Any = None,
) -> Dict[str, Any]:
    existing = await db.get(ReferralLink, link_id)
    if not existing:
        raise NotFoundError("Referral link not found")

    changes: Dict[str, Any] = {}
    if isinstance(active, bool):
        changes["active"] = active
    if name is not None:
        changes["name"] = _clean_name(name)
    if credits is not None:
        changes["credits"] = _clean_credits(credits)
    if not changes:
        raise ValidationError("No valid fields to update")

    async def _update(session: AsyncSession) -> None:
        result = await session.execute(
            select(ReferralLink)
            .where(ReferralLink.id == link_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        link = result.scalar_one_or_none()
        if not link:
            raise NotFoundError("Referral link not found")
        for field, value in changes.items():
            setattr(link, field, value)
        link.updated_at = datetime.now(timezone.utc)
        link.updated_by = admin_id
        await session.flush()

    await run_transaction(db, _update, label="update_referral_link")
    logger.info("Referral link %s updated: %s", link_id, sorted(changes))
    return changes
