"""Admin-only account and maintenance endpoints."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from routers.auth_scope import AuthContext, get_admin_context
from services.audit_log import record_audit_event
from services.order_status import promote_stale_pending_orders
from services.users import adjust_user_credits, create_student

router = APIRouter()
logger = logging.getLogger(__name__)


class CreateStudentRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(alias="userId", min_length=1)
    email: EmailStr
    name: str = Field(min_length=1, max_length=200)
    referral_code: Optional[str] = Field(alias="referralCode", default=None, max_length=32)


class AdjustCreditsRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(alias="userId", min_length=1)
    credit_amount: int = Field(alias="creditAmount", ge=-100000, le=100000)
    reason: Optional[str] = Field(default=None, max_length=500)


@router.post("/create-student")
async def create_student_endpoint(
    request: CreateStudentRequest,
    admin: AuthContext = Depends(get_admin_context),
    db: AsyncSession = Depends(get_db),
):
    """Create the record for an identity provider account."""
    student = await create_student(
        db,
        user_id=request.user_id,
        email=str(request.email),
        name=request.name.strip(),
        referral_code=(request.referral_code or "").strip() or None,
    )
    await record_audit_event(
        db,
        action="student_created",
        actor_id=admin.user_id,
        actor_email=admin.email,
        target_type="user",
        target_id=request.user_id,
        details={"email": str(request.email), "bonusCredits": student["bonusCredits"]},
    )
    bonus = student["bonusCredits"]
    return {
        "success": True,
        "message": f"Student account created successfully with {bonus} bonus credits!"
        if bonus
        else "Student account created successfully",
        "student": student,
    }


@router.post("/admin/adjust-credits")
async def adjust_credits(
    request: AdjustCreditsRequest,
    admin: AuthContext = Depends(get_admin_context),
    db: AsyncSession = Depends(get_db),
):
    result = await adjust_user_credits(db, user_id=request.user_id, credit_amount=request.credit_amount)
    await record_audit_event(
        db,
        action="credits_adjusted",
        actor_id=admin.user_id,
        actor_email=admin.email,
        target_type="user",
        target_id=request.user_id,
        details={
            "creditChange": request.credit_amount,
            "oldCredits": result["oldCredits"],
            "newCredits": result["newCredits"],
            "reason": request.reason or "No reason provided",
        },
    )
    return {"success": True, **result}


@router.post("/admin/promote-orders")
async def promote_orders(
    admin: AuthContext = Depends(get_admin_context),
    db: AsyncSession = Depends(get_db),
):
    """Manual run of the scheduled pending-order promoter."""
    updated = await promote_stale_pending_orders(db)
    logger.info("Manual order promotion by %s updated %s orders", admin.user_id, updated)
    return {"success": True, "updatedCount": updated}
