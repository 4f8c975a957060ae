"""Admin referral link endpoints."""

from typing import Any, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from routers.auth_scope import AuthContext, get_admin_context
from services.audit_log import record_audit_event
from services.referrals import create_referral_link, update_referral_link

router = APIRouter()


class CreateReferralRequest(BaseModel):
    name: Any = None
    credits: Any = None


class UpdateReferralRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    link_id: str = Field(alias="linkId", min_length=1)
    active: Optional[bool] = None
    name: Any = None
    credits: Any = None


@router.post("/create")
async def create_link(
    request: CreateReferralRequest,
    admin: AuthContext = Depends(get_admin_context),
    db: AsyncSession = Depends(get_db),
):
    link = await create_referral_link(
        db,
        name=request.name,
        credits=request.credits,
        admin_id=admin.user_id,
        admin_email=admin.email,
    )
    await record_audit_event(
        db,
        action="referral_link_created",
        actor_id=admin.user_id,
        actor_email=admin.email,
        target_type="referral_link",
        target_id=link["id"],
        details={"code": link["code"], "name": link["name"], "credits": link["credits"]},
    )
    return {"success": True, "message": "Referral link created successfully", "link": link}


@router.post("/update")
async def update_link(
    request: UpdateReferralRequest,
    admin: AuthContext = Depends(get_admin_context),
    db: AsyncSession = Depends(get_db),
):
    changes = await update_referral_link(
        db,
        link_id=request.link_id,
        admin_id=admin.user_id,
        active=request.active,
        name=request.name,
        credits=request.credits,
    )
    await record_audit_event(
        db,
        action="referral_link_updated",
        actor_id=admin.user_id,
        actor_email=admin.email,
        target_type="referral_link",
        target_id=request.link_id,
        details={"changes": changes},
    )
    return {"success": True, "message": "Referral link updated successfully", "linkId": request.link_id}
