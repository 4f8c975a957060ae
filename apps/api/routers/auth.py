"""
Authentication router for auth cookie management and the caller's profile.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from database import get_db
from routers.auth_scope import AuthContext, resolve_token_context, get_session_auth_context, is_admin_user
from services.errors import ValidationError
from services.users import ensure_user_record, load_user, serialize_user, update_profile

router = APIRouter()


class SetAuthCookieRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id_token: Optional[str] = Field(alias="idToken", default=None)


class UpdateProfileRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = Field(default=None, max_length=200)
    whatsapp_no: Optional[str] = Field(alias="whatsappNo", default=None, max_length=32)
    section: Optional[str] = Field(default=None, max_length=32)
    year: Optional[str] = Field(default=None, max_length=32)
    sem: Optional[str] = Field(default=None, max_length=32)
    branch: Optional[str] = Field(default=None, max_length=64)


@router.post("/set-auth-cookie")
async def set_auth_cookie(
    request: SetAuthCookieRequest,
    db: AsyncSession = Depends(get_db),
):
    """Verify a fresh identity token, create the user on first login and set the auth cookie."""
    token = (request.id_token or "").strip()
    if not token:
        raise ValidationError("Token required")

    auth = resolve_token_context(token)
    user = await ensure_user_record(db, user_id=auth.user_id, email=auth.email)

    response = JSONResponse(
        {
            "success": True,
            "user": serialize_user(user, is_admin=await is_admin_user(user.id, db)),
        }
    )
    response.set_cookie(
        key=settings.AUTH_COOKIE_NAME,
        value=token,
        max_age=int(settings.AUTH_COOKIE_MAX_AGE_SECONDS),
        httponly=True,
        secure=bool(settings.AUTH_COOKIE_SECURE),
        samesite="lax",
        path="/",
    )
    return response


@router.post("/clear-auth-cookie")
async def clear_auth_cookie():
    """Delete the auth cookie on logout."""
    response = JSONResponse({"success": True})
    response.delete_cookie(key=settings.AUTH_COOKIE_NAME, path="/")
    return response


@router.get("/auth/me")
async def get_current_user(
    auth: AuthContext = Depends(get_session_auth_context),
    db: AsyncSession = Depends(get_db),
):
    """Get the caller's profile, role and onboarding state."""
    user = await load_user(db, auth.user_id)
    return {"success": True, "user": serialize_user(user, is_admin=await is_admin_user(user.id, db))}


@router.patch("/auth/me")
async def update_current_user(
    request: UpdateProfileRequest,
    auth: AuthContext = Depends(get_session_auth_context),
    db: AsyncSession = Depends(get_db),
):
    changes = request.model_dump(exclude_none=True)
    if not changes:
        raise ValidationError("No valid fields to update")
    user = await load_user(db, auth.user_id)
    user = await update_profile(db, user, changes)
    return {"success": True, "user": serialize_user(user, is_admin=await is_admin_user(user.id, db))}
