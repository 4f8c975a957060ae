"""Authentication dependencies for API user scoping."""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from database import get_db
from models.admin_role import AdminRole
from services.errors import AuthenticationError, AuthorizationError
from services.session_token import decode_session_token


auth_scheme = HTTPBearer(auto_error=False)


@dataclass
class AuthContext:
    user_id: str
    email: Optional[str] = None
    is_admin: bool = False


def resolve_token_context(token: str) -> AuthContext:
    try:
        payload = decode_session_token(token)
    except ValueError as exc:
        raise AuthenticationError(str(exc)) from exc

    return AuthContext(
        user_id=str(payload.get("sub", "")),
        email=str(payload.get("email", "") or "") or None,
    )


async def is_admin_user(user_id: str, db: AsyncSession) -> bool:
    return await db.get(AdminRole, user_id) is not None


async def get_auth_context(
    credentials: HTTPAuthorizationCredentials = Depends(auth_scheme),
) -> AuthContext:
    """Resolve authenticated user from the Bearer identity token."""
    if not credentials or credentials.scheme.lower() != "bearer" or not credentials.credentials:
        raise AuthenticationError("Missing Bearer token.")
    return resolve_token_context(credentials.credentials)


async def get_admin_context(
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
) -> AuthContext:
    """Resolve the caller and require an admin role marker."""
    if not await is_admin_user(auth.user_id, db):
        raise AuthorizationError()
    auth.is_admin = True
    return auth


async def get_session_auth_context(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(auth_scheme),
) -> AuthContext:
    """Resolve the caller from the Bearer header or, failing that, the auth cookie."""
    if credentials and credentials.scheme.lower() == "bearer" and credentials.credentials:
        return resolve_token_context(credentials.credentials)
    cookie_token = request.cookies.get(settings.AUTH_COOKIE_NAME)
    if not cookie_token:
        raise AuthenticationError("Missing Bearer token.")
    return resolve_token_context(cookie_token)
