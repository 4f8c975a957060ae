"""Identity token helpers for bearer and cookie authentication."""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from config import settings


def create_session_token(
    user_id: str,
    email: Optional[str] = None,
    expires_hours: Optional[int] = None,
) -> Dict[str, Any]:
    """Create a signed identity token (local tooling and tests)."""
    now = datetime.now(timezone.utc)
    ttl_hours = int(expires_hours or settings.JWT_EXPIRATION_HOURS or 24)
    expires_at = now + timedelta(hours=max(ttl_hours, 1))
    claims: Dict[str, Any] = {
        "sub": user_id,
        "iat": int(now.timestamp()),
        "exp": int(expires_at.timestamp()),
    }
    if email:
        claims["email"] = email
    if settings.IDENTITY_TOKEN_ISSUER:
        claims["iss"] = settings.IDENTITY_TOKEN_ISSUER
    if settings.IDENTITY_TOKEN_AUDIENCE:
        claims["aud"] = settings.IDENTITY_TOKEN_AUDIENCE

    token = jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)
    return {
        "token": token,
        "expires_at": int(expires_at.timestamp()),
    }


def decode_session_token(token: str) -> Dict[str, Any]:
    """Decode and validate an identity token; raise ValueError when rejected."""
    if not token or token.count(".") != 2:
        raise ValueError("Malformed identity token.")

    options = {"verify_aud": bool(settings.IDENTITY_TOKEN_AUDIENCE)}
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            audience=settings.IDENTITY_TOKEN_AUDIENCE or None,
            issuer=settings.IDENTITY_TOKEN_ISSUER or None,
            options=options,
        )
    except JWTError as exc:
        raise ValueError("Invalid or expired identity token.") from exc

    subject = str(payload.get("sub", "") or payload.get("user_id", "")).strip()
    if not subject:
        raise ValueError("Identity token missing subject.")
    payload["sub"] = subject

    return payload
