"""Best-effort audit trail for privileged mutations."""

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from models.audit_log import AuditLogEntry

logger = logging.getLogger(__name__)


async def record_audit_event(
    db: AsyncSession,
    *,
    action: str,
    actor_id: Optional[str],
    actor_email: Optional[str] = None,
    target_type: Optional[str] = None,
    target_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> bool:
    """Append an audit entry after the mutation has committed.

    Failures are logged and swallowed: the mutation is already durable and
    there is no retry path for audit writes.
    """
    try:
        db.add(
            AuditLogEntry(
                id=str(uuid.uuid4()),
                action=action,
                actor_id=actor_id,
                actor_email=actor_email,
                target_type=target_type,
                target_id=target_id,
                details=details or {},
            )
        )
        await db.commit()
        return True
    except Exception:
        logger.exception("Could not write audit entry %s for %s %s", action, target_type, target_id)
        await db.rollback()
        return False
