"""Scheduled scan for suspicious ordering activity."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Set

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from config import settings
from database import async_session_maker
from models.audit_log import AuditLogEntry
from models.fraud_alert import FraudAlert
from models.user import User

logger = logging.getLogger(__name__)

UNKNOWN_IP = "unknown"


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


async def _shared_ip_addresses(db: AsyncSession, since: datetime) -> List[str]:
    """IPs that created orders for several distinct accounts since `since`."""
    result = await db.execute(
        select(AuditLogEntry.actor_id, AuditLogEntry.details).where(
            AuditLogEntry.action == "order_created",
            AuditLogEntry.created_at >= since,
        )
    )
    users_by_ip: Dict[str, Set[str]] = {}
    for actor_id, details in result.all():
        if not actor_id:
            continue
        ip_address = str((details or {}).get("ipAddress") or UNKNOWN_IP)
        users_by_ip.setdefault(ip_address, set()).add(actor_id)

    threshold = max(int(settings.FRAUD_SHARED_IP_USER_THRESHOLD), 1)
    flagged = []
    for ip_address, users in sorted(users_by_ip.items()):
        if len(users) >= threshold:
            logger.warning("Suspicious IP %s: %s different users ordered in the last hour", ip_address, len(users))
            flagged.append(ip_address)
    return flagged


async def _high_volume_users(db: AsyncSession, now: datetime) -> List[str]:
    """Users averaging more orders per day than the configured ceiling."""
    total_orders = func.coalesce(User.total_orders, User.total_orders_placed, 0)
    result = await db.execute(
        select(User.id, total_orders, User.created_at).where(total_orders > 0).order_by(User.id)
    )
    ceiling = float(settings.FRAUD_MAX_ORDERS_PER_DAY)
    flagged = []
    for user_id, orders, created_at in result.all():
        created = _as_utc(created_at)
        if created is None:
            continue
        days_old = (now - created).total_seconds() / 86400
        if days_old > 0 and int(orders) / days_old > ceiling:
            logger.warning("Suspicious user activity: %s (%s orders in %.1f days)", user_id, orders, days_old)
            flagged.append(user_id)
    return flagged


async def detect_suspicious_activity(
    db: AsyncSession,
    *,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Flag shared IPs and high-volume users, and store an alert when anything is found."""
    current = now or datetime.now(timezone.utc)
    window = timedelta(minutes=max(int(settings.FRAUD_SCAN_WINDOW_MINUTES), 1))

    suspicious_ips = await _shared_ip_addresses(db, current - window)
    suspicious_users = await _high_volume_users(db, current)

    alert_id = None
    if suspicious_ips or suspicious_users:
        alert_id = str(uuid.uuid4())
        db.add(
            FraudAlert(
                id=alert_id,
                suspicious_ips=suspicious_ips,
                suspicious_users=suspicious_users,
                reviewed=False,
                created_at=current,
            )
        )
        await db.commit()

    return {
        "suspiciousIps": len(suspicious_ips),
        "suspiciousUsers": len(suspicious_users),
        "alertId": alert_id,
    }


async def run_fraud_detection(db: Optional[AsyncSession] = None) -> Dict[str, Any]:
    """Scheduled entrypoint; opens its own session unless one is given."""
    if db is not None:
        return await detect_suspicious_activity(db)
    async with async_session_maker() as session:
        return await detect_suspicious_activity(session)
