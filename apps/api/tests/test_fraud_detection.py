from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from sqlalchemy.future import select

from models.audit_log import AuditLogEntry
from models.fraud_alert import FraudAlert
from models.user import User
from services.fraud_detection import detect_suspicious_activity, run_fraud_detection


NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def _order_created(entry_id: str, user_id: str, ip_address: str, *, minutes_ago: int = 5) -> AuditLogEntry:
    return AuditLogEntry(
        id=entry_id,
        action="order_created",
        actor_id=user_id,
        target_type="order",
        target_id=f"ORD-{entry_id}",
        details={"pageCount": 3, "ipAddress": ip_address, "userAgent": "assignly-web/2.1"},
        created_at=NOW - timedelta(minutes=minutes_ago),
    )


def _user(user_id: str, *, days_old: float, total_orders=None, **overrides) -> User:
    values = dict(
        id=user_id,
        email=f"{user_id}@example.com",
        credits_remaining=40,
        total_orders=total_orders,
        total_pages=0,
        created_at=NOW - timedelta(days=days_old),
    )
    values.update(overrides)
    return User(**values)


@pytest.mark.asyncio
async def test_ip_shared_by_three_accounts_in_the_last_hour_is_flagged(api):
    await api.add(
        _order_created("a1", "u1", "10.1.1.1"),
        _order_created("a2", "u2", "10.1.1.1"),
        _order_created("a3", "u2", "10.1.1.1"),
        _order_created("a4", "u3", "10.1.1.1", minutes_ago=30),
        _order_created("b1", "u4", "10.2.2.2"),
        _order_created("b2", "u5", "10.2.2.2"),
        _order_created("b3", "u6", "10.2.2.2", minutes_ago=90),
    )

    async with api.session_maker() as db:
        result = await detect_suspicious_activity(db, now=NOW)

    assert result["suspiciousIps"] == 1
    assert result["suspiciousUsers"] == 0
    alerts = await api.all(select(FraudAlert))
    assert len(alerts) == 1
    assert alerts[0].id == result["alertId"]
    assert alerts[0].suspicious_ips == ["10.1.1.1"]
    assert alerts[0].suspicious_users == []
    assert alerts[0].reviewed is False


@pytest.mark.asyncio
async def test_users_averaging_over_ten_orders_a_day_are_flagged(api):
    await api.add(
        _user("busy", days_old=2, total_orders=25),
        _user("steady", days_old=2, total_orders=15),
        _user("legacy-busy", days_old=1, total_orders=None, total_orders_placed=50),
        _user("fresh", days_old=10, total_orders=0),
    )

    async with api.session_maker() as db:
        result = await detect_suspicious_activity(db, now=NOW)

    assert result["suspiciousUsers"] == 2
    alert = await api.get(FraudAlert, result["alertId"])
    assert alert.suspicious_users == ["busy", "legacy-busy"]
    assert alert.suspicious_ips == []


@pytest.mark.asyncio
async def test_quiet_scan_writes_no_alert(api):
    await api.add(
        _user("steady", days_old=30, total_orders=12),
        _order_created("a1", "steady", "10.3.3.3"),
    )

    async with api.session_maker() as db:
        result = await detect_suspicious_activity(db, now=NOW)

    assert result == {"suspiciousIps": 0, "suspiciousUsers": 0, "alertId": None}
    assert await api.all(select(FraudAlert)) == []


@pytest.mark.asyncio
async def test_other_audit_actions_are_ignored(api):
    await api.add(
        *[
            AuditLogEntry(
                id=f"c{index}",
                action="credits_adjusted",
                actor_id=f"admin-{index}",
                details={"ipAddress": "10.4.4.4"},
                created_at=NOW - timedelta(minutes=1),
            )
            for index in range(4)
        ]
    )

    async with api.session_maker() as db:
        result = await detect_suspicious_activity(db, now=NOW)

    assert result["suspiciousIps"] == 0


@pytest.mark.asyncio
async def test_scheduled_entrypoint_opens_its_own_session(api, monkeypatch):
    from config import settings

    monkeypatch.setattr(settings, "FRAUD_SHARED_IP_USER_THRESHOLD", 2)
    now = datetime.now(timezone.utc)
    await api.add(
        AuditLogEntry(id="s1", action="order_created", actor_id="u1", details={"ipAddress": "10.5.5.5"}, created_at=now),
        AuditLogEntry(id="s2", action="order_created", actor_id="u2", details={"ipAddress": "10.5.5.5"}, created_at=now),
    )

    with patch("services.fraud_detection.async_session_maker", api.session_maker):
        result = await run_fraud_detection()

    assert result["suspiciousIps"] == 1
    assert len(await api.all(select(FraudAlert))) == 1
