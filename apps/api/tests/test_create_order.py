import asyncio
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.future import select

from models.audit_log import AuditLogEntry
from models.order import Order
from models.referral_link import ReferralLink
from models.user import User
from services.session_token import create_session_token


STUDENT_ID = "student-1"
STUDENT_HEADER = {"Authorization": f"Bearer {create_session_token(STUDENT_ID, 'student@example.com')['token']}"}


def _student(credits: int = 40, **overrides) -> User:
    values = dict(
        id=STUDENT_ID,
        email="student@example.com",
        name="Asha",
        branch="CSE",
        year="2",
        credits_remaining=credits,
        total_orders=0,
        total_pages=0,
    )
    values.update(overrides)
    return User(**values)


def _order_body(order_id: str = "ORD-1", page_count: int = 12, **overrides):
    body = {
        "orderId": order_id,
        "assignmentTitle": "Thermodynamics lab record",
        "orderType": "assignment",
        "pageCount": page_count,
        "uploadedFiles": [{"name": "brief.pdf", "url": "https://files.example.com/brief.pdf"}],
        "cloudinaryFolder": f"assignments/{STUDENT_ID}/{order_id}",
    }
    body.update(overrides)
    return body


@pytest.mark.asyncio
async def test_create_order_deducts_credits_and_records_pending_order(api):
    await api.add(_student(credits=40))

    response = await api.client.post(
        "/api/create-order",
        json=_order_body(page_count=12),
        headers={**STUDENT_HEADER, "User-Agent": "assignly-web/2.1"},
    )

    assert response.status_code == 200
    assert response.json() == {"success": True, "orderId": "ORD-1", "creditsRemaining": 28}

    user = await api.get(User, STUDENT_ID)
    assert user.credits_remaining == 28
    assert user.total_orders == 1
    assert user.total_pages == 12
    assert user.last_order_at is not None

    order = await api.get(Order, (STUDENT_ID, "ORD-1"))
    assert order.status == "pending"
    assert order.page_count == 12
    assert order.student_name == "Asha"
    assert order.student_email == "student@example.com"
    assert order.original_files == [{"name": "brief.pdf", "url": "https://files.example.com/brief.pdf"}]
    assert order.started_at is None
    assert order.completed_at is None

    audit = await api.all(select(AuditLogEntry).where(AuditLogEntry.action == "order_created"))
    assert len(audit) == 1
    assert audit[0].details["creditsRemaining"] == 28
    assert audit[0].details["ipAddress"] == "127.0.0.1"
    assert audit[0].details["userAgent"] == "assignly-web/2.1"


@pytest.mark.asyncio
async def test_create_order_rejects_insufficient_credits_without_side_effects(api):
    await api.add(_student(credits=5))

    response = await api.client.post("/api/create-order", json=_order_body(page_count=10), headers=STUDENT_HEADER)

    assert response.status_code == 400
    payload = response.json()
    assert payload["success"] is False
    assert payload["error"] == "Insufficient credits. Required: 10, available: 5."

    user = await api.get(User, STUDENT_ID)
    assert user.credits_remaining == 5
    assert user.total_orders == 0
    assert await api.all(select(Order)) == []


@pytest.mark.asyncio
async def test_create_order_allows_spending_the_exact_balance(api):
    await api.add(_student(credits=12))

    response = await api.client.post("/api/create-order", json=_order_body(page_count=12), headers=STUDENT_HEADER)

    assert response.status_code == 200
    assert response.json()["creditsRemaining"] == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("page_count", [0, 1001, -3])
async def test_create_order_rejects_page_count_outside_range(api, page_count):
    await api.add(_student(credits=2000))

    response = await api.client.post(
        "/api/create-order", json=_order_body(page_count=page_count), headers=STUDENT_HEADER
    )

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid page count"
    assert (await api.get(User, STUDENT_ID)).credits_remaining == 2000


@pytest.mark.asyncio
async def test_create_order_accepts_maximum_page_count(api):
    await api.add(_student(credits=1000))

    response = await api.client.post("/api/create-order", json=_order_body(page_count=1000), headers=STUDENT_HEADER)

    assert response.status_code == 200
    assert response.json()["creditsRemaining"] == 0


@pytest.mark.asyncio
async def test_create_order_rejects_unknown_order_type(api):
    await api.add(_student())

    response = await api.client.post(
        "/api/create-order", json=_order_body(orderType="thesis"), headers=STUDENT_HEADER
    )

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid order type"


@pytest.mark.asyncio
async def test_create_order_rejects_missing_fields_with_sanitized_message(api):
    await api.add(_student())
    body = _order_body()
    body.pop("assignmentTitle")

    response = await api.client.post("/api/create-order", json=body, headers=STUDENT_HEADER)

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Invalid input parameters"}


@pytest.mark.asyncio
async def test_create_order_requires_bearer_token(api):
    await api.add(_student())

    missing = await api.client.post("/api/create-order", json=_order_body())
    garbage = await api.client.post(
        "/api/create-order", json=_order_body(), headers={"Authorization": "Bearer not-a-token"}
    )

    assert missing.status_code == 401
    assert garbage.status_code == 401
    assert await api.all(select(Order)) == []


@pytest.mark.asyncio
async def test_create_order_for_unknown_user_is_not_found(api):
    response = await api.client.post("/api/create-order", json=_order_body(), headers=STUDENT_HEADER)

    assert response.status_code == 404
    assert response.json()["error"] == "User not found"


@pytest.mark.asyncio
async def test_create_order_rejects_reused_order_id_without_charging(api):
    await api.add(_student(credits=40))
    first = await api.client.post("/api/create-order", json=_order_body(page_count=5), headers=STUDENT_HEADER)
    assert first.status_code == 200

    second = await api.client.post("/api/create-order", json=_order_body(page_count=7), headers=STUDENT_HEADER)

    assert second.status_code == 409
    user = await api.get(User, STUDENT_ID)
    assert user.credits_remaining == 35
    assert user.total_orders == 1


@pytest.mark.asyncio
async def test_create_order_losing_an_order_id_race_is_a_conflict(api):
    await api.add(_student(credits=40))
    first = await api.client.post("/api/create-order", json=_order_body(page_count=5), headers=STUDENT_HEADER)
    assert first.status_code == 200

    # The existence check runs before the competing insert has committed.
    with patch("services.orders._order_exists", new=AsyncMock(return_value=False)):
        second = await api.client.post("/api/create-order", json=_order_body(page_count=7), headers=STUDENT_HEADER)

    assert second.status_code == 409
    assert second.json() == {"success": False, "error": "An order with this id already exists. Please resubmit."}
    user = await api.get(User, STUDENT_ID)
    assert user.credits_remaining == 35
    assert user.total_orders == 1
    assert (await api.get(Order, (STUDENT_ID, "ORD-1"))).page_count == 5


@pytest.mark.asyncio
async def test_create_order_increments_active_referral_link_orders(api):
    await api.add(
        _student(referral_code="WELCOME1"),
        ReferralLink(id="link-1", code="WELCOME1", name="Orientation", credits=10, active=True),
    )

    response = await api.client.post("/api/create-order", json=_order_body(page_count=3), headers=STUDENT_HEADER)

    assert response.status_code == 200
    assert (await api.get(ReferralLink, "link-1")).orders == 1


@pytest.mark.asyncio
async def test_create_order_ignores_inactive_referral_link(api):
    await api.add(
        _student(referral_code="OLDCODE1"),
        ReferralLink(id="link-2", code="OLDCODE1", name="Last term", credits=10, active=False),
    )

    response = await api.client.post("/api/create-order", json=_order_body(page_count=3), headers=STUDENT_HEADER)

    assert response.status_code == 200
    assert (await api.get(ReferralLink, "link-2")).orders == 0


@pytest.mark.asyncio
async def test_concurrent_submissions_never_overdraw_balance(api):
    await api.add(_student(credits=40))

    responses = await asyncio.gather(
        api.client.post("/api/create-order", json=_order_body("ORD-A", page_count=30), headers=STUDENT_HEADER),
        api.client.post("/api/create-order", json=_order_body("ORD-B", page_count=30), headers=STUDENT_HEADER),
    )

    statuses = sorted(response.status_code for response in responses)
    assert statuses == [200, 400]
    user = await api.get(User, STUDENT_ID)
    assert user.credits_remaining == 10
    assert user.total_orders == 1
    assert len(await api.all(select(Order))) == 1


@pytest.mark.asyncio
async def test_submission_cooldown_blocks_rapid_resubmission(api, monkeypatch):
    from config import settings

    monkeypatch.setattr(settings, "ORDER_SUBMIT_COOLDOWN_SECONDS", 60)
    await api.add(_student(credits=40))

    first = await api.client.post("/api/create-order", json=_order_body("ORD-1", page_count=2), headers=STUDENT_HEADER)
    second = await api.client.post("/api/create-order", json=_order_body("ORD-2", page_count=2), headers=STUDENT_HEADER)

    assert first.status_code == 200
    assert second.status_code == 400
    assert "Please wait" in second.json()["error"]
    assert (await api.get(User, STUDENT_ID)).credits_remaining == 38


@pytest.mark.asyncio
async def test_orders_listing_is_scoped_to_the_caller(api):
    await api.add(
        _student(credits=40),
        User(id="someone-else", email="else@example.com", credits_remaining=40, total_orders=0, total_pages=0),
    )
    await api.client.post("/api/create-order", json=_order_body("ORD-1", page_count=2), headers=STUDENT_HEADER)
    other_header = {"Authorization": f"Bearer {create_session_token('someone-else')['token']}"}

    mine = await api.client.get("/api/orders", headers=STUDENT_HEADER)
    theirs = await api.client.get("/api/orders", headers=other_header)
    single = await api.client.get("/api/orders/ORD-1", headers=STUDENT_HEADER)
    hidden = await api.client.get("/api/orders/ORD-1", headers=other_header)

    assert [order["id"] for order in mine.json()["orders"]] == ["ORD-1"]
    assert theirs.json()["orders"] == []
    assert single.json()["order"]["assignmentTitle"] == "Thermodynamics lab record"
    assert hidden.status_code == 404
