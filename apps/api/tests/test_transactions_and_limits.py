from unittest.mock import AsyncMock, patch

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.exc import IntegrityError, OperationalError

from main import app
from services.errors import DeletionFailedError, NotFoundError, TransactionConflictError
from services.transactions import is_retryable_conflict, run_transaction


def _locked_error():
    return OperationalError("UPDATE users", {}, Exception("database is locked"))


class _SerializationFailure(Exception):
    sqlstate = "40001"


def _session():
    session = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    return session


def test_retryable_conflicts_are_recognised():
    assert is_retryable_conflict(_locked_error())
    assert is_retryable_conflict(OperationalError("UPDATE", {}, _SerializationFailure("could not serialize")))
    assert not is_retryable_conflict(IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed")))
    assert not is_retryable_conflict(ValueError("boom"))


@pytest.mark.asyncio
async def test_run_transaction_retries_conflicts_then_commits():
    session = _session()
    unit = AsyncMock(side_effect=[_locked_error(), "done"])

    with patch("services.transactions.asyncio.sleep", new=AsyncMock()):
        result = await run_transaction(session, unit, label="test", max_attempts=3)

    assert result == "done"
    assert unit.await_count == 2
    session.rollback.assert_awaited_once()
    session.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_run_transaction_gives_up_after_max_attempts():
    session = _session()
    unit = AsyncMock(side_effect=_locked_error())

    with patch("services.transactions.asyncio.sleep", new=AsyncMock()):
        with pytest.raises(DeletionFailedError):
            await run_transaction(session, unit, label="test", max_attempts=3, conflict_error=DeletionFailedError)

    assert unit.await_count == 3
    assert session.rollback.await_count == 3
    session.commit.assert_not_awaited()


@pytest.mark.asyncio
async def test_run_transaction_propagates_domain_errors_without_retry():
    session = _session()
    unit = AsyncMock(side_effect=NotFoundError("Order not found"))

    with pytest.raises(NotFoundError):
        await run_transaction(session, unit, label="test", max_attempts=3)

    assert unit.await_count == 1
    session.rollback.assert_awaited_once()


@pytest.mark.asyncio
async def test_run_transaction_hides_unexpected_errors():
    session = _session()
    unit = AsyncMock(side_effect=RuntimeError("connection reset by peer"))

    with pytest.raises(TransactionConflictError) as exc_info:
        await run_transaction(session, unit, label="test", max_attempts=3)

    assert "connection reset" not in str(exc_info.value.detail)
    assert unit.await_count == 1


class _FakeRedis:
    def __init__(self):
        self.counters = {}

    async def incr(self, key):
        self.counters[key] = self.counters.get(key, 0) + 1
        return self.counters[key]

    async def expire(self, key, seconds):
        return True


@pytest.mark.asyncio
async def test_order_submission_is_rate_limited_per_client(api):
    app.state.disable_rate_limits = False
    previous_redis = getattr(app.state, "redis", None)
    app.state.redis = _FakeRedis()
    try:
        statuses = []
        for _ in range(31):
            response = await api.client.post("/api/create-order", json={})
            statuses.append(response.status_code)
    finally:
        app.state.redis = previous_redis

    assert statuses[:30] == [401] * 30
    assert statuses[30] == 429


async def _post_with_rotating_forwarded_for(api, count):
    app.state.disable_rate_limits = False
    previous_redis = getattr(app.state, "redis", None)
    app.state.redis = _FakeRedis()
    try:
        statuses = []
        for index in range(count):
            response = await api.client.post(
                "/api/create-order",
                json={},
                headers={"X-Forwarded-For": f"10.0.0.{index}"},
            )
            statuses.append(response.status_code)
    finally:
        app.state.redis = previous_redis
    return statuses


@pytest.mark.asyncio
async def test_spoofed_forwarded_for_does_not_reset_the_quota(api):
    statuses = await _post_with_rotating_forwarded_for(api, 35)

    assert statuses[:30] == [401] * 30
    assert statuses[30:] == [429] * 5


@pytest.mark.asyncio
async def test_forwarded_for_is_used_when_proxy_is_trusted(api, monkeypatch):
    from config import settings

    monkeypatch.setattr(settings, "RATE_LIMIT_TRUST_FORWARDED_FOR", True)

    statuses = await _post_with_rotating_forwarded_for(api, 35)

    assert statuses == [401] * 35


@pytest.mark.asyncio
async def test_unhandled_errors_return_generic_message(api):
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    with patch("routers.cleanup.get_cleanup_queue_status", side_effect=RuntimeError("secret internals")):
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/api/cleanup-cloudinary")

    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "An error occurred. Please try again."}
