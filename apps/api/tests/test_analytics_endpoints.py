from datetime import datetime, timedelta, timezone

import pytest
from httpx import ASGITransport, AsyncClient

from business_api.api.v1.endpoints.analytics import get_customer_counter
from business_api.core.errors import UserServiceError
from business_api.models import Stamp


class _FixedCounter:
    def __init__(self, total: int) -> None:
        self.total = total

    async def count(self, business_id) -> int:
        return self.total


class _FailingCounter:
    async def count(self, business_id) -> int:
        raise UserServiceError("POST /internal/v1/users/query responded with 500", status_code=500)


def _client(app) -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


@pytest.mark.asyncio
async def test_overview_envelope(app_with_db, seeded_business) -> None:
    app, session_factory = app_with_db
    business_id, _ = seeded_business
    app.dependency_overrides[get_customer_counter] = lambda: _FixedCounter(17)
    async with session_factory() as session:
        session.add(Stamp(business_id=business_id, user_id="u1", created_at=datetime.now(timezone.utc) - timedelta(hours=2)))
        await session.commit()

    async with _client(app) as client:
        response = await client.get("/api/v1/analytics", headers={"X-Business-Id": str(business_id)})

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "ok"
    data = body["data"]
    assert data["totalUsers"] == 17
    assert data["weekTotalStamps"] == 1
    assert data["weekNewUsers"] == 1
    assert data["averageUserFrequency"] == 1.0
    assert set(data) == {
        "totalUsers",
        "returnacyRate",
        "totalCouponsRedeemed",
        "weekTotalCouponsRedeemed",
        "weekTotalStamps",
        "weekNewUsers",
        "monthTotalStamps",
        "monthTotalCouponsRedeemed",
        "averageUserFrequency",
    }


@pytest.mark.asyncio
async def test_overview_upstream_failure(app_with_db, seeded_business) -> None:
    app, _ = app_with_db
    business_id, _ = seeded_business
    app.dependency_overrides[get_customer_counter] = lambda: _FailingCounter()

    async with _client(app) as client:
        response = await client.get("/api/v1/analytics", params={"businessId": str(business_id)})

    assert response.status_code == 502
    assert response.json()["detail"] == "Failed to fetch analytics"


@pytest.mark.asyncio
@pytest.mark.parametrize(("days", "expected"), [("0", 1), ("-3", 1), ("7", 7), ("500", 90), (None, 30)])
async def test_daily_transactions_clamps_days(app_with_db, seeded_business, days, expected: int) -> None:
    app, _ = app_with_db
    business_id, _ = seeded_business
    params = {"businessId": str(business_id)}
    if days is not None:
        params["days"] = days

    async with _client(app) as client:
        response = await client.get("/api/v1/analytics/daily-transactions", params=params)

    assert response.status_code == 200
    data = response.json()["data"]
    assert len(data["dailyTransactions"]) == expected
    assert len(data["dailyStamps"]) == expected
    assert data["dailyStamps"][-1]["date"] == datetime.now(timezone.utc).date().isoformat()
