from datetime import datetime, timedelta, timezone

import pytest

from business_api.models import Coupon, Stamp
from business_api.repositories import BusinessRepository
from business_api.services.analytics import (
    AnalyticsService,
    LocalCustomerCounter,
    RemoteCustomerCounter,
    clamp_days,
)
from business_api.services.identity import BasicUser

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (None, 30),
        ("", 30),
        ("abc", 30),
        (0, 1),
        ("0", 1),
        (-4, 1),
        ("-4", 1),
        (7, 7),
        ("14", 14),
        (91, 90),
        ("500", 90),
    ],
)
def test_clamp_days_bounds_input(raw, expected: int) -> None:
    assert clamp_days(raw) == expected


class _CountingDirectory:
    def __init__(self, total: int) -> None:
        self.total = total
        self.limits: list[int] = []

    async def query_users(self, *, search=None, limit=50, business_id=None):
        self.limits.append(limit)
        return [BasicUser(id=str(i)) for i in range(min(self.total, limit))]


@pytest.mark.asyncio
async def test_overview_combines_remote_count_with_local_aggregates(session_factory, seeded_business) -> None:
    business_id, prizes = seeded_business
    async with session_factory() as session:
        session.add_all(
            [
                Stamp(business_id=business_id, user_id="u1", created_at=NOW - timedelta(days=1)),
                Stamp(business_id=business_id, user_id="u1", created_at=NOW - timedelta(days=3)),
                Stamp(business_id=business_id, user_id="u2", created_at=NOW - timedelta(days=20)),
                Coupon(
                    business_id=business_id,
                    user_id="u1",
                    prize_id=prizes["Espresso"],
                    code="W-1",
                    is_redeemed=True,
                    created_at=NOW - timedelta(days=4),
                    redeemed_at=NOW - timedelta(days=2),
                ),
                Coupon(
                    business_id=business_id,
                    user_id="u2",
                    prize_id=prizes["Espresso"],
                    code="M-1",
                    is_redeemed=True,
                    created_at=NOW - timedelta(days=25),
                    redeemed_at=NOW - timedelta(days=15),
                ),
                Coupon(
                    business_id=business_id,
                    user_id="u2",
                    prize_id=prizes["Espresso"],
                    code="OLD",
                    is_redeemed=True,
                    created_at=NOW - timedelta(days=80),
                    redeemed_at=NOW - timedelta(days=60),
                ),
            ]
        )
        await session.commit()

        directory = _CountingDirectory(total=42)
        repository = BusinessRepository(session)
        service = AnalyticsService(repository, RemoteCustomerCounter(directory, limit=10000))
        overview = await service.compute_overview(business_id, now=NOW)

    assert directory.limits == [10000]
    assert overview.as_dict() == {
        "total_users": 42,
        "returnacy_rate": 1,
        "total_coupons_redeemed": 3,
        "week_total_coupons_redeemed": 1,
        "week_total_stamps": 2,
        "week_new_users": 1,
        "month_total_stamps": 3,
        "month_total_coupons_redeemed": 2,
        "average_user_frequency": 1.5,
    }


@pytest.mark.asyncio
async def test_local_counter_counts_distinct_stamped_users(session_factory, seeded_business) -> None:
    business_id, _ = seeded_business
    async with session_factory() as session:
        session.add_all(
            [
                Stamp(business_id=business_id, user_id="u1", created_at=NOW),
                Stamp(business_id=business_id, user_id="u1", created_at=NOW),
                Stamp(business_id=business_id, user_id="u2", created_at=NOW - timedelta(days=200)),
            ]
        )
        await session.commit()

        counter = LocalCustomerCounter(BusinessRepository(session))
        assert await counter.count(business_id) == 2


@pytest.mark.asyncio
async def test_daily_series_covers_today_inclusive(session_factory, seeded_business) -> None:
    business_id, _ = seeded_business
    async with session_factory() as session:
        session.add_all(
            [
                Stamp(business_id=business_id, user_id="u1", created_at=NOW - timedelta(hours=1)),
                Stamp(business_id=business_id, user_id="u1", created_at=NOW - timedelta(days=2)),
                Stamp(business_id=business_id, user_id="u2", created_at=NOW - timedelta(days=2)),
                Stamp(business_id=business_id, user_id="u3", created_at=NOW - timedelta(days=5)),
            ]
        )
        await session.commit()

        repository = BusinessRepository(session)
        service = AnalyticsService(repository, LocalCustomerCounter(repository))
        series = await service.compute_daily_series(business_id, 3, now=NOW)
        single_day = await service.compute_daily_series(business_id, 0, now=NOW)

    assert [item.as_dict() for item in series.daily_stamps] == [
        {"date": "2026-10-16", "count": 2},
        {"date": "2026-10-17", "count": 0},
        {"date": "2026-10-18", "count": 1},
    ]
    assert [item.count for item in series.daily_transactions] == [2, 0, 1]
    assert [item.as_dict() for item in single_day.daily_stamps] == [{"date": "2026-10-18", "count": 1}]
