"""Business dashboard metrics computed from stamps and coupons."""

from __future__ import annotations

import asyncio
from dataclasses import asdict, dataclass
from datetime import datetime, time, timedelta, timezone
from typing import Any, Protocol
from uuid import UUID

from business_api.repositories.business_repository import BusinessRepository, DailyCount
from business_api.services.identity import UserServiceClient

WEEK_DAYS = 7
MONTH_DAYS = 30
DEFAULT_SERIES_DAYS = 30
MAX_SERIES_DAYS = 90


class CustomerCounter(Protocol):
    async def count(self, business_id: UUID) -> int: ...


class RemoteCustomerCounter:
    """Counts customers by bulk-querying the user-service membership list."""

    def __init__(self, users: UserServiceClient, *, limit: int = 10000) -> None:
        self._users = users
        self._limit = limit

    async def count(self, business_id: UUID) -> int:
        users = await self._users.query_users(business_id=business_id, limit=self._limit)
        return len(users)


class LocalCustomerCounter:
    """Counts distinct users that ever received a stamp at the business."""

    def __init__(self, repository: BusinessRepository) -> None:
        self._repository = repository

    async def count(self, business_id: UUID) -> int:
        return await self._repository.count_distinct_customers(business_id)


@dataclass(frozen=True, slots=True)
class AnalyticsOverview:
    total_users: int
    returnacy_rate: int
    total_coupons_redeemed: int
    week_total_coupons_redeemed: int
    week_total_stamps: int
    week_new_users: int
    month_total_stamps: int
    month_total_coupons_redeemed: int
    average_user_frequency: float

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class DailySeries:
    daily_transactions: list[DailyCount]
    daily_stamps: list[DailyCount]


def clamp_days(value: Any, default: int = DEFAULT_SERIES_DAYS) -> int:
    """Coerce a caller-supplied day count into ``[1, MAX_SERIES_DAYS]``.

    Missing or non-numeric input falls back to ``default``; zero and negative
    values clamp to one day.
    """

    if value is None or value == "":
        return default
    try:
        days = int(value)
    except (TypeError, ValueError):
        days = default
    return min(MAX_SERIES_DAYS, max(1, days))


def utc_midnight(moment: datetime) -> datetime:
    moment = moment.astimezone(timezone.utc)
    return datetime.combine(moment.date(), time.min, tzinfo=timezone.utc)


class AnalyticsService:
    """Aggregates weekly/monthly loyalty activity for one business."""

    def __init__(self, repository: BusinessRepository, customer_counter: CustomerCounter) -> None:
        self._repository = repository
        self._customers = customer_counter

    async def compute_overview(self, business_id: UUID, *, now: datetime | None = None) -> AnalyticsOverview:
        now = now or datetime.now(timezone.utc)
        start_of_week = now - timedelta(days=WEEK_DAYS)
        start_of_month = now - timedelta(days=MONTH_DAYS)
        repo = self._repository

        (
            total_users,
            week_total_stamps,
            month_total_stamps,
            month_total_coupons_redeemed,
            week_new_users,
            total_coupons_redeemed,
            week_total_coupons_redeemed,
            average_user_frequency,
            returnacy_rate,
        ) = await asyncio.gather(
            self._customers.count(business_id),
            repo.count_stamps_in_range(business_id, start_of_week, now),
            repo.count_stamps_in_range(business_id, start_of_month, now),
            repo.count_redeemed_coupons_in_range(business_id, start_of_month, now),
            repo.count_new_users_since(business_id, start_of_week),
            repo.count_total_coupons_redeemed(business_id),
            repo.count_redeemed_coupons_in_range(business_id, start_of_week, now),
            repo.calculate_average_user_frequency(business_id, MONTH_DAYS, now),
            repo.calculate_returnacy_rate(business_id, MONTH_DAYS, now),
        )

        return AnalyticsOverview(
            total_users=total_users,
            returnacy_rate=returnacy_rate,
            total_coupons_redeemed=total_coupons_redeemed,
            week_total_coupons_redeemed=week_total_coupons_redeemed,
            week_total_stamps=week_total_stamps,
            week_new_users=week_new_users,
            month_total_stamps=month_total_stamps,
            month_total_coupons_redeemed=month_total_coupons_redeemed,
            average_user_frequency=average_user_frequency,
        )

    async def compute_daily_series(
        self,
        business_id: UUID,
        days: int,
        *,
        now: datetime | None = None,
    ) -> DailySeries:
        """Per-day buckets from ``days - 1`` UTC midnights ago through today."""

        days = clamp_days(days)
        today = utc_midnight(now or datetime.now(timezone.utc))
        start = today - timedelta(days=days - 1)
        end = today + timedelta(days=1)

        daily_transactions, daily_stamps = await asyncio.gather(
            self._repository.get_daily_transactions(business_id, start, end),
            self._repository.get_daily_stamps(business_id, start, end),
        )
        return DailySeries(daily_transactions=daily_transactions, daily_stamps=daily_stamps)


__all__ = [
    "AnalyticsOverview",
    "AnalyticsService",
    "CustomerCounter",
    "DailySeries",
    "LocalCustomerCounter",
    "RemoteCustomerCounter",
    "clamp_days",
    "utc_midnight",
]
