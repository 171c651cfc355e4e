"""Persistence adapter for businesses, prizes, stamps and coupons."""

from __future__ import annotations

import asyncio
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Mapping, Sequence
from uuid import UUID

from sqlalchemy import and_, delete, distinct, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from business_api.db.time import ensure_aware, utcnow
from business_api.models import Business, Coupon, Prize, Stamp


class RecordNotFoundError(LookupError):
    """Raised when a referenced local record does not exist."""

    def __init__(self, kind: str, record_id: Any) -> None:
        super().__init__(f"{kind} {record_id} not found")
        self.kind = kind
        self.record_id = record_id


class PrizeInUseError(RuntimeError):
    """Raised when deleting a prize that coupons still reference."""


@dataclass(frozen=True, slots=True)
class UserBusinessStats:
    """Locally owned aggregates for one user at one business."""

    valid_stamps: int
    coupons_count: int
    total_coupons: int
    last_visit: datetime | None


@dataclass(frozen=True, slots=True)
class DailyCount:
    day: date
    count: int

    def as_dict(self) -> dict[str, Any]:
        return {"date": self.day.isoformat(), "count": self.count}


_BUSINESS_FIELDS = ("name", "description")
_PRIZE_FIELDS = ("name", "description", "points_required")


class BusinessRepository:
    """Counting and aggregation queries over the business-service store.

    An ``AsyncSession`` cannot run statements concurrently, so every query goes
    through ``_lock``; callers are free to fan out with ``asyncio.gather``.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._db = session
        self._lock = asyncio.Lock()

    async def _scalar(self, stmt) -> Any:
        async with self._lock:
            result = await self._db.execute(stmt)
            return result.scalar()

    async def _all(self, stmt) -> Sequence[Any]:
        async with self._lock:
            result = await self._db.execute(stmt)
            return result.all()

    async def _scalars(self, stmt) -> Sequence[Any]:
        async with self._lock:
            result = await self._db.execute(stmt)
            return result.scalars().all()

    async def commit(self) -> None:
        async with self._lock:
            await self._db.commit()

    # Businesses -----------------------------------------------------------------

    async def list_businesses(self) -> Sequence[Business]:
        return await self._scalars(select(Business).order_by(Business.name.asc()))

    async def get_business(self, business_id: UUID) -> Business:
        async with self._lock:
            business = await self._db.get(Business, business_id)
        if business is None:
            raise RecordNotFoundError("Business", business_id)
        return business

    async def create_business(self, *, name: str, description: str | None = None) -> Business:
        business = Business(name=name, description=description)
        async with self._lock:
            self._db.add(business)
            await self._db.commit()
        return business

    async def update_business(self, business_id: UUID, changes: Mapping[str, Any]) -> Business:
        business = await self.get_business(business_id)
        for key in _BUSINESS_FIELDS:
            if key in changes:
                setattr(business, key, changes[key])
        await self.commit()
        return business

    async def delete_business(self, business_id: UUID) -> None:
        business = await self.get_business(business_id)
        async with self._lock:
            await self._db.execute(delete(Coupon).where(Coupon.business_id == business_id))
            await self._db.execute(delete(Stamp).where(Stamp.business_id == business_id))
            await self._db.execute(delete(Prize).where(Prize.business_id == business_id))
            await self._db.delete(business)
            await self._db.commit()

    # Prizes ---------------------------------------------------------------------

    async def list_prizes(self, business_id: UUID) -> Sequence[Prize]:
        stmt = (
            select(Prize)
            .where(Prize.business_id == business_id)
            .order_by(Prize.points_required.asc(), Prize.created_at.asc())
        )
        return await self._scalars(stmt)

    async def get_prize(self, prize_id: UUID) -> Prize:
        async with self._lock:
            prize = await self._db.get(Prize, prize_id)
        if prize is None:
            raise RecordNotFoundError("Prize", prize_id)
        return prize

    async def create_prize(
        self,
        *,
        business_id: UUID,
        name: str,
        points_required: int,
        description: str | None = None,
    ) -> Prize:
        await self.get_business(business_id)
        prize = Prize(
            business_id=business_id,
            name=name,
            points_required=points_required,
            description=description,
        )
        async with self._lock:
            self._db.add(prize)
            await self._db.commit()
        return prize

    async def update_prize(self, prize_id: UUID, changes: Mapping[str, Any]) -> Prize:
        prize = await self.get_prize(prize_id)
        for key in _PRIZE_FIELDS:
            if key in changes:
                setattr(prize, key, changes[key])
        await self.commit()
        return prize

    async def delete_prize(self, prize_id: UUID) -> None:
        prize = await self.get_prize(prize_id)
        in_use = await self._scalar(select(func.count(Coupon.id)).where(Coupon.prize_id == prize_id))
        if in_use:
            raise PrizeInUseError(f"Prize {prize_id} is referenced by {in_use} coupon(s)")
        async with self._lock:
            await self._db.delete(prize)
            await self._db.commit()

    # Stamps ---------------------------------------------------------------------

    async def add_stamps(
        self,
        user_id: str,
        business_id: UUID,
        *,
        quantity: int = 1,
        issued_at: datetime | None = None,
    ) -> list[Stamp]:
        await self.get_business(business_id)
        timestamp = issued_at or utcnow()
        stamps = [Stamp(user_id=user_id, business_id=business_id, created_at=timestamp) for _ in range(quantity)]
        async with self._lock:
            self._db.add_all(stamps)
            await self._db.commit()
        return stamps

    async def list_stamps(self, user_id: str, business_id: UUID, *, limit: int = 100) -> Sequence[Stamp]:
        stmt = (
            select(Stamp)
            .where(Stamp.user_id == user_id, Stamp.business_id == business_id)
            .order_by(Stamp.created_at.desc())
            .limit(limit)
        )
        return await self._scalars(stmt)

    # Coupons --------------------------------------------------------------------

    async def create_coupon(
        self,
        user_id: str,
        business_id: UUID,
        prize_id: UUID,
        code: str,
        expired_at: datetime | None,
    ) -> Coupon:
        prize = await self.get_prize(prize_id)
        if prize.business_id != business_id:
            raise RecordNotFoundError("Prize", prize_id)
        coupon = Coupon(
            user_id=user_id,
            business_id=business_id,
            prize_id=prize_id,
            code=code,
            is_redeemed=False,
            created_at=utcnow(),
            expired_at=expired_at,
        )
        async with self._lock:
            self._db.add(coupon)
            await self._db.commit()
            await self._db.refresh(coupon, attribute_names=["prize"])
        return coupon

    async def get_coupon(self, coupon_id: UUID) -> Coupon:
        async with self._lock:
            coupon = await self._db.get(Coupon, coupon_id)
        if coupon is None:
            raise RecordNotFoundError("Coupon", coupon_id)
        return coupon

    async def redeem_coupon(self, coupon_id: UUID, *, redeemed_at: datetime | None = None) -> Coupon:
        coupon = await self.get_coupon(coupon_id)
        coupon.is_redeemed = True
        coupon.redeemed_at = redeemed_at or utcnow()
        await self.commit()
        return coupon

    async def list_coupons(self, user_id: str, business_id: UUID) -> Sequence[Coupon]:
        stmt = (
            select(Coupon)
            .where(Coupon.user_id == user_id, Coupon.business_id == business_id)
            .order_by(Coupon.created_at.desc())
        )
        return await self._scalars(stmt)

    @staticmethod
    def _valid_coupon_clause(now: datetime):
        return and_(
            Coupon.is_redeemed.is_(False),
            or_(Coupon.expired_at.is_(None), Coupon.expired_at > now),
        )

    async def count_valid_coupons(self, user_id: str, business_id: UUID, now: datetime | None = None) -> int:
        stmt = select(func.count(Coupon.id)).where(
            Coupon.user_id == user_id,
            Coupon.business_id == business_id,
            self._valid_coupon_clause(now or utcnow()),
        )
        return int(await self._scalar(stmt) or 0)

    # CRM stats ------------------------------------------------------------------

    async def get_user_stats_for_business(
        self,
        user_id: str,
        business_id: UUID,
        now: datetime | None = None,
    ) -> UserBusinessStats:
        now = now or utcnow()
        stamp_row = (
            await self._all(
                select(func.count(Stamp.id), func.max(Stamp.created_at)).where(
                    Stamp.user_id == user_id,
                    Stamp.business_id == business_id,
                )
            )
        )[0]
        total_stamps = int(stamp_row[0] or 0)
        last_visit = ensure_aware(stamp_row[1]) if stamp_row[1] is not None else None

        coupon_row = (
            await self._all(
                select(
                    func.count(Coupon.id),
                    func.coalesce(func.sum(Prize.points_required), 0),
                )
                .join(Prize, Prize.id == Coupon.prize_id)
                .where(Coupon.user_id == user_id, Coupon.business_id == business_id)
            )
        )[0]
        total_coupons = int(coupon_row[0] or 0)
        spent_stamps = int(coupon_row[1] or 0)

        coupons_count = await self.count_valid_coupons(user_id, business_id, now)
        return UserBusinessStats(
            valid_stamps=max(total_stamps - spent_stamps, 0),
            coupons_count=coupons_count,
            total_coupons=total_coupons,
            last_visit=last_visit,
        )

    # Analytics ------------------------------------------------------------------

    async def count_stamps_in_range(self, business_id: UUID, start: datetime, end: datetime) -> int:
        stmt = select(func.count(Stamp.id)).where(
            Stamp.business_id == business_id,
            Stamp.created_at >= start,
            Stamp.created_at <= end,
        )
        return int(await self._scalar(stmt) or 0)

    async def count_redeemed_coupons_in_range(self, business_id: UUID, start: datetime, end: datetime) -> int:
        stmt = select(func.count(Coupon.id)).where(
            Coupon.business_id == business_id,
            Coupon.is_redeemed.is_(True),
            Coupon.redeemed_at >= start,
            Coupon.redeemed_at <= end,
        )
        return int(await self._scalar(stmt) or 0)

    async def count_total_coupons_redeemed(self, business_id: UUID) -> int:
        stmt = select(func.count(Coupon.id)).where(
            Coupon.business_id == business_id,
            Coupon.is_redeemed.is_(True),
        )
        return int(await self._scalar(stmt) or 0)

    async def count_new_users_since(self, business_id: UUID, since: datetime) -> int:
        first_stamps = (
            select(Stamp.user_id, func.min(Stamp.created_at).label("first_seen"))
            .where(Stamp.business_id == business_id)
            .group_by(Stamp.user_id)
            .subquery()
        )
        stmt = select(func.count()).select_from(first_stamps).where(first_stamps.c.first_seen >= since)
        return int(await self._scalar(stmt) or 0)

    async def count_distinct_customers(self, business_id: UUID) -> int:
        stmt = select(func.count(distinct(Stamp.user_id))).where(Stamp.business_id == business_id)
        return int(await self._scalar(stmt) or 0)

    async def calculate_average_user_frequency(
        self,
        business_id: UUID,
        days: int,
        now: datetime | None = None,
    ) -> float:
        since = (now or utcnow()) - timedelta(days=days)
        row = (
            await self._all(
                select(func.count(Stamp.id), func.count(distinct(Stamp.user_id))).where(
                    Stamp.business_id == business_id,
                    Stamp.created_at >= since,
                )
            )
        )[0]
        stamps, users = int(row[0] or 0), int(row[1] or 0)
        if users == 0:
            return 0.0
        return round(stamps / users, 2)

    async def calculate_returnacy_rate(
        self,
        business_id: UUID,
        days: int,
        now: datetime | None = None,
    ) -> int:
        """Count users who came back on at least two different UTC days."""

        since = (now or utcnow()) - timedelta(days=days)
        rows = await self._all(
            select(Stamp.user_id, Stamp.created_at).where(
                Stamp.business_id == business_id,
                Stamp.created_at >= since,
            )
        )
        visit_days: dict[str, set[date]] = defaultdict(set)
        for user_id, created_at in rows:
            visit_days[user_id].add(ensure_aware(created_at).date())
        return sum(1 for days_seen in visit_days.values() if len(days_seen) > 1)

    async def _stamp_rows_between(self, business_id: UUID, start: datetime, end: datetime):
        return await self._all(
            select(Stamp.user_id, Stamp.created_at).where(
                Stamp.business_id == business_id,
                Stamp.created_at >= start,
                Stamp.created_at < end,
            )
        )

    @staticmethod
    def _zero_filled(start: datetime, end: datetime, counts: Mapping[date, int]) -> list[DailyCount]:
        series: list[DailyCount] = []
        cursor = start.date()
        while cursor < end.date():
            series.append(DailyCount(day=cursor, count=counts.get(cursor, 0)))
            cursor += timedelta(days=1)
        return series

    async def get_daily_stamps(self, business_id: UUID, start: datetime, end: datetime) -> list[DailyCount]:
        """Stamps per UTC day in ``[start, end)``; both bounds are UTC midnights."""

        counts: dict[date, int] = defaultdict(int)
        for _, created_at in await self._stamp_rows_between(business_id, start, end):
            counts[ensure_aware(created_at).date()] += 1
        return self._zero_filled(start, end, counts)

    async def get_daily_transactions(self, business_id: UUID, start: datetime, end: datetime) -> list[DailyCount]:
        """Distinct visiting users per UTC day in ``[start, end)``."""

        visitors: dict[date, set[str]] = defaultdict(set)
        for user_id, created_at in await self._stamp_rows_between(business_id, start, end):
            visitors[ensure_aware(created_at).date()].add(user_id)
        counts = {day: len(users) for day, users in visitors.items()}
        return self._zero_filled(start, end, counts)


__all__ = [
    "BusinessRepository",
    "DailyCount",
    "PrizeInUseError",
    "RecordNotFoundError",
    "UserBusinessStats",
]
