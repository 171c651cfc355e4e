"""CRM customer listing: remote identities enriched with local loyalty stats."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Iterable, Literal, Protocol, Sequence
from uuid import UUID

from loguru import logger

from business_api.repositories.business_repository import UserBusinessStats
from business_api.services.identity import BasicUser
from business_api.services.loyalty import DEFAULT_PRIZE_STEP, PrizeCatalog, compute_progression

SortKey = Literal["name", "stamp", "coupon", "lastVisit"]
SortOrder = Literal["asc", "desc"]

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class UserDirectory(Protocol):
    async def query_users(
        self,
        *,
        search: str | None = None,
        limit: int = 50,
        business_id: UUID | str | None = None,
    ) -> list[BasicUser]: ...


class StatsRepository(Protocol):
    async def list_prizes(self, business_id: UUID) -> Sequence[object]: ...

    async def get_user_stats_for_business(
        self, user_id: str, business_id: UUID, now: datetime | None = None
    ) -> UserBusinessStats: ...


@dataclass(frozen=True, slots=True)
class CrmFilter:
    has_coupon: bool | None = None
    has_visited_days: int | None = None
    min_stamp: int | None = None


@dataclass(frozen=True, slots=True)
class CrmListQuery:
    business_id: UUID
    page: int = 1
    limit: int = 20
    search: str | None = None
    sort_by: SortKey = "name"
    sort_order: SortOrder = "asc"
    filter: CrmFilter = field(default_factory=CrmFilter)


@dataclass(slots=True)
class CrmRow:
    id: str
    email: str | None
    phone: str | None
    name: str | None
    surname: str | None
    birthday: str | None
    valid_stamps: int
    coupons_count: int
    total_coupons: int
    last_visit: datetime | None
    stamps_last_prize: int
    stamps_next_prize: int
    next_prize_name: str | None

    @property
    def display_name(self) -> str:
        return f"{self.name or ''} {self.surname or ''}".strip().lower()


def apply_filters(rows: Iterable[CrmRow], crm_filter: CrmFilter, now: datetime) -> list[CrmRow]:
    """Keep rows satisfying every active filter; inactive filters are ignored."""

    cutoff: datetime | None = None
    if crm_filter.has_visited_days and crm_filter.has_visited_days > 0:
        cutoff = now - timedelta(days=crm_filter.has_visited_days)

    selected: list[CrmRow] = []
    for row in rows:
        if crm_filter.min_stamp and crm_filter.min_stamp > 0 and row.valid_stamps < crm_filter.min_stamp:
            continue
        if crm_filter.has_coupon and row.coupons_count <= 0:
            continue
        if cutoff is not None and (row.last_visit or _EPOCH) < cutoff:
            continue
        selected.append(row)
    return selected


_SORT_KEYS: dict[str, Callable[[CrmRow], Any]] = {
    "name": lambda row: row.display_name,
    "stamp": lambda row: row.valid_stamps,
    "coupon": lambda row: row.coupons_count,
    "lastVisit": lambda row: row.last_visit or _EPOCH,
}


def sort_rows(rows: Iterable[CrmRow], sort_by: SortKey, sort_order: SortOrder) -> list[CrmRow]:
    """Stable sort; rows with equal keys keep their input order in both directions."""

    key = _SORT_KEYS.get(sort_by, _SORT_KEYS["name"])
    return sorted(rows, key=key, reverse=sort_order == "desc")


def paginate(rows: Sequence[CrmRow], page: int, limit: int) -> list[CrmRow]:
    start = max(0, (page - 1) * limit)
    return list(rows[start : start + limit])


class CrmListingService:
    """Fetch base users, enrich with local stats and progression, then filter/sort/page.

    Only ``query.limit`` users are requested from the identity service, so filters
    and later pages can only ever select from that first batch.
    """

    def __init__(
        self,
        *,
        users: UserDirectory,
        repository: StatsRepository,
        default_prize_step: int = DEFAULT_PRIZE_STEP,
    ) -> None:
        self._users = users
        self._repository = repository
        self._default_step = default_prize_step

    async def list_users(self, query: CrmListQuery, *, now: datetime | None = None) -> list[CrmRow]:
        now = now or datetime.now(timezone.utc)

        base_users = await self._users.query_users(
            search=query.search,
            limit=query.limit,
            business_id=query.business_id,
        )
        catalog = PrizeCatalog.from_prizes(await self._repository.list_prizes(query.business_id))

        rows = await asyncio.gather(
            *(self._enrich(user, query.business_id, catalog, now) for user in base_users)
        )

        filtered = apply_filters(rows, query.filter, now)
        ordered = sort_rows(filtered, query.sort_by, query.sort_order)
        page = paginate(ordered, query.page, query.limit)
        logger.debug(
            "CRM listing assembled",
            business_id=str(query.business_id),
            fetched=len(base_users),
            matched=len(filtered),
            returned=len(page),
        )
        return page

    async def _enrich(
        self,
        user: BasicUser,
        business_id: UUID,
        catalog: PrizeCatalog,
        now: datetime,
    ) -> CrmRow:
        stats = await self._repository.get_user_stats_for_business(user.id, business_id, now)
        progression = compute_progression(stats.valid_stamps, catalog, default_step=self._default_step)
        return CrmRow(
            id=user.id,
            email=user.email,
            phone=user.phone,
            name=user.name,
            surname=user.surname,
            birthday=user.birthday,
            valid_stamps=stats.valid_stamps,
            coupons_count=stats.coupons_count,
            total_coupons=stats.total_coupons,
            last_visit=stats.last_visit,
            stamps_last_prize=progression.stamps_last_prize,
            stamps_next_prize=progression.stamps_next_prize,
            next_prize_name=progression.next_prize_name,
        )


__all__ = [
    "CrmFilter",
    "CrmListQuery",
    "CrmListingService",
    "CrmRow",
    "apply_filters",
    "paginate",
    "sort_rows",
]
