import os
import sys
from pathlib import Path

os.environ.setdefault("TRACING_ENABLED", "false")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")


def _configure_path() -> None:
    src_path = Path(__file__).resolve().parents[1] / "src"
    if src_path.exists():
        sys.path.insert(0, str(src_path))


_configure_path()

from typing import Any  # noqa: E402
from uuid import UUID  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402

from business_api.api.dependencies.security import (  # noqa: E402
    StaffPrincipal,
    get_counter_sync,
    get_user_service_client,
    require_staff_principal,
)
from business_api.app import create_app  # noqa: E402
from business_api.db.base import Base  # noqa: E402
from business_api.db.session import get_session  # noqa: E402
from business_api.models import Business, Prize  # noqa: E402
from business_api.observability.membership_sync import get_membership_sync_store  # noqa: E402
from business_api.services.identity import (  # noqa: E402
    BasicUser,
    Membership,
    MembershipCounterUpdate,
    WalletPass,
)


class FakeUserDirectory:
    """In-memory stand-in for the user-service client used by route handlers."""

    def __init__(self, users: list[BasicUser] | None = None) -> None:
        self.users = list(users or [])
        self.queries: list[dict[str, Any]] = []
        self.wallet_passes: dict[tuple[str, str], WalletPass] = {}

    async def query_users(self, *, search=None, limit=50, business_id=None) -> list[BasicUser]:
        self.queries.append({"search": search, "limit": limit, "business_id": business_id})
        matched = [user for user in self.users if not search or search in (user.email or "")]
        return matched[:limit]

    async def get_wallet_pass(self, user_id: str, business_id: UUID | str) -> WalletPass:
        return self.wallet_passes.get((user_id, str(business_id)), WalletPass(linked=False, object_id=None))

    async def upsert_wallet_pass(self, user_id: str, business_id: UUID | str, *, object_id: str | None) -> WalletPass:
        wallet_pass = WalletPass(linked=True, object_id=object_id)
        self.wallet_passes[(user_id, str(business_id))] = wallet_pass
        return wallet_pass


class RecordingCounterSync:
    def __init__(self) -> None:
        self.updates: list[MembershipCounterUpdate] = []

    async def push(self, update: MembershipCounterUpdate) -> bool:
        self.updates.append(update)
        return True


@pytest.fixture(autouse=True)
def _reset_sync_store():
    get_membership_sync_store().reset()
    yield
    get_membership_sync_store().reset()


@pytest_asyncio.fixture
async def session_factory():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", future=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

    try:
        yield factory
    finally:
        await engine.dispose()


@pytest.fixture
def fake_users() -> FakeUserDirectory:
    return FakeUserDirectory()


@pytest.fixture
def counter_sync() -> RecordingCounterSync:
    return RecordingCounterSync()


@pytest_asyncio.fixture
async def app_with_db(session_factory, fake_users, counter_sync):
    app = create_app()

    async def override_get_session():
        async with session_factory() as session:
            yield session

    def override_principal() -> StaffPrincipal:
        return StaffPrincipal(
            subject="staff-1",
            email="staff@example.com",
            memberships=(Membership(business_id=None, roles=("staff",)),),
        )

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[require_staff_principal] = override_principal
    app.dependency_overrides[get_user_service_client] = lambda: fake_users
    app.dependency_overrides[get_counter_sync] = lambda: counter_sync

    try:
        yield app, session_factory
    finally:
        app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def seeded_business(session_factory):
    """A business with a 10/25/50 prize ladder."""

    async with session_factory() as session:
        business = Business(name="Corner Cafe")
        session.add(business)
        await session.flush()
        prizes = [
            Prize(business_id=business.id, name="Espresso", points_required=10),
            Prize(business_id=business.id, name="Brunch", points_required=25),
            Prize(business_id=business.id, name="Dinner", points_required=50),
        ]
        session.add_all(prizes)
        await session.commit()
        return business.id, {prize.name: prize.id for prize in prizes}
