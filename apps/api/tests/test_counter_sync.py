import pytest

from business_api.core.errors import UserServiceError
from business_api.observability.membership_sync import MembershipSyncObservabilityStore
from business_api.services.identity import MembershipCounterUpdate
from business_api.services.memberships import MembershipCounterSync


class _FlakyClient:
    def __init__(self, failures: int) -> None:
        self.failures = failures
        self.calls = 0

    async def update_membership_counters(self, update: MembershipCounterUpdate) -> None:
        self.calls += 1
        if self.calls <= self.failures:
            raise UserServiceError("user-service unavailable", status_code=503)


def _sync(client: _FlakyClient, store: MembershipSyncObservabilityStore, delays: list[float]) -> MembershipCounterSync:
    async def fake_sleep(delay: float) -> None:
        delays.append(delay)

    return MembershipCounterSync(
        lambda: client,
        max_attempts=3,
        backoff_seconds=0.5,
        sleep=fake_sleep,
        store=store,
    )


UPDATE = MembershipCounterUpdate(user_id="u1", business_id="b1", valid_coupons=0)


@pytest.mark.asyncio
async def test_push_retries_with_exponential_backoff() -> None:
    client = _FlakyClient(failures=2)
    store = MembershipSyncObservabilityStore()
    delays: list[float] = []

    assert await _sync(client, store, delays).push(UPDATE) is True

    assert client.calls == 3
    assert delays == [0.5, 1.0]
    snapshot = store.snapshot()
    assert snapshot.totals == {"succeeded": 1, "retried": 1}
    assert snapshot.last_failure_at is None


@pytest.mark.asyncio
async def test_push_gives_up_without_raising() -> None:
    client = _FlakyClient(failures=10)
    store = MembershipSyncObservabilityStore()
    delays: list[float] = []

    assert await _sync(client, store, delays).push(UPDATE) is False

    assert client.calls == 3
    assert delays == [0.5, 1.0]
    snapshot = store.snapshot()
    assert snapshot.totals == {"failed": 1}
    assert snapshot.last_error == "user-service unavailable"
    assert snapshot.as_dict()["lastFailureAt"] is not None


@pytest.mark.asyncio
async def test_client_factory_errors_are_retried_too() -> None:
    store = MembershipSyncObservabilityStore()
    attempts: list[int] = []

    def factory():
        attempts.append(1)
        raise RuntimeError("Missing KEYCLOAK_CLIENT_ID for business-service")

    async def no_sleep(delay: float) -> None:
        return None

    sync = MembershipCounterSync(factory, max_attempts=2, backoff_seconds=0, sleep=no_sleep, store=store)

    assert await sync.push(UPDATE) is False
    assert len(attempts) == 2
    assert store.snapshot().totals == {"failed": 1}
