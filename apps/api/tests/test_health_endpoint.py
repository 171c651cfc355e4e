from types import SimpleNamespace

import pytest
from httpx import ASGITransport, AsyncClient

from business_api.api.dependencies.security import get_http_client
from business_api.app import create_app
from business_api.observability.membership_sync import get_membership_sync_store


@pytest.mark.asyncio
async def test_health_is_open(app_with_db) -> None:
    app, _ = app_with_db
    app.dependency_overrides.clear()

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_readyz_reports_database_and_sync_components(app_with_db) -> None:
    app, _ = app_with_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.get("/readyz")

    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "ready"
    assert payload["components"]["database"]["status"] == "ready"
    sync = payload["components"]["membership_sync"]
    assert sync["status"] == "ready"
    assert sync["metrics"]["lastError"] is None


@pytest.mark.asyncio
async def test_readyz_degrades_after_failed_sync(app_with_db) -> None:
    app, _ = app_with_db
    get_membership_sync_store().record_failure("user-service unavailable")

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.get("/readyz")

    payload = response.json()
    assert payload["status"] == "degraded"
    assert payload["components"]["membership_sync"]["detail"] == "user-service unavailable"
    assert payload["components"]["membership_sync"]["metrics"]["totals"] == {"failed": 1}


@pytest.mark.asyncio
async def test_lifespan_owns_the_shared_http_client() -> None:
    app = create_app()

    async with app.router.lifespan_context(app):
        client = app.state.http_client
        assert client.is_closed is False

    assert client.is_closed is True


def test_http_client_requires_a_started_lifespan() -> None:
    request = SimpleNamespace(app=SimpleNamespace(state=SimpleNamespace()))

    with pytest.raises(RuntimeError):
        get_http_client(request)
