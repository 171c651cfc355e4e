import asyncio
from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs

import httpx
import pytest

from business_api.core.errors import ServiceConfigurationError, TokenAcquisitionError
from business_api.core.settings import Settings
from business_api.services.identity import ClientCredentialsTokenService, build_token_service


class _Clock:
    def __init__(self) -> None:
        self.now = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now


def _token_handler(requests: list[httpx.Request], *, expires_in=60):
    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"access_token": f"token-{len(requests)}", "expires_in": expires_in})

    return handler


def _service(handler, clock: _Clock) -> ClientCredentialsTokenService:
    return ClientCredentialsTokenService(
        token_url="https://idp.test/realms/r/protocol/openid-connect/token",
        client_id="business-service",
        client_secret="s3cret",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        clock=clock,
    )


@pytest.mark.asyncio
async def test_token_is_cached_until_refresh_window() -> None:
    requests: list[httpx.Request] = []
    clock = _Clock()
    service = _service(_token_handler(requests, expires_in=120), clock)

    assert await service.get_access_token() == "token-1"
    clock.now += timedelta(seconds=80)
    assert await service.get_access_token() == "token-1"
    clock.now += timedelta(seconds=15)
    assert await service.get_access_token() == "token-2"

    assert len(requests) == 2
    form = parse_qs(requests[0].content.decode())
    assert form == {
        "grant_type": ["client_credentials"],
        "client_id": ["business-service"],
        "client_secret": ["s3cret"],
    }


@pytest.mark.asyncio
async def test_concurrent_callers_share_one_fetch() -> None:
    requests: list[httpx.Request] = []
    service = _service(_token_handler(requests), _Clock())

    tokens = await asyncio.gather(*(service.get_access_token() for _ in range(5)))

    assert tokens == ["token-1"] * 5
    assert len(requests) == 1


@pytest.mark.asyncio
async def test_invalidate_forces_refetch() -> None:
    requests: list[httpx.Request] = []
    service = _service(_token_handler(requests), _Clock())

    await service.get_access_token()
    service.invalidate()

    assert await service.get_access_token() == "token-2"


@pytest.mark.asyncio
async def test_missing_expiry_defaults_to_sixty_seconds() -> None:
    clock = _Clock()
    calls: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        return httpx.Response(200, json={"access_token": "abc"})

    service = _service(handler, clock)
    await service.get_access_token()
    clock.now += timedelta(seconds=29)
    await service.get_access_token()
    clock.now += timedelta(seconds=2)
    await service.get_access_token()

    assert len(calls) == 2


@pytest.mark.asyncio
async def test_token_endpoint_failure_raises() -> None:
    service = _service(lambda request: httpx.Response(401, json={"error": "unauthorized_client"}), _Clock())

    with pytest.raises(TokenAcquisitionError) as excinfo:
        await service.get_access_token()

    assert excinfo.value.status_code == 401


@pytest.mark.asyncio
async def test_token_response_without_access_token_raises() -> None:
    service = _service(lambda request: httpx.Response(200, json={"expires_in": 60}), _Clock())

    with pytest.raises(TokenAcquisitionError):
        await service.get_access_token()


def test_build_token_service_lists_missing_credentials() -> None:
    config = Settings(keycloak_token_url="https://idp.test/token", keycloak_client_id=None, keycloak_client_secret=None)

    with pytest.raises(ServiceConfigurationError) as excinfo:
        build_token_service(config, httpx.AsyncClient())

    assert excinfo.value.missing == ["KEYCLOAK_CLIENT_ID", "KEYCLOAK_CLIENT_SECRET"]
    assert "KEYCLOAK_CLIENT_ID" in str(excinfo.value)


@pytest.mark.asyncio
async def test_non_json_token_response_raises_acquisition_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>proxy</html>")

    service = _service(handler, _Clock())

    with pytest.raises(TokenAcquisitionError) as excinfo:
        await service.get_access_token()

    assert excinfo.value.status_code == 200
    assert "non-JSON" in str(excinfo.value)
