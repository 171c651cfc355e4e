"""Client-credentials access token cache for service-to-service calls."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

import httpx
from loguru import logger

from business_api.core.errors import ServiceConfigurationError, TokenAcquisitionError
from business_api.core.settings import Settings

DEFAULT_EXPIRES_IN_SECONDS = 60

Clock = Callable[[], datetime]


@dataclass(slots=True)
class _CachedToken:
    access_token: str
    expires_at: datetime

    def is_fresh(self, now: datetime, skew: timedelta) -> bool:
        return now < self.expires_at - skew


class ClientCredentialsTokenService:
    """Fetches and caches a Keycloak client-credentials token until shortly before expiry."""

    def __init__(
        self,
        *,
        token_url: str,
        client_id: str,
        client_secret: str,
        http_client: httpx.AsyncClient,
        refresh_skew: timedelta = timedelta(seconds=30),
        clock: Clock | None = None,
    ) -> None:
        self._token_url = token_url
        self._client_id = client_id
        self._client_secret = client_secret
        self._http = http_client
        self._refresh_skew = refresh_skew
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._cached: _CachedToken | None = None
        self._lock = asyncio.Lock()

    async def get_access_token(self) -> str:
        cached = self._cached
        if cached and cached.is_fresh(self._clock(), self._refresh_skew):
            return cached.access_token

        async with self._lock:
            cached = self._cached
            if cached and cached.is_fresh(self._clock(), self._refresh_skew):
                return cached.access_token
            self._cached = await self._fetch()
            return self._cached.access_token

    def invalidate(self) -> None:
        self._cached = None

    async def _fetch(self) -> _CachedToken:
        try:
            response = await self._http.post(
                self._token_url,
                data={
                    "grant_type": "client_credentials",
                    "client_id": self._client_id,
                    "client_secret": self._client_secret,
                },
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
        except httpx.HTTPError as exc:
            raise TokenAcquisitionError(f"Token endpoint unreachable: {exc}") from exc

        if response.status_code != 200:
            raise TokenAcquisitionError(
                f"Token endpoint responded with {response.status_code}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise TokenAcquisitionError(
                "Token endpoint returned a non-JSON body",
                status_code=response.status_code,
            ) from exc
        if not isinstance(payload, dict):
            raise TokenAcquisitionError(
                "Token endpoint returned an unexpected payload",
                status_code=response.status_code,
            )
        access_token = payload.get("access_token")
        if not access_token:
            raise TokenAcquisitionError("Token endpoint response did not include access_token")

        try:
            expires_in = int(payload.get("expires_in") or DEFAULT_EXPIRES_IN_SECONDS)
        except (TypeError, ValueError):
            expires_in = DEFAULT_EXPIRES_IN_SECONDS

        expires_at = self._clock() + timedelta(seconds=expires_in)
        logger.debug("Service access token refreshed", client_id=self._client_id, expires_in=expires_in)
        return _CachedToken(access_token=str(access_token), expires_at=expires_at)


def build_token_service(config: Settings, http_client: httpx.AsyncClient) -> ClientCredentialsTokenService:
    """Construct the token service, failing fast on missing credentials."""

    required = {
        "KEYCLOAK_TOKEN_URL": config.keycloak_token_url,
        "KEYCLOAK_CLIENT_ID": config.keycloak_client_id,
        "KEYCLOAK_CLIENT_SECRET": config.keycloak_client_secret,
    }
    missing = [name for name, value in required.items() if not value]
    if missing:
        raise ServiceConfigurationError(missing, component="business-service")

    return ClientCredentialsTokenService(
        token_url=str(config.keycloak_token_url),
        client_id=str(config.keycloak_client_id),
        client_secret=str(config.keycloak_client_secret),
        http_client=http_client,
        refresh_skew=timedelta(seconds=config.token_refresh_skew_seconds),
    )


__all__ = ["ClientCredentialsTokenService", "build_token_service"]
