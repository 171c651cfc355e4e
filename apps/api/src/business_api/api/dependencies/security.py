"""Bearer verification, staff role gate and per-request service wiring."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Iterable
from uuid import UUID

import httpx
import jwt
from fastapi import Depends, Header, HTTPException, Query, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from business_api.core.errors import ServiceConfigurationError, UserServiceError
from business_api.core.settings import settings
from business_api.db.session import get_session
from business_api.repositories import BusinessRepository
from business_api.services.identity import (
    ClientCredentialsTokenService,
    Membership,
    UserServiceClient,
    build_token_service,
)
from business_api.services.memberships import MembershipCounterSync

bearer_scheme = HTTPBearer(auto_error=False)


class KeycloakTokenVerifier:
    """Validates realm-issued RS256 access tokens against the published JWKS."""

    def __init__(
        self,
        *,
        issuer: str,
        jwks_url: str,
        audience: str | None = None,
        jwk_client: jwt.PyJWKClient | None = None,
    ) -> None:
        self.issuer = issuer
        self.audience = audience
        self._jwk_client = jwk_client or jwt.PyJWKClient(jwks_url)

    def verify(self, token: str) -> dict[str, Any]:
        signing_key = self._jwk_client.get_signing_key_from_jwt(token)
        options = {"require": ["exp", "iss", "sub"], "verify_aud": bool(self.audience)}
        return jwt.decode(
            token,
            signing_key.key,
            algorithms=["RS256"],
            issuer=self.issuer,
            audience=self.audience,
            options=options,
        )


@lru_cache
def _build_verifier(issuer: str, jwks_url: str, audience: str | None) -> KeycloakTokenVerifier:
    return KeycloakTokenVerifier(issuer=issuer, jwks_url=jwks_url, audience=audience)


def get_token_verifier() -> KeycloakTokenVerifier:
    if not settings.keycloak_issuer or not settings.resolved_jwks_url:
        raise ServiceConfigurationError(["KEYCLOAK_ISSUER"], component="bearer verification")
    return _build_verifier(settings.keycloak_issuer, settings.resolved_jwks_url, settings.keycloak_audience)


def get_http_client(request: Request) -> httpx.AsyncClient:
    """Shared client opened and closed by the application lifespan."""

    client = getattr(request.app.state, "http_client", None)
    if client is None:
        raise RuntimeError("HTTP client is not initialised; the application lifespan has not started")
    return client


def get_token_service(
    request: Request,
    http_client: httpx.AsyncClient = Depends(get_http_client),
) -> ClientCredentialsTokenService:
    service = getattr(request.app.state, "token_service", None)
    if service is None:
        service = build_token_service(settings, http_client)
        request.app.state.token_service = service
    return service


def get_profile_client(http_client: httpx.AsyncClient = Depends(get_http_client)) -> UserServiceClient:
    """User-service client that forwards the caller's own bearer token."""

    return UserServiceClient(base_url=settings.user_service_url, http_client=http_client)


def get_user_service_client(
    http_client: httpx.AsyncClient = Depends(get_http_client),
    tokens: ClientCredentialsTokenService = Depends(get_token_service),
) -> UserServiceClient:
    return UserServiceClient(base_url=settings.user_service_url, http_client=http_client, token_provider=tokens)


def get_counter_sync(request: Request, http_client: httpx.AsyncClient = Depends(get_http_client)) -> MembershipCounterSync:
    """Counter sync whose client is built lazily so missing credentials surface per attempt."""

    def client_factory() -> UserServiceClient:
        tokens = getattr(request.app.state, "token_service", None) or build_token_service(settings, http_client)
        request.app.state.token_service = tokens
        return UserServiceClient(base_url=settings.user_service_url, http_client=http_client, token_provider=tokens)

    return MembershipCounterSync(
        client_factory,
        max_attempts=settings.membership_sync_max_attempts,
        backoff_seconds=settings.membership_sync_backoff_seconds,
    )


def get_repository(session: AsyncSession = Depends(get_session)) -> BusinessRepository:
    return BusinessRepository(session)


@dataclass(frozen=True, slots=True)
class StaffPrincipal:
    subject: str
    email: str | None
    memberships: tuple[Membership, ...]


def has_allowed_role(memberships: Iterable[Membership], allowed_roles: Iterable[str]) -> bool:
    allowed = {role.lower() for role in allowed_roles}
    return any(str(role).lower() in allowed for membership in memberships for role in membership.roles)


async def require_staff_principal(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    verifier: KeycloakTokenVerifier = Depends(get_token_verifier),
    profiles: UserServiceClient = Depends(get_profile_client),
) -> StaffPrincipal:
    """Authenticate the bearer token and require a staff-or-higher membership role."""

    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing bearer token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = credentials.credentials
    try:
        claims = await run_in_threadpool(verifier.verify, token)
    except jwt.PyJWTError as error:
        logger.info("Rejected bearer token", reason=str(error), path=request.url.path)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from error

    try:
        profile = await profiles.get_profile(token)
    except UserServiceError as error:
        if error.status_code in (401, 403):
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token") from error
        logger.exception("Profile lookup failed", path=request.url.path)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Failed to load user profile") from error

    if not has_allowed_role(profile.memberships, settings.allowed_roles):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Requires staff or higher role")

    return StaffPrincipal(
        subject=str(claims.get("sub")),
        email=profile.email or claims.get("email"),
        memberships=profile.memberships,
    )


def resolve_business_id(
    business_id: UUID | None = Query(None, alias="businessId"),
    header_business_id: UUID | None = Header(None, alias="X-Business-Id"),
) -> UUID:
    """Query parameter, then header, then the configured default."""

    resolved = business_id or header_business_id or settings.default_business_id
    if resolved is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="businessId required")
    return resolved


__all__ = [
    "KeycloakTokenVerifier",
    "StaffPrincipal",
    "bearer_scheme",
    "get_counter_sync",
    "get_http_client",
    "get_profile_client",
    "get_repository",
    "get_token_service",
    "get_token_verifier",
    "get_user_service_client",
    "has_allowed_role",
    "require_staff_principal",
    "resolve_business_id",
]
