"""HTTP client for the user-service (identity, memberships, wallet passes)."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Protocol
from urllib.parse import quote
from uuid import UUID

import httpx

from business_api.core.errors import UserServiceError


class AccessTokenProvider(Protocol):
    async def get_access_token(self) -> str:
        """Return a bearer token for service-to-service calls."""


@dataclass(frozen=True, slots=True)
class BasicUser:
    id: str
    email: str | None = None
    phone: str | None = None
    name: str | None = None
    surname: str | None = None
    birthday: str | None = None


@dataclass(frozen=True, slots=True)
class Membership:
    business_id: str | None
    roles: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class UserProfile:
    id: str
    email: str | None
    memberships: tuple[Membership, ...] = ()


@dataclass(slots=True)
class MembershipCounterUpdate:
    """Counter changes pushed to the user-service after local writes."""

    user_id: str
    business_id: UUID | str
    valid_stamps: int | None = None
    valid_coupons: int | None = None
    total_stamps_delta: int | None = None
    total_coupons_delta: int | None = None

    def as_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "businessId": str(self.business_id),
            "validStamps": self.valid_stamps,
            "validCoupons": self.valid_coupons,
            "totalStampsDelta": self.total_stamps_delta,
            "totalCouponsDelta": self.total_coupons_delta,
        }
        return {key: value for key, value in payload.items() if value is not None}


@dataclass(frozen=True, slots=True)
class WalletPass:
    linked: bool
    object_id: str | None
    wallet_pass: Mapping[str, Any] | None = field(default=None)


def _segment(value: Any) -> str:
    return quote(str(value), safe="")


class UserServiceClient:
    """Thin async wrapper over the user-service internal API."""

    def __init__(
        self,
        *,
        base_url: str,
        http_client: httpx.AsyncClient,
        token_provider: AccessTokenProvider | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._http = http_client
        self._tokens = token_provider

    async def _auth_headers(self) -> dict[str, str]:
        if self._tokens is None:
            return {}
        token = await self._tokens.get_access_token()
        return {"Authorization": f"Bearer {token}"} if token else {}

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        headers: Mapping[str, str] | None = None,
        allow_not_found: bool = False,
    ) -> httpx.Response | None:
        request_headers = dict(headers) if headers is not None else await self._auth_headers()
        url = f"{self._base_url}{path}"
        try:
            response = await self._http.request(method, url, json=json, headers=request_headers)
        except httpx.HTTPError as exc:
            raise UserServiceError(f"{method} {path} failed: {exc}") from exc

        if allow_not_found and response.status_code == 404:
            return None
        if response.is_error:
            raise UserServiceError(
                f"{method} {path} responded with {response.status_code}",
                status_code=response.status_code,
            )
        return response

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            path = response.request.url.path
            raise UserServiceError(
                f"{response.request.method} {path} returned a non-JSON body",
                status_code=response.status_code,
            ) from exc

    async def query_users(
        self,
        *,
        search: str | None = None,
        limit: int = 50,
        business_id: UUID | str | None = None,
    ) -> list[BasicUser]:
        targeting_rules: list[dict[str, Any]] = []
        if search:
            targeting_rules.append(
                {"database": "USER", "field": "email", "operator": "CONTAINS", "value": search}
            )
        response = await self._request(
            "POST",
            "/internal/v1/users/query",
            json={
                "targetingRules": targeting_rules,
                "limit": limit,
                "businessId": str(business_id) if business_id else None,
            },
        )
        payload = self._json(response) or {}
        return [self._to_basic_user(item) for item in payload.get("users") or []]

    @staticmethod
    def _to_basic_user(raw: Mapping[str, Any]) -> BasicUser:
        attributes = raw.get("attributes") or {}
        return BasicUser(
            id=str(raw.get("id")),
            email=raw.get("email"),
            phone=raw.get("phone"),
            name=raw.get("firstName"),
            surname=raw.get("lastName"),
            birthday=attributes.get("birthday"),
        )

    async def update_membership_counters(self, update: MembershipCounterUpdate) -> None:
        await self._request(
            "POST",
            f"/internal/v1/users/{_segment(update.user_id)}/memberships/counters",
            json=update.as_payload(),
        )

    async def get_wallet_pass(self, user_id: str, business_id: UUID | str) -> WalletPass:
        response = await self._request(
            "GET",
            f"/internal/v1/users/{_segment(user_id)}/memberships/{_segment(business_id)}/wallet-pass",
            allow_not_found=True,
        )
        if response is None:
            return WalletPass(linked=False, object_id=None)
        return self._to_wallet_pass(self._json(response), fallback_object_id=None)

    async def upsert_wallet_pass(
        self,
        user_id: str,
        business_id: UUID | str,
        *,
        object_id: str | None,
    ) -> WalletPass:
        response = await self._request(
            "POST",
            f"/internal/v1/users/{_segment(user_id)}/memberships/{_segment(business_id)}/wallet-pass",
            json={"objectId": object_id},
        )
        payload = self._json(response)
        if not payload:
            return WalletPass(linked=True, object_id=object_id)
        return self._to_wallet_pass(payload, fallback_object_id=object_id)

    @staticmethod
    def _to_wallet_pass(payload: Mapping[str, Any] | None, *, fallback_object_id: str | None) -> WalletPass:
        if not payload:
            return WalletPass(linked=False, object_id=None)
        return WalletPass(
            linked=bool(payload.get("linked", True)),
            object_id=payload.get("objectId", fallback_object_id),
            wallet_pass=payload.get("walletPass"),
        )

    async def get_profile(self, access_token: str) -> UserProfile:
        """Resolve the caller's own profile and memberships using their token."""

        response = await self._request(
            "GET",
            "/api/v1/me",
            headers={"Authorization": f"Bearer {access_token}"},
        )
        payload = self._json(response) or {}
        user = payload.get("user") if isinstance(payload.get("user"), Mapping) else payload
        memberships = tuple(
            Membership(
                business_id=str(item["businessId"]) if item.get("businessId") else None,
                roles=tuple(str(role) for role in item.get("roles") or []),
            )
            for item in user.get("memberships") or []
            if isinstance(item, Mapping)
        )
        return UserProfile(id=str(user.get("id")), email=user.get("email"), memberships=memberships)


__all__ = [
    "AccessTokenProvider",
    "BasicUser",
    "Membership",
    "MembershipCounterUpdate",
    "UserProfile",
    "UserServiceClient",
    "WalletPass",
]
