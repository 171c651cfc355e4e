"""Authorization-code + PKCE helpers for operator sign-in against Keycloak."""

from __future__ import annotations

import base64
import hashlib
import secrets
from dataclasses import dataclass
from typing import Any, Literal, Mapping
from urllib.parse import urlencode

import httpx
import jwt
from loguru import logger

DEFAULT_SCOPE = "openid profile email offline_access"
_VERIFIER_BYTES = 32


class OidcFlowError(RuntimeError):
    """Raised when the identity provider rejects a token or login request."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True, slots=True)
class TokenSet:
    access_token: str
    refresh_token: str | None
    id_token: str | None
    expires_in: int | None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "TokenSet":
        access_token = payload.get("access_token") or payload.get("accessToken")
        if not access_token:
            raise OidcFlowError("Token response did not include an access token")
        expires_in = payload.get("expires_in") or payload.get("expiresIn")
        return cls(
            access_token=str(access_token),
            refresh_token=payload.get("refresh_token") or payload.get("refreshToken"),
            id_token=payload.get("id_token") or payload.get("idToken"),
            expires_in=int(expires_in) if expires_in is not None else None,
        )


def _b64url(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def generate_code_verifier(num_bytes: int = _VERIFIER_BYTES) -> str:
    """URL-safe verifier; 32 random bytes encode to 43 characters."""

    if not 32 <= num_bytes <= 96:
        raise ValueError("num_bytes must be between 32 and 96")
    return _b64url(secrets.token_bytes(num_bytes))


def code_challenge_s256(verifier: str) -> str:
    return _b64url(hashlib.sha256(verifier.encode("ascii")).digest())


def generate_state() -> str:
    return secrets.token_urlsafe(16)


def build_authorization_url(
    authorize_url: str,
    *,
    client_id: str,
    redirect_uri: str,
    state: str,
    code_challenge: str,
    scope: str = DEFAULT_SCOPE,
    idp_hint: str | None = None,
) -> str:
    params = {
        "client_id": client_id,
        "response_type": "code",
        "scope": scope,
        "redirect_uri": redirect_uri,
        "state": state,
        "code_challenge": code_challenge,
        "code_challenge_method": "S256",
    }
    if idp_hint:
        params["kc_idp_hint"] = idp_hint
    return f"{authorize_url}?{urlencode(params)}"


async def _post_token_form(http_client: httpx.AsyncClient, token_url: str, data: Mapping[str, str]) -> TokenSet:
    try:
        response = await http_client.post(
            token_url,
            data=dict(data),
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
    except httpx.HTTPError as exc:
        raise OidcFlowError(f"Token endpoint unreachable: {exc}") from exc
    if response.is_error:
        raise OidcFlowError(
            f"Token endpoint responded with {response.status_code}",
            status_code=response.status_code,
        )
    return TokenSet.from_payload(response.json())


async def exchange_authorization_code(
    http_client: httpx.AsyncClient,
    token_url: str,
    *,
    client_id: str,
    code: str,
    redirect_uri: str,
    code_verifier: str,
) -> TokenSet:
    return await _post_token_form(
        http_client,
        token_url,
        {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": redirect_uri,
            "client_id": client_id,
            "code_verifier": code_verifier,
        },
    )


async def refresh_access_token(
    http_client: httpx.AsyncClient,
    token_url: str,
    *,
    client_id: str,
    refresh_token: str,
) -> TokenSet:
    return await _post_token_form(
        http_client,
        token_url,
        {"grant_type": "refresh_token", "client_id": client_id, "refresh_token": refresh_token},
    )


def unverified_claims(token: str) -> dict[str, Any]:
    """Decode the token payload for display only; the signature is not checked."""

    try:
        return jwt.decode(token, options={"verify_signature": False})
    except jwt.PyJWTError:
        return {}


async def login_with_identity_token(
    http_client: httpx.AsyncClient,
    user_service_url: str,
    *,
    id_token: str,
    provider: Literal["google", "apple"] = "google",
    email: str | None = None,
) -> TokenSet:
    """Exchange a third-party ID token for platform tokens via the user-service."""

    if provider not in ("google", "apple"):
        raise ValueError(f"Unsupported identity provider: {provider}")
    payload: dict[str, Any] = {"authType": "oauth", "provider": provider, "idToken": id_token}
    if email:
        payload["email"] = email

    url = f"{user_service_url.rstrip('/')}/api/v1/auth/login"
    try:
        response = await http_client.post(url, json=payload)
    except httpx.HTTPError as exc:
        raise OidcFlowError(f"Login request failed: {exc}") from exc
    if response.is_error:
        raise OidcFlowError(f"Login rejected with {response.status_code}", status_code=response.status_code)

    body = response.json()
    tokens = body.get("tokens") if isinstance(body.get("tokens"), Mapping) else body
    logger.debug("Identity token login succeeded", provider=provider)
    return TokenSet.from_payload(tokens)


__all__ = [
    "DEFAULT_SCOPE",
    "OidcFlowError",
    "TokenSet",
    "build_authorization_url",
    "code_challenge_s256",
    "exchange_authorization_code",
    "generate_code_verifier",
    "generate_state",
    "login_with_identity_token",
    "refresh_access_token",
    "unverified_claims",
]
