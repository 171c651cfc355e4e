import json
import string
from urllib.parse import parse_qs, urlparse

import httpx
import jwt
import pytest

from business_api.services.auth import pkce


def test_code_verifier_is_url_safe_and_sized() -> None:
    verifier = pkce.generate_code_verifier()

    assert len(verifier) == 43
    assert set(verifier) <= set(string.ascii_letters + string.digits + "-_")
    assert pkce.generate_code_verifier() != verifier
    assert len(pkce.generate_code_verifier(96)) == 128


@pytest.mark.parametrize("num_bytes", [16, 31, 97])
def test_code_verifier_rejects_out_of_range_lengths(num_bytes: int) -> None:
    with pytest.raises(ValueError):
        pkce.generate_code_verifier(num_bytes)


def test_code_challenge_matches_rfc7636_example() -> None:
    verifier = "dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk"

    assert pkce.code_challenge_s256(verifier) == "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM"


def test_authorization_url_carries_pkce_parameters() -> None:
    url = pkce.build_authorization_url(
        "https://id.example.com/realms/loyalty/protocol/openid-connect/auth",
        client_id="frontend-spa",
        redirect_uri="http://localhost:5173",
        state="state-123",
        code_challenge="challenge",
        idp_hint="google",
    )

    parsed = urlparse(url)
    params = {key: values[0] for key, values in parse_qs(parsed.query).items()}
    assert parsed.path.endswith("/openid-connect/auth")
    assert params == {
        "client_id": "frontend-spa",
        "response_type": "code",
        "scope": pkce.DEFAULT_SCOPE,
        "redirect_uri": "http://localhost:5173",
        "state": "state-123",
        "code_challenge": "challenge",
        "code_challenge_method": "S256",
        "kc_idp_hint": "google",
    }


@pytest.mark.asyncio
async def test_exchange_authorization_code_posts_form() -> None:
    seen: list[dict[str, list[str]]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(parse_qs(request.content.decode()))
        return httpx.Response(
            200,
            json={"access_token": "access", "refresh_token": "refresh", "expires_in": 300},
        )

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        tokens = await pkce.exchange_authorization_code(
            client,
            "https://id.example.com/token",
            client_id="frontend-spa",
            code="auth-code",
            redirect_uri="http://localhost:5173",
            code_verifier="verifier",
        )

    assert tokens.access_token == "access"
    assert tokens.refresh_token == "refresh"
    assert tokens.expires_in == 300
    assert seen[0]["grant_type"] == ["authorization_code"]
    assert seen[0]["code_verifier"] == ["verifier"]


@pytest.mark.asyncio
async def test_refresh_rejection_raises_flow_error() -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(400, json={"error": "invalid_grant"}))

    async with httpx.AsyncClient(transport=transport) as client:
        with pytest.raises(pkce.OidcFlowError) as excinfo:
            await pkce.refresh_access_token(
                client,
                "https://id.example.com/token",
                client_id="frontend-spa",
                refresh_token="stale",
            )

    assert excinfo.value.status_code == 400


@pytest.mark.asyncio
async def test_identity_token_login_reads_wrapped_tokens() -> None:
    bodies: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/v1/auth/login"
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={"tokens": {"accessToken": "platform", "refreshToken": "r1"}})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        tokens = await pkce.login_with_identity_token(
            client,
            "http://users.internal/",
            id_token="google-id-token",
            email="guest@example.com",
        )

    assert tokens.access_token == "platform"
    assert tokens.refresh_token == "r1"
    assert bodies == [
        {
            "authType": "oauth",
            "provider": "google",
            "idToken": "google-id-token",
            "email": "guest@example.com",
        }
    ]


def test_unverified_claims_decodes_payload() -> None:
    token = jwt.encode({"sub": "kc-1", "email_verified": True}, "display-only-secret-0123456789abcdef", algorithm="HS256")

    assert pkce.unverified_claims(token) == {"sub": "kc-1", "email_verified": True}
    assert pkce.unverified_claims("not-a-jwt") == {}


def test_token_set_requires_access_token() -> None:
    with pytest.raises(pkce.OidcFlowError):
        pkce.TokenSet.from_payload({"refresh_token": "only"})
