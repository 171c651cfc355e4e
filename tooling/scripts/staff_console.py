"""Operator console for counter staff: sign in, scan customer QR codes, browse the CRM.

Commands:
  login         Authorization-code + PKCE sign-in against Keycloak.
  google-login  Exchange a Google Identity Services ID token via the user-service.
  scan          Issue stamps for the customer encoded in a QR payload.
  crm           List enriched customers for a business.

Tokens are cached in ``--session-file`` so later commands reuse them.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
from pathlib import Path
from typing import Any
from urllib.parse import parse_qs, urlparse

import httpx
from loguru import logger

from business_api.services.auth.pkce import (
    OidcFlowError,
    TokenSet,
    build_authorization_url,
    code_challenge_s256,
    exchange_authorization_code,
    generate_code_verifier,
    generate_state,
    login_with_identity_token,
    refresh_access_token,
    unverified_claims,
)

DEFAULT_SESSION_FILE = Path.home() / ".business_console.json"


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Loyalty operator console")
    parser.add_argument(
        "--business-url",
        default=os.environ.get("BUSINESS_SERVICE_URL", "http://localhost:3005"),
        help="Business service base URL. Defaults to $BUSINESS_SERVICE_URL.",
    )
    parser.add_argument(
        "--user-service-url",
        default=os.environ.get("USER_SERVICE_URL", "http://localhost:3004"),
        help="User service base URL. Defaults to $USER_SERVICE_URL.",
    )
    parser.add_argument(
        "--keycloak-base",
        default=os.environ.get("KEYCLOAK_BASE_URL", "http://localhost:8080"),
        help="Keycloak base URL. Defaults to $KEYCLOAK_BASE_URL.",
    )
    parser.add_argument("--realm", default=os.environ.get("KEYCLOAK_REALM", "returnacy"))
    parser.add_argument("--client-id", default=os.environ.get("KEYCLOAK_PUBLIC_CLIENT_ID", "frontend-spa"))
    parser.add_argument("--business-id", default=os.environ.get("BUSINESS_ID"))
    parser.add_argument("--session-file", type=Path, default=DEFAULT_SESSION_FILE)

    subparsers = parser.add_subparsers(dest="command", required=True)

    login = subparsers.add_parser("login", help="Sign in with authorization code + PKCE")
    login.add_argument("--redirect-uri", default=os.environ.get("REDIRECT_URI", "http://localhost:5173"))
    login.add_argument("--idp-hint", default=None, help="Keycloak identity provider alias (kc_idp_hint).")

    google = subparsers.add_parser("google-login", help="Sign in with a Google ID token")
    google.add_argument("id_token", help="Credential returned by Google Identity Services.")
    google.add_argument("--email", default=None)

    scan = subparsers.add_parser("scan", help="Issue stamps from a scanned QR payload")
    scan.add_argument("payload", help="QR content: a customer id or a URL carrying ?customer=<id>.")
    scan.add_argument("--stamps", type=int, default=1, help="Stamps to issue (1-50).")

    crm = subparsers.add_parser("crm", help="List CRM customers")
    crm.add_argument("--page", type=int, default=1)
    crm.add_argument("--limit", type=int, default=20)
    crm.add_argument("--search", default=None)
    crm.add_argument("--sort-by", choices=("name", "stamp", "coupon", "lastVisit"), default="name")
    crm.add_argument("--sort-order", choices=("asc", "desc"), default="asc")
    crm.add_argument("--has-coupon", action="store_true")
    crm.add_argument("--has-visited", type=int, default=None, help="Visited within the last N days.")
    crm.add_argument("--min-stamp", type=int, default=None)

    return parser.parse_args(argv)


def parse_qr_payload(payload: str) -> str:
    """Return the customer id encoded in a scanned QR code."""

    candidate = payload.strip()
    if "://" in candidate or candidate.startswith("?"):
        query = parse_qs(urlparse(candidate).query)
        if "coupon" in query and "customer" not in query:
            raise ValueError("Coupon QR codes are redeemed from the coupon screen, not scanned for stamps")
        customer = (query.get("customer") or [""])[0].strip()
        if not customer:
            raise ValueError("QR payload does not carry a customer parameter")
        return customer
    if not candidate:
        raise ValueError("Empty QR payload")
    return candidate


def _token_url(args: argparse.Namespace) -> str:
    return f"{args.keycloak_base.rstrip('/')}/realms/{args.realm}/protocol/openid-connect/token"


def _authorize_url(args: argparse.Namespace) -> str:
    return f"{args.keycloak_base.rstrip('/')}/realms/{args.realm}/protocol/openid-connect/auth"


def _save_session(path: Path, tokens: TokenSet) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps({"accessToken": tokens.access_token, "refreshToken": tokens.refresh_token}, indent=2),
        encoding="utf-8",
    )
    claims = unverified_claims(tokens.access_token)
    logger.info(
        "Session stored",
        path=str(path),
        subject=claims.get("sub"),
        email_verified=bool(claims.get("email_verified")),
    )


def _load_session(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise SystemExit(f"No session at {path}; run the login command first")
    return json.loads(path.read_text(encoding="utf-8"))


async def _authorized_request(
    args: argparse.Namespace,
    client: httpx.AsyncClient,
    method: str,
    path: str,
    **kwargs: Any,
) -> httpx.Response:
    """Send a business-service request, refreshing the access token once on 401."""

    session = _load_session(args.session_file)
    url = f"{args.business_url.rstrip('/')}{path}"
    headers = {"Authorization": f"Bearer {session['accessToken']}"}
    if args.business_id:
        headers["X-Business-Id"] = args.business_id
    response = await client.request(method, url, headers=headers, **kwargs)
    if response.status_code == 401 and session.get("refreshToken"):
        tokens = await refresh_access_token(
            client,
            _token_url(args),
            client_id=args.client_id,
            refresh_token=session["refreshToken"],
        )
        _save_session(args.session_file, tokens)
        headers["Authorization"] = f"Bearer {tokens.access_token}"
        response = await client.request(method, url, headers=headers, **kwargs)
    response.raise_for_status()
    return response


async def _login(args: argparse.Namespace, client: httpx.AsyncClient) -> int:
    verifier = generate_code_verifier()
    state = generate_state()
    url = build_authorization_url(
        _authorize_url(args),
        client_id=args.client_id,
        redirect_uri=args.redirect_uri,
        state=state,
        code_challenge=code_challenge_s256(verifier),
        idp_hint=args.idp_hint,
    )
    print("Open this URL in a browser and sign in:")
    print(url)
    redirected = input("Paste the full redirect URL: ").strip()
    query = parse_qs(urlparse(redirected).query)
    if (query.get("state") or [""])[0] != state:
        logger.error("State mismatch; discarding the authorization response")
        return 1
    code = (query.get("code") or [""])[0]
    if not code:
        logger.error("Redirect URL did not include an authorization code")
        return 1
    tokens = await exchange_authorization_code(
        client,
        _token_url(args),
        client_id=args.client_id,
        code=code,
        redirect_uri=args.redirect_uri,
        code_verifier=verifier,
    )
    _save_session(args.session_file, tokens)
    return 0


async def _google_login(args: argparse.Namespace, client: httpx.AsyncClient) -> int:
    tokens = await login_with_identity_token(
        client,
        args.user_service_url,
        id_token=args.id_token,
        provider="google",
        email=args.email,
    )
    _save_session(args.session_file, tokens)
    return 0


async def _scan(args: argparse.Namespace, client: httpx.AsyncClient) -> int:
    if not args.business_id:
        logger.error("--business-id (or $BUSINESS_ID) is required to issue stamps")
        return 1
    try:
        customer_id = parse_qr_payload(args.payload)
    except ValueError as error:
        logger.error("Unreadable QR payload", reason=str(error))
        return 1
    response = await _authorized_request(
        args,
        client,
        "POST",
        "/api/v1/stamps",
        json={"userId": customer_id, "businessId": args.business_id, "quantity": args.stamps},
    )
    body = response.json()
    logger.info("Stamps issued", customer_id=customer_id, quantity=args.stamps, valid_stamps=body.get("validStamps"))
    return 0


async def _crm(args: argparse.Namespace, client: httpx.AsyncClient) -> int:
    crm_filter: dict[str, Any] = {}
    if args.has_coupon:
        crm_filter["hasCoupon"] = True
    if args.has_visited:
        crm_filter["hasVisited"] = args.has_visited
    if args.min_stamp is not None:
        crm_filter["minStamp"] = args.min_stamp
    body: dict[str, Any] = {
        "page": args.page,
        "limit": args.limit,
        "sortBy": args.sort_by,
        "sortOrder": args.sort_order,
        "filter": crm_filter or None,
        "businessId": args.business_id,
    }
    if args.search:
        body["search"] = args.search
    response = await _authorized_request(args, client, "POST", "/api/v1/users", json=body)
    for row in response.json().get("data", []):
        print(json.dumps(row))
    return 0


_COMMANDS = {
    "login": _login,
    "google-login": _google_login,
    "scan": _scan,
    "crm": _crm,
}


async def _run(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    async with httpx.AsyncClient(timeout=30) as client:
        try:
            return await _COMMANDS[args.command](args, client)
        except OidcFlowError as error:
            logger.error("Sign-in failed", reason=str(error), status_code=error.status_code)
        except httpx.HTTPStatusError as error:
            logger.error(
                "Business service request failed",
                status_code=error.response.status_code,
                body=error.response.text[:500],
            )
    return 1


def main() -> int:
    return asyncio.run(_run())


if __name__ == "__main__":
    raise SystemExit(main())
