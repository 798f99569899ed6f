"""Discogs API helpers: all calls go through the resilient client.

Functions:
- request_token     → OAuth 1.0a step 1, (token, secret)
- access_token      → OAuth 1.0a step 3, (token, secret)
- get_identity      → username of the token holder
- get_collection    → one page of the user's collection
- search_releases   → one page of a release search
- get_release       → normalized Release
"""

from __future__ import annotations

import logging
import time
from typing import Optional, Tuple
from urllib.parse import quote

from app.config import discogs_credentials
from app.http_client import create_client
from core.models import CollectionPage, Release, SearchPage, StoredToken
from core.normalize import normalize_collection_item, normalize_release, normalize_search_item
from core.signing import (
    build_app_auth_header,
    build_oauth_header,
    generate_random_string,
    parse_form_encoded,
    plaintext_signature,
)

logger = logging.getLogger(__name__)

DISCOGS_API_BASE = "https://api.discogs.com"
DISCOGS_AUTHORIZE_URL = "https://www.discogs.com/oauth/authorize"
DISCOGS_USER_AGENT = "NowSpinning/0.1.0 +now-spinning.dev"

_REQUEST_TOKEN_URL = f"{DISCOGS_API_BASE}/oauth/request_token"
_ACCESS_TOKEN_URL = f"{DISCOGS_API_BASE}/oauth/access_token"

# Discogs throttles per minute; only a 429 is worth waiting out.
_http = create_client(
    max_retries=3,
    initial_delay_ms=500,
    timeout_ms=20_000,
    retry_status_codes={429},
)


class DiscogsError(Exception):
    """Discogs answered with a non-2xx status."""

    def __init__(self, status_code: int, message: str, retry_after: Optional[str] = None):
        self.status_code = status_code
        self.message = message
        self.retry_after = retry_after
        super().__init__(f"Discogs error {status_code}: {message}")

    @property
    def is_rate_limited(self) -> bool:
        return self.status_code == 429


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------

async def _get_json(url: str, auth_header: Optional[str] = None, params: Optional[dict] = None) -> dict:
    headers = {"User-Agent": DISCOGS_USER_AGENT}
    if auth_header:
        headers["Authorization"] = auth_header

    resp = await _http.request("GET", url, headers=headers, params=params)
    logger.info(
        "Discogs %s → %d | remaining=%s auth=%s",
        url.removeprefix(DISCOGS_API_BASE),
        resp.status_code,
        resp.headers.get("X-Discogs-Ratelimit-Remaining"),
        "yes" if auth_header else "no",
    )
    if not resp.is_success:
        raise DiscogsError(
            resp.status_code,
            f"Discogs returned {resp.status_code}",
            retry_after=resp.headers.get("Retry-After"),
        )
    return resp.json()


def _app_auth_header() -> str:
    consumer_key, consumer_secret = discogs_credentials()
    return build_app_auth_header(consumer_key, consumer_secret)


def user_auth_header(token: StoredToken) -> str:
    """OAuth header for calls made on behalf of the token's user."""
    consumer_key, consumer_secret = discogs_credentials()
    return build_oauth_header(
        consumer_key,
        consumer_secret,
        token.access_token,
        token.access_token_secret or "",
    )


# ---------------------------------------------------------------------------
# OAuth 1.0a token exchange
# ---------------------------------------------------------------------------

async def _token_exchange(url: str, oauth_params: dict, token_secret: str = "") -> Tuple[str, str]:
    _, consumer_secret = discogs_credentials()
    params = {
        **oauth_params,
        "oauth_nonce": generate_random_string(32),
        "oauth_signature_method": "PLAINTEXT",
        "oauth_timestamp": str(int(time.time())),
        "oauth_version": "1.0",
        "oauth_signature": plaintext_signature(consumer_secret, token_secret),
    }
    resp = await _http.request(
        "POST", url, params=params, headers={"User-Agent": DISCOGS_USER_AGENT}
    )
    if not resp.is_success:
        raise DiscogsError(
            resp.status_code,
            f"Discogs returned {resp.status_code}",
            retry_after=resp.headers.get("Retry-After"),
        )

    tokens = parse_form_encoded(resp.text)
    return tokens.get("oauth_token", ""), tokens.get("oauth_token_secret", "")


async def request_token(callback_url: str) -> Tuple[str, str]:
    """Obtain a temporary request token and its secret."""
    consumer_key, _ = discogs_credentials()
    return await _token_exchange(
        _REQUEST_TOKEN_URL,
        {"oauth_consumer_key": consumer_key, "oauth_callback": callback_url},
    )


async def access_token(oauth_token: str, token_secret: str, verifier: str) -> Tuple[str, str]:
    """Trade an authorized request token for a permanent access token."""
    consumer_key, _ = discogs_credentials()
    return await _token_exchange(
        _ACCESS_TOKEN_URL,
        {
            "oauth_consumer_key": consumer_key,
            "oauth_token": oauth_token,
            "oauth_verifier": verifier,
        },
        token_secret,
    )


def authorize_url(oauth_token: str) -> str:
    return f"{DISCOGS_AUTHORIZE_URL}?oauth_token={quote(oauth_token, safe='')}"


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

async def get_identity(auth_header: str) -> str:
    """Return the username behind *auth_header*."""
    data = await _get_json(f"{DISCOGS_API_BASE}/oauth/identity", auth_header)
    username = data.get("username")
    if not username:
        raise DiscogsError(502, "Discogs username not available")
    return username


async def get_collection(auth_header: str, username: str, page: int, per_page: int) -> CollectionPage:
    """Fetch one page of the "All" folder of *username*'s collection."""
    data = await _get_json(
        f"{DISCOGS_API_BASE}/users/{quote(username, safe='')}/collection/folders/0/releases",
        auth_header,
        params={"page": page, "per_page": per_page},
    )
    items = [
        item
        for item in (normalize_collection_item(r) for r in data.get("releases") or [])
        if item is not None
    ]
    pagination = data.get("pagination") or {}
    return CollectionPage(
        page=pagination.get("page", page),
        pages=pagination.get("pages", page),
        per_page=pagination.get("per_page", per_page),
        total_items=pagination.get("items", len(items)),
        items=items,
    )


async def search_releases(query: str, page: int, per_page: int) -> SearchPage:
    data = await _get_json(
        f"{DISCOGS_API_BASE}/database/search",
        _app_auth_header(),
        params={"q": query, "type": "release", "page": page, "per_page": per_page},
    )
    results = [r for r in data.get("results") or [] if not r.get("type") or r.get("type") == "release"]
    items = [item for item in (normalize_search_item(r) for r in results) if item is not None]
    pagination = data.get("pagination") or {}
    return SearchPage(
        query=query,
        page=pagination.get("page", page),
        pages=pagination.get("pages", page),
        per_page=pagination.get("per_page", per_page),
        total_items=pagination.get("items", len(items)),
        items=items,
    )


async def get_release(release_id: str) -> Release:
    data = await _get_json(f"{DISCOGS_API_BASE}/releases/{release_id}", _app_auth_header())
    if not isinstance(data, dict):
        raise DiscogsError(502, "Discogs release lookup returned invalid data")
    return normalize_release(data)
