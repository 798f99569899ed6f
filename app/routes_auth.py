"""Connect / disconnect the two upstream accounts.

Last.fm (web auth):
  1. GET /api/auth/lastfm/start      → {"redirect_url"} to last.fm/api/auth
  2. GET /api/auth/lastfm/callback   → token → session key (auth.getSession)

Discogs (OAuth 1.0a, PLAINTEXT):
  1. POST /api/auth/discogs/start    → request token, {"redirect_url"}
  2. GET  /api/auth/discogs/callback → verifier → access token + secret

Tokens are stored server side under the user id from the session cookie.
"""

from __future__ import annotations

import logging
import time
from urllib.parse import urlencode, urljoin

import httpx
from fastapi import APIRouter, Request
from fastapi.responses import RedirectResponse

from app import discogs, lastfm
from app.config import ConfigError, get_settings
from app.deps import APIException, discogs_errors, get_user_id
from app.http_client import UpstreamError
from app.store import load_tokens, pop_oauth_state, store_oauth_state, store_tokens
from core.errors import ErrorCode
from core.models import StoredToken

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _now_ms() -> int:
    return int(time.time() * 1000)


def _settings_redirect(service: str) -> RedirectResponse:
    origin = get_settings().public_app_origin
    return RedirectResponse(urljoin(origin, f"/settings?auth={service}"), status_code=302)


# ---------------------------------------------------------------------------
# Status
# ---------------------------------------------------------------------------

@router.get("/status")
async def auth_status(request: Request):
    tokens = await load_tokens(get_user_id(request))
    return {
        "lastfm_connected": tokens.lastfm is not None,
        "discogs_connected": tokens.discogs is not None,
    }


# ---------------------------------------------------------------------------
# Last.fm
# ---------------------------------------------------------------------------

@router.get("/lastfm/start")
async def lastfm_start(request: Request):
    get_user_id(request)
    settings = get_settings()

    if not settings.lastfm_api_key:
        raise ConfigError("Last.fm API key not configured")
    if not settings.lastfm_callback_url:
        raise ConfigError("Last.fm callback URL not configured")

    params = urlencode({"api_key": settings.lastfm_api_key, "cb": settings.lastfm_callback_url})
    return {"redirect_url": f"{lastfm.LASTFM_AUTH_URL}?{params}"}


@router.get("/lastfm/callback")
async def lastfm_callback(request: Request, token: str | None = None, error: str | None = None):
    if not token:
        raise APIException(403, ErrorCode.AUTH_DENIED, error or "User denied Last.fm authorization")

    user_id = get_user_id(request)
    try:
        session_key = await lastfm.get_session_key(token)
    except lastfm.LastFmError as exc:
        raise APIException(502, ErrorCode.LASTFM_ERROR, exc.message) from exc
    except (UpstreamError, httpx.HTTPError) as exc:
        raise APIException(502, ErrorCode.LASTFM_ERROR, "Last.fm is unreachable") from exc

    tokens = await load_tokens(user_id)
    tokens.lastfm = StoredToken(service="lastfm", access_token=session_key, stored_at=_now_ms())
    await store_tokens(user_id, tokens)
    logger.info("Last.fm connected for user %s", user_id)

    return _settings_redirect("lastfm")


@router.post("/lastfm/disconnect")
async def lastfm_disconnect(request: Request):
    user_id = get_user_id(request)
    tokens = await load_tokens(user_id)
    tokens.lastfm = None
    await store_tokens(user_id, tokens)
    return {"success": True}


# ---------------------------------------------------------------------------
# Discogs
# ---------------------------------------------------------------------------

@router.post("/discogs/start")
async def discogs_start(request: Request):
    user_id = get_user_id(request)
    settings = get_settings()

    if not settings.discogs_callback_url:
        raise ConfigError("Discogs callback URL not configured")

    with discogs_errors():
        oauth_token, oauth_token_secret = await discogs.request_token(settings.discogs_callback_url)

    await store_oauth_state(
        "discogs",
        oauth_token,
        {
            "session_id": user_id,
            "oauth_token": oauth_token,
            "oauth_token_secret": oauth_token_secret,
        },
    )
    return {"redirect_url": discogs.authorize_url(oauth_token)}


@router.get("/discogs/callback")
async def discogs_callback(
    request: Request,
    oauth_token: str | None = None,
    oauth_verifier: str | None = None,
):
    if not oauth_token or not oauth_verifier:
        raise APIException(403, ErrorCode.AUTH_DENIED, "User denied Discogs authorization")

    user_id = get_user_id(request)
    state = await pop_oauth_state("discogs", oauth_token)
    if state is None:
        raise APIException(403, ErrorCode.INVALID_STATE, "OAuth state token expired or invalid")

    with discogs_errors():
        token, token_secret = await discogs.access_token(
            oauth_token, state.get("oauth_token_secret", ""), oauth_verifier
        )

    tokens = await load_tokens(user_id)
    tokens.discogs = StoredToken(
        service="discogs",
        access_token=token,
        access_token_secret=token_secret,
        stored_at=_now_ms(),
    )
    await store_tokens(user_id, tokens)
    logger.info("Discogs connected for user %s", user_id)

    return _settings_redirect("discogs")


@router.post("/discogs/disconnect")
async def discogs_disconnect(request: Request):
    user_id = get_user_id(request)
    tokens = await load_tokens(user_id)
    tokens.discogs = None
    await store_tokens(user_id, tokens)
    return {"success": True}
