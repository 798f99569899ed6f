"""Last.fm Web Services client: signed calls through the resilient client.

Functions:
- call_method         → signed POST, returns decoded JSON
- get_session_key     → auth.getSession token exchange
- update_now_playing  → track.updateNowPlaying for one release track
- scrobble            → track.scrobble for one release track
"""

from __future__ import annotations

import logging
from typing import Dict, Optional

from app.config import Settings, get_settings, lastfm_credentials
from app.http_client import create_client
from core.models import Release, Track
from core.signing import lastfm_signature

logger = logging.getLogger(__name__)

LASTFM_API_URL = "https://ws.audioscrobbler.com/2.0/"
LASTFM_AUTH_URL = "https://www.last.fm/api/auth"

# Last.fm error codes that mean the stored session key is no good.
_AUTH_ERROR_CODES = frozenset({4, 9, 14})  # auth failed, invalid session, token expired
_RATE_LIMIT_CODE = 29

_http = create_client(max_retries=2, initial_delay_ms=250, timeout_ms=15_000)


class LastFmError(Exception):
    """Last.fm answered with an error payload or a non-2xx status."""

    def __init__(self, message: str, code: Optional[int] = None):
        self.code = code
        self.message = message
        super().__init__(message if code is None else f"Last.fm error {code}: {message}")

    @property
    def is_auth_error(self) -> bool:
        return self.code in _AUTH_ERROR_CODES

    @property
    def is_rate_limited(self) -> bool:
        return self.code == _RATE_LIMIT_CODE


# ---------------------------------------------------------------------------
# Signed method calls
# ---------------------------------------------------------------------------

def build_params(**values) -> Dict[str, str]:
    """Stringify values, dropping ``None`` (Last.fm rejects empty params)."""
    return {key: str(value) for key, value in values.items() if value is not None}


async def call_method(
    method: str,
    params: Dict[str, str],
    *,
    settings: Optional[Settings] = None,
) -> dict:
    """POST a signed Last.fm method call and return the JSON body.

    Raises ``ConfigError`` without credentials, ``LastFmError`` on an API
    error, and lets transport / timeout failures from the client propagate.
    """
    api_key, shared_secret = lastfm_credentials(settings)

    payload = {"method": method, "api_key": api_key, "format": "json", **params}
    payload["api_sig"] = lastfm_signature(payload, shared_secret)

    resp = await _http.request("POST", LASTFM_API_URL, data=payload)
    try:
        data = resp.json()
    except ValueError:
        data = None
    if not isinstance(data, dict):
        data = {}

    if not resp.is_success or data.get("error"):
        message = data.get("message") or f"Last.fm request failed ({resp.status_code})"
        logger.warning("Last.fm %s failed: status=%d code=%s", method, resp.status_code, data.get("error"))
        raise LastFmError(message, code=data.get("error"))
    return data


async def get_session_key(token: str) -> str:
    """Exchange an auth callback token for a permanent session key."""
    data = await call_method("auth.getSession", {"token": token})
    key = (data.get("session") or {}).get("key")
    if not key:
        raise LastFmError("Last.fm session key missing")
    return key


# ---------------------------------------------------------------------------
# Now playing / scrobble
# ---------------------------------------------------------------------------

def _track_at(release: Release, track_index: int) -> Track:
    if not 0 <= track_index < len(release.tracks):
        raise ValueError(f"Track index {track_index} out of bounds")
    return release.tracks[track_index]


async def update_now_playing(session_key: str, release: Release, track_index: int) -> None:
    track = _track_at(release, track_index)
    if get_settings().dev_mode:
        logger.info(
            "[dev] would send now playing: %s - %s (%s)", track.artist, track.title, release.title
        )
        return

    await call_method(
        "track.updateNowPlaying",
        build_params(
            sk=session_key,
            artist=track.artist,
            track=track.title,
            album=release.title,
            duration=track.duration_sec,
        ),
    )


async def scrobble(
    session_key: str,
    release: Release,
    track_index: int,
    timestamp_sec: int,
) -> None:
    """Scrobble a track that started playing at *timestamp_sec* (Unix seconds)."""
    track = _track_at(release, track_index)
    if get_settings().dev_mode:
        logger.info(
            "[dev] would scrobble: %s - %s (%s) at %d",
            track.artist, track.title, release.title, timestamp_sec,
        )
        return

    await call_method(
        "track.scrobble",
        build_params(
            sk=session_key,
            artist=track.artist,
            track=track.title,
            album=release.title,
            timestamp=timestamp_sec,
            duration=track.duration_sec,
        ),
    )
    logger.info("Scrobbled %s - %s", track.artist, track.title)
