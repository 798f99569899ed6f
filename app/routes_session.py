"""Listening-session routes.

Core strategy:
1. ``start`` looks up the release on Discogs, creates a session and sends
   "now playing" for the first track.
2. ``next`` advances the engine; the track that just finished is scrobbled
   if it played long enough (see ``core.eligibility``).
3. ``end`` closes the session and scrobbles the current track on the same
   condition.
4. The session is persisted after every transition; Last.fm failures are
   logged and never fail the request.
"""

from __future__ import annotations

import logging
import time
import uuid

import httpx
from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, ConfigDict, Field

from app import discogs, lastfm
from app.config import ConfigError, get_settings
from app.deps import APIException, discogs_errors, get_user_id, require_lastfm
from app.http_client import UpstreamError
from app.routes_discogs import is_release_id
from app.store import load_current_session, load_session, save_session
from core.eligibility import is_eligible, threshold_ms, track_duration_ms
from core.engine import (
    advance_session,
    create_session,
    end_session,
    pause_session,
    resume_session,
)
from core.errors import ErrorCode
from core.models import Session, SessionState, StoredToken, TrackStatus

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/session", tags=["session"])

# Failures of a Last.fm side effect; logged, not surfaced.
_LASTFM_FAILURES = (lastfm.LastFmError, ConfigError, UpstreamError, httpx.HTTPError)


class SessionStartRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    release_id: str = Field(min_length=1)


def _now_ms() -> int:
    return int(time.time() * 1000)


async def _owned_session(session_id: str, user_id: str) -> Session:
    session = await load_session(session_id)
    if session is None or session.user_id != user_id:
        raise APIException(404, ErrorCode.SESSION_NOT_FOUND, "Session not found")
    return session


def _is_pending(session: Session, index: int) -> bool:
    """True if *index* is a track of *session* that is not committed yet."""
    return 0 <= index < len(session.tracks) and session.tracks[index].status is TrackStatus.PENDING


# ---------------------------------------------------------------------------
# Last.fm side effects
# ---------------------------------------------------------------------------

async def _send_now_playing(session_key: str, session: Session) -> None:
    if session.current_track is None:
        return
    try:
        await lastfm.update_now_playing(session_key, session.release, session.current_index)
    except _LASTFM_FAILURES as exc:
        logger.error("Now playing failed for session %s: %s", session.id, exc)


async def _scrobble_if_eligible(
    session_key: str,
    session: Session,
    track_index: int,
    now: int,
) -> bool:
    """Scrobble ``track_index`` of *session* if it played long enough."""
    track = session.release.tracks[track_index]
    started_at = session.tracks[track_index].started_at
    if started_at is None:
        started_at = now

    elapsed = now - started_at
    duration = track_duration_ms(track)
    percent = get_settings().scrobble_threshold_percent
    if not is_eligible(elapsed, duration, percent):
        logger.info(
            "Not scrobbling %s - %s: played %dms, needs %.0fms",
            track.artist, track.title, elapsed, threshold_ms(duration, percent),
        )
        return False

    try:
        await lastfm.scrobble(session_key, session.release, track_index, started_at // 1000)
    except _LASTFM_FAILURES as exc:
        if isinstance(exc, lastfm.LastFmError) and exc.is_auth_error:
            logger.error("Scrobble rejected for session %s; Last.fm must be reconnected", session.id)
        else:
            logger.error("Scrobble failed for session %s: %s", session.id, exc)
        return False
    return True


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@router.post("/start")
async def start(
    request: Request,
    body: SessionStartRequest,
    lastfm_token: StoredToken = Depends(require_lastfm),
):
    user_id = get_user_id(request)
    if not is_release_id(body.release_id):
        raise APIException(400, ErrorCode.INVALID_RELEASE_ID, "Release id must be numeric")

    with discogs_errors():
        release = await discogs.get_release(body.release_id)

    session = create_session(str(uuid.uuid4()), user_id, release, _now_ms())
    await save_session(session)
    logger.info("Started session %s for release %s (%d tracks)", session.id, release.id, len(release.tracks))

    await _send_now_playing(lastfm_token.access_token, session)
    return {"session": session}


@router.post("/{session_id}/pause")
async def pause(
    request: Request,
    session_id: str,
    _: StoredToken = Depends(require_lastfm),
):
    session = await _owned_session(session_id, get_user_id(request))
    updated = pause_session(session)
    await save_session(updated)
    return {"session": updated}


@router.post("/{session_id}/resume")
async def resume(
    request: Request,
    session_id: str,
    _: StoredToken = Depends(require_lastfm),
):
    session = await _owned_session(session_id, get_user_id(request))
    updated = resume_session(session, _now_ms())
    await save_session(updated)
    return {"session": updated}


@router.post("/{session_id}/next")
async def next_track(
    request: Request,
    session_id: str,
    lastfm_token: StoredToken = Depends(require_lastfm),
):
    session = await _owned_session(session_id, get_user_id(request))
    if session.state is SessionState.ENDED:
        return {"session": session}

    now = _now_ms()
    previous_index = session.current_index
    updated = advance_session(session, now)
    await save_session(updated)

    if _is_pending(session, previous_index):
        await _scrobble_if_eligible(lastfm_token.access_token, session, previous_index, now)

    if updated.state is not SessionState.ENDED:
        await _send_now_playing(lastfm_token.access_token, updated)

    return {"session": updated}


@router.post("/{session_id}/end")
async def end(
    request: Request,
    session_id: str,
    lastfm_token: StoredToken = Depends(require_lastfm),
):
    session = await _owned_session(session_id, get_user_id(request))
    updated = end_session(session)
    await save_session(updated)

    current = session.current_index
    if session.state is not SessionState.ENDED and _is_pending(session, current):
        await _scrobble_if_eligible(lastfm_token.access_token, session, current, _now_ms())

    return {"session": updated}


@router.get("/current")
async def current(request: Request):
    user_id = get_user_id(request)
    session = await load_current_session(user_id)
    return {"session": session}
