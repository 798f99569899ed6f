"""Session engine: pure state machine, no I/O.

States: running → paused (pause), paused → running (resume),
running/paused → running | ended (advance), any → ended (end).
``ended`` is terminal.

Every function takes a ``Session`` and returns a ``Session``; the input is
never mutated.
"""

from __future__ import annotations

from typing import Tuple

from core.models import Release, Session, SessionState, SessionTrackState, TrackStatus


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------

def create_session(
    session_id: str,
    user_id: str,
    release: Release,
    started_at: int,
) -> Session:
    """Start a running session on the first track of *release*.

    Every track starts ``pending``; track 0 gets *started_at*.  A release
    without tracks still yields a running session at index 0.
    """
    tracks = [SessionTrackState(index=track.index) for track in release.tracks]
    if tracks:
        tracks[0] = tracks[0].model_copy(update={"started_at": started_at})

    return Session(
        id=session_id,
        user_id=user_id,
        release=release,
        state=SessionState.RUNNING,
        current_index=0,
        started_at=started_at,
        tracks=tuple(tracks),
    )


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------

def pause_session(session: Session) -> Session:
    match session.state:
        case SessionState.RUNNING:
            return session.model_copy(update={"state": SessionState.PAUSED})
        case SessionState.PAUSED | SessionState.ENDED:
            return session
        case _:
            raise ValueError(f"Unknown session state: {session.state!r}")


def resume_session(session: Session, resumed_at: int) -> Session:
    """Resume playback.

    If the current track never started (paused before it began), it starts
    at *resumed_at*.  An existing ``started_at`` is kept.
    """
    match session.state:
        case SessionState.ENDED:
            return session
        case SessionState.RUNNING | SessionState.PAUSED:
            pass
        case _:
            raise ValueError(f"Unknown session state: {session.state!r}")

    tracks = _start_track(session.tracks, session.current_index, resumed_at)
    return session.model_copy(update={"state": SessionState.RUNNING, "tracks": tracks})


def advance_session(session: Session, advanced_at: int) -> Session:
    """Commit the current track and move to the next one.

    The current track is marked scrobbled at *advanced_at* (once).  Past the
    last track the session ends and ``current_index`` stays on the last
    track.  An out-of-range ``current_index`` commits nothing; past the end
    the session ends with the index left as is.
    """
    if not session.tracks:
        return session.model_copy(update={"state": SessionState.ENDED})

    match session.state:
        case SessionState.ENDED:
            return session
        case SessionState.RUNNING | SessionState.PAUSED:
            pass
        case _:
            raise ValueError(f"Unknown session state: {session.state!r}")

    tracks = list(session.tracks)
    index = session.current_index
    if 0 <= index < len(tracks) and tracks[index].status is TrackStatus.PENDING:
        tracks[index] = tracks[index].model_copy(
            update={"status": TrackStatus.SCROBBLED, "scrobbled_at": advanced_at}
        )

    # A negative index has not reached the first track yet.
    next_index = max(index + 1, 0)
    if next_index >= len(tracks):
        return session.model_copy(
            update={"state": SessionState.ENDED, "tracks": tuple(tracks)}
        )

    return session.model_copy(
        update={
            "state": SessionState.RUNNING,
            "current_index": next_index,
            "tracks": _start_track(tuple(tracks), next_index, advanced_at),
        }
    )


def end_session(session: Session) -> Session:
    if session.state is SessionState.ENDED:
        return session
    return session.model_copy(update={"state": SessionState.ENDED})


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _start_track(
    tracks: Tuple[SessionTrackState, ...],
    index: int,
    at: int,
) -> Tuple[SessionTrackState, ...]:
    """Set ``started_at`` on ``tracks[index]`` unless it is already set."""
    if not 0 <= index < len(tracks) or tracks[index].started_at is not None:
        return tracks
    updated = list(tracks)
    updated[index] = tracks[index].model_copy(update={"started_at": at})
    return tuple(updated)
