"""Pydantic models shared across the application."""

from __future__ import annotations

from enum import Enum
from typing import List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator


# ---------------------------------------------------------------------------
# Catalog (normalized Discogs data)
# ---------------------------------------------------------------------------

class Track(BaseModel):
    """One track of a release, in stable tracklist order."""

    model_config = ConfigDict(frozen=True)

    index: int  # 0-based, equals position in Release.tracks
    position: str  # e.g. "A1", "B3", "1"
    title: str = "Untitled"
    artist: str = "Unknown Artist"
    duration_sec: Optional[int] = None
    side: Optional[str] = None  # "A".."D"; None when the position has no side letter


class Release(BaseModel):
    """A vinyl release with its ordered tracklist."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str = "Untitled"
    artist: str = "Unknown Artist"
    year: Optional[int] = None
    cover_url: Optional[str] = None
    tracks: Tuple[Track, ...] = ()

    @model_validator(mode="after")
    def _check_track_indexes(self) -> Release:
        for position, track in enumerate(self.tracks):
            if track.index != position:
                raise ValueError(f"track at position {position} has index {track.index}")
        return self


class CollectionItem(BaseModel):
    """One entry of a user's Discogs collection."""

    instance_id: str
    release_id: str
    title: str
    artist: str
    year: Optional[int] = None
    thumb_url: Optional[str] = None
    formats: List[str] = Field(default_factory=list)
    date_added: Optional[str] = None


class SearchItem(BaseModel):
    """One release returned by a Discogs database search."""

    release_id: str
    title: str
    artist: str
    year: Optional[int] = None
    thumb_url: Optional[str] = None
    formats: List[str] = Field(default_factory=list)


class CollectionPage(BaseModel):
    page: int
    pages: int
    per_page: int
    total_items: int
    items: List[CollectionItem] = Field(default_factory=list)


class SearchPage(BaseModel):
    query: str
    page: int
    pages: int
    per_page: int
    total_items: int
    items: List[SearchItem] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Listening session
# ---------------------------------------------------------------------------

class SessionState(str, Enum):
    RUNNING = "running"
    PAUSED = "paused"
    ENDED = "ended"


class TrackStatus(str, Enum):
    PENDING = "pending"
    SCROBBLED = "scrobbled"


class SessionTrackState(BaseModel):
    """Per-track progress, aligned by index with ``Release.tracks``."""

    model_config = ConfigDict(frozen=True)

    index: int
    started_at: Optional[int] = None  # epoch ms
    status: TrackStatus = TrackStatus.PENDING
    scrobbled_at: Optional[int] = None  # epoch ms


class Session(BaseModel):
    """Snapshot of a listening session.

    Immutable: every engine transition returns a new ``Session``.  Callers
    keep the latest value and discard the previous one.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    user_id: str
    release: Release
    state: SessionState = SessionState.RUNNING
    current_index: int = Field(0, ge=0)
    started_at: int  # epoch ms
    tracks: Tuple[SessionTrackState, ...] = ()

    @model_validator(mode="after")
    def _check_alignment(self) -> Session:
        """Track states mirror the release tracklist; the index stays in range until ended."""
        if len(self.tracks) != len(self.release.tracks):
            raise ValueError(
                f"{len(self.tracks)} track states for {len(self.release.tracks)} release tracks"
            )
        for position, state in enumerate(self.tracks):
            if state.index != position:
                raise ValueError(f"track state at position {position} has index {state.index}")
        if (
            self.state is not SessionState.ENDED
            and self.tracks
            and self.current_index >= len(self.tracks)
        ):
            raise ValueError(f"current_index {self.current_index} out of range")
        return self

    @property
    def current_track(self) -> Optional[Track]:
        """The release track at ``current_index`` (None for empty releases)."""
        if 0 <= self.current_index < len(self.release.tracks):
            return self.release.tracks[self.current_index]
        return None


# ---------------------------------------------------------------------------
# Stored credentials (server side only)
# ---------------------------------------------------------------------------

class StoredToken(BaseModel):
    service: Literal["lastfm", "discogs"]
    access_token: str
    access_token_secret: Optional[str] = None  # Discogs only
    stored_at: int  # epoch ms


class StoredTokens(BaseModel):
    """All tokens held for one user id, never sent to the client."""

    lastfm: Optional[StoredToken] = None
    discogs: Optional[StoredToken] = None
