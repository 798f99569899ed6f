"""Normalization of raw Discogs payloads into domain models: pure, no I/O."""

from __future__ import annotations

import re
from typing import Any, List, Optional

from core.models import CollectionItem, Release, SearchItem, Track

_SIDE_RE = re.compile(r"^[ABCD]")


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------

def parse_duration(duration: Optional[str]) -> Optional[int]:
    """``"h:mm:ss"`` / ``"m:ss"`` / ``"ss"`` → seconds, None if unparseable."""
    if not duration or not duration.strip():
        return None
    parts = duration.strip().split(":")
    try:
        numbers = [int(part) for part in parts]
    except ValueError:
        return None

    if len(numbers) == 3:
        return numbers[0] * 3600 + numbers[1] * 60 + numbers[2]
    if len(numbers) == 2:
        return numbers[0] * 60 + numbers[1]
    if len(numbers) == 1:
        return numbers[0]
    return None


def derive_side(position: Optional[str]) -> Optional[str]:
    """Side letter from a vinyl position label ("B2" → "B")."""
    if not position:
        return None
    match = _SIDE_RE.match(position.strip().upper())
    return match.group(0) if match else None


def _first_artist(artists: Optional[list], default: str) -> str:
    if artists and artists[0].get("name"):
        return artists[0]["name"]
    return default


def _year(value: Any) -> Optional[int]:
    return value if isinstance(value, int) and not isinstance(value, bool) else None


def _cover_url(images: Optional[list]) -> Optional[str]:
    if not images:
        return None
    for image in images:
        if image.get("type") == "primary" and image.get("uri"):
            return image["uri"]
    return images[0].get("uri")


# ---------------------------------------------------------------------------
# Release
# ---------------------------------------------------------------------------

def normalize_release(data: dict) -> Release:
    """Convert a ``/releases/{id}`` response to a ``Release``.

    Heading rows of the tracklist are dropped; the remaining tracks are
    re-indexed from 0.
    """
    release_artist = _first_artist(data.get("artists"), "Unknown Artist")
    raw_tracks = [t for t in data.get("tracklist") or [] if t.get("type_") != "heading"]

    tracks: List[Track] = []
    for index, raw in enumerate(raw_tracks):
        position = (raw.get("position") or "").strip() or str(index + 1)
        tracks.append(
            Track(
                index=index,
                position=position,
                title=raw.get("title") or "Untitled",
                artist=_first_artist(raw.get("artists"), release_artist),
                duration_sec=parse_duration(raw.get("duration")),
                side=derive_side(position),
            )
        )

    release_id = data.get("id")
    return Release(
        id="" if release_id is None else str(release_id),
        title=data.get("title") or "Untitled",
        artist=release_artist,
        year=_year(data.get("year")),
        cover_url=_cover_url(data.get("images")),
        tracks=tuple(tracks),
    )


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------

def normalize_collection_item(raw: dict) -> Optional[CollectionItem]:
    """One ``releases[]`` entry of a collection folder, or None if incomplete."""
    basic = raw.get("basic_information") or {}
    instance_id = raw.get("id")
    release_id = basic.get("id")
    if not instance_id or not release_id:
        return None

    formats: List[str] = []
    for fmt in basic.get("formats") or []:
        parts = [fmt.get("name"), *(fmt.get("descriptions") or [])]
        label = " ".join(p for p in parts if p).strip()
        if label and label not in formats:
            formats.append(label)

    return CollectionItem(
        instance_id=str(instance_id),
        release_id=str(release_id),
        title=basic.get("title") or "Untitled",
        artist=_first_artist(basic.get("artists"), "Unknown Artist"),
        year=_year(basic.get("year")),
        thumb_url=basic.get("thumb") or basic.get("cover_image"),
        formats=formats,
        date_added=raw.get("date_added"),
    )


def normalize_search_item(raw: dict) -> Optional[SearchItem]:
    """One ``results[]`` entry of a database search, or None without an id.

    Search titles come as ``"Artist - Title"`` when no artist field is sent.
    """
    if not raw.get("id"):
        return None

    title = (raw.get("title") or "").strip() or "Untitled"
    artist = (raw.get("artist") or "").strip() or "Unknown Artist"
    if not raw.get("artist") and " - " in title:
        maybe_artist, _, rest = title.partition(" - ")
        if rest:
            artist = maybe_artist.strip() or artist
            title = rest.strip() or title

    return SearchItem(
        release_id=str(raw["id"]),
        title=title,
        artist=artist,
        year=_year(raw.get("year")),
        thumb_url=raw.get("thumb") or raw.get("cover_image"),
        formats=list(raw.get("format") or []),
    )
