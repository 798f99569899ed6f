"""Scrobble eligibility: how long a track must play before it counts.

Last.fm asks that a track is played for a fair share of its length before
it is scrobbled.  The share is configurable (``threshold_percent``); when the
catalog has no duration for a track a fixed 30 second floor applies.
"""

from __future__ import annotations

from typing import Optional

from core.models import Track

MINIMUM_SCROBBLE_MS = 30_000


def is_eligible(
    elapsed_ms: float,
    duration_ms: Optional[float],
    threshold_percent: float,
) -> bool:
    """True if *elapsed_ms* of play is enough to scrobble the track."""
    if elapsed_ms < 0:
        return False
    return elapsed_ms >= threshold_ms(duration_ms, threshold_percent)


def threshold_ms(duration_ms: Optional[float], threshold_percent: float) -> float:
    """Milliseconds of play after which a track becomes eligible."""
    if duration_ms is not None and duration_ms > 0:
        return duration_ms * threshold_percent / 100
    return MINIMUM_SCROBBLE_MS


def track_duration_ms(track: Track) -> Optional[int]:
    if track.duration_sec is None:
        return None
    return track.duration_sec * 1000
