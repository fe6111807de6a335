"""
Duration reconciliation.

Joins Phish.net setlist entries to Phish.in track durations. The two
sources key songs differently, so position is the primary join and a
case-insensitive name match is the fallback when the counts disagree.
"""

import logging
from collections import defaultdict, deque
from typing import Deque, Dict, Iterable, List, Optional, Sequence

from .models import (
    DurationMatch, MatchKind, SetlistEntry, TrackDuration,
    is_playable, set_rank
)

logger = logging.getLogger(__name__)


def _name_key(name: str) -> str:
    return name.strip().casefold()


def reconcile_durations(entries: Sequence[SetlistEntry],
                        durations: Iterable[TrackDuration]) -> List[DurationMatch]:
    """
    Match each setlist entry to at most one track duration.

    Returns one DurationMatch per entry, in the order given. Soundcheck
    entries and anything left over come back UNMATCHED. Never raises on
    disagreement between the sources.
    """
    playable = sorted(
        (i for i, e in enumerate(entries) if e.is_playable),
        key=lambda i: entries[i].position,
    )
    tracks = sorted(
        (d for d in durations if is_playable(d.set_label)),
        key=lambda d: (set_rank(d.set_label), d.position),
    )

    assigned: Dict[int, DurationMatch] = {}

    if playable and len(playable) == len(tracks):
        for i, track in zip(playable, tracks):
            assigned[i] = DurationMatch(entries[i], track, MatchKind.POSITION)
    elif playable and tracks:
        logger.debug(
            "Setlist has %d songs but %d tracks - matching by name",
            len(playable), len(tracks),
        )
        available: Dict[str, Deque[TrackDuration]] = defaultdict(deque)
        for track in tracks:
            available[_name_key(track.song_name)].append(track)

        for i in playable:
            queue = available.get(_name_key(entries[i].song_name))
            if queue:
                assigned[i] = DurationMatch(entries[i], queue.popleft(), MatchKind.NAME)

    return [
        assigned.get(i) or DurationMatch(entry, None, MatchKind.UNMATCHED)
        for i, entry in enumerate(entries)
    ]


def matched_durations(matches: Iterable[DurationMatch]) -> List[TrackDuration]:
    """The durations that were joined to an entry, in entry order."""
    return [m.duration for m in matches if m.duration is not None]


def format_duration(seconds: Optional[int]) -> str:
    """Format seconds as m:ss ('' when there is no duration)."""
    if seconds is None:
        return ""
    minutes, secs = divmod(int(seconds), 60)
    return f"{minutes}:{secs:02d}"
