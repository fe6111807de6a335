"""
Tour-progressive leaderboards.

TourLeaderboardTracker folds enhanced setlists into three top-N boards
(longest songs, rarest songs, most played songs) one show at a time, in
strictly ascending date order. Only the current tour is tracked; a show
from a different tour wipes the state and starts over.

Ties always go to the earlier show: a later performance with the same
duration or gap never evicts an earlier one.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Set, Tuple

from tqdm import tqdm

from . import config
from .errors import FoldOrderError, TourStatsError
from .models import (
    EnhancedSetlist, LeaderboardEntry, TourLeaderboards, TourPosition,
    is_playable
)
from .tour_position import normalize_tour_name

logger = logging.getLogger(__name__)


@dataclass
class _SongCount:
    """Running play count for one song."""
    song_name: str
    count: int
    first_date: date
    first_position: int
    venue: Optional[str]
    city: Optional[str]
    state: Optional[str]
    tour_position: Optional[TourPosition]


def _song_key(name: str) -> str:
    return name.strip().casefold()


class TourLeaderboardTracker:
    """
    Running leaderboards for the tour currently in progress.

    Usage:
        tracker = TourLeaderboardTracker(limit=3)
        for setlist in setlists_in_date_order:
            tracker.fold(setlist)
        boards = tracker.snapshot()
    """

    def __init__(self, limit: int = config.RESULT_LIMIT, tour_name: Optional[str] = None):
        if limit < 1:
            raise ValueError(f"limit must be >= 1, got {limit}")
        self.limit = limit
        self.reset(tour_name)

    def reset(self, tour_name: Optional[str] = None) -> None:
        """Discard all state, optionally starting under a new tour name."""
        self._tour_name = normalize_tour_name(tour_name)
        self._longest: List[Tuple[LeaderboardEntry, int]] = []
        self._rarest: List[Tuple[LeaderboardEntry, int]] = []
        self._counts: Dict[str, _SongCount] = {}
        self._last_folded: Optional[date] = None
        self._skipped: Set[date] = set()
        self._shows_folded = 0
        self._seq = 0

    @property
    def tour_name(self) -> Optional[str]:
        return self._tour_name

    @property
    def last_folded_date(self) -> Optional[date]:
        return self._last_folded

    @property
    def shows_folded(self) -> int:
        return self._shows_folded

    @property
    def skipped_dates(self) -> FrozenSet[date]:
        """Dates that failed to load since the last reset."""
        return frozenset(self._skipped)

    def mark_skipped(self, show_date: date) -> None:
        self._skipped.add(show_date)

    def fold(self, setlist: EnhancedSetlist, tour_name: Optional[str] = None) -> None:
        """
        Fold one show into the leaderboards.

        tour_name, when given, is the tour the caller already resolved for
        this show and overrides whatever the setlist carries. A setlist
        with no tour at all is taken to belong to the current tour.

        Raises:
            FoldOrderError: the show is not later than the last folded show
                of the same tour.
        """
        tour = normalize_tour_name(tour_name or setlist.tour_name)
        if tour is None:
            tour = self._tour_name
        if self._shows_folded and tour != self._tour_name:
            logger.info("Tour changed from %s to %s - resetting leaderboards", self._tour_name, tour)
            self.reset(tour)
        elif not self._shows_folded:
            self._tour_name = tour

        show_date = setlist.show_date
        if self._last_folded is not None and show_date <= self._last_folded:
            raise FoldOrderError(
                f"cannot fold {show_date}: already folded through {self._last_folded}"
            )

        self._fold_longest(setlist)
        self._fold_rarest(setlist)
        self._fold_counts(setlist)

        self._last_folded = show_date
        self._shows_folded += 1
        self._skipped.discard(show_date)
        logger.debug("Folded %s into %s (%d shows)", show_date, self._tour_name, self._shows_folded)

    def _entry(self, setlist: EnhancedSetlist, song_name: str, value: int, **extra) -> LeaderboardEntry:
        show = setlist.show
        return LeaderboardEntry(
            song_name=song_name,
            value=value,
            show_date=show.show_date,
            venue=show.venue_name,
            city=show.city,
            state=show.state,
            tour_position=setlist.tour_position,
            **extra,
        )

    def _next_seq(self) -> int:
        self._seq += 1
        return self._seq

    def _rank(self, board: List[Tuple[LeaderboardEntry, int]]) -> List[Tuple[LeaderboardEntry, int]]:
        board.sort(key=lambda item: (-item[0].value, item[0].show_date, item[1]))
        return board[:self.limit]

    def _fold_longest(self, setlist: EnhancedSetlist) -> None:
        # Prefer the setlist's spelling of a song when the track was matched.
        names = {m.duration: m.entry.song_name for m in setlist.matches if m.duration is not None}
        seen = set()
        for track in setlist.durations:
            track_key = track.track_id or (track.set_label, track.position)
            if track_key in seen or not is_playable(track.set_label):
                continue
            seen.add(track_key)
            name = names.get(track, track.song_name)
            self._longest.append((self._entry(setlist, name, track.duration_seconds), self._next_seq()))
        self._longest = self._rank(self._longest)

    def _fold_rarest(self, setlist: EnhancedSetlist) -> None:
        for gap in setlist.song_gaps:
            key = _song_key(gap.song_name)
            existing = next(
                (i for i, (e, _) in enumerate(self._rarest) if _song_key(e.song_name) == key),
                None,
            )
            if existing is not None:
                if gap.gap <= self._rarest[existing][0].value:
                    continue
                del self._rarest[existing]

            entry = self._entry(
                setlist, gap.song_name, gap.gap,
                last_played=gap.last_played,
                historical_venue=gap.historical_venue,
            )
            self._rarest.append((entry, self._next_seq()))
            self._rarest = self._rank(self._rarest)

    def _fold_counts(self, setlist: EnhancedSetlist) -> None:
        show = setlist.show
        for entry in setlist.entries:
            if not entry.is_playable:
                continue
            key = _song_key(entry.song_name)
            current = self._counts.get(key)
            if current is None:
                self._counts[key] = _SongCount(
                    song_name=entry.song_name,
                    count=1,
                    first_date=show.show_date,
                    first_position=entry.position,
                    venue=show.venue_name,
                    city=show.city,
                    state=show.state,
                    tour_position=setlist.tour_position,
                )
            else:
                current.count += 1

    def most_played(self) -> List[LeaderboardEntry]:
        ranked = sorted(
            self._counts.values(),
            key=lambda c: (-c.count, c.first_date, c.first_position),
        )
        return [
            LeaderboardEntry(
                song_name=c.song_name,
                value=c.count,
                show_date=c.first_date,
                venue=c.venue,
                city=c.city,
                state=c.state,
                tour_position=c.tour_position,
            )
            for c in ranked[:self.limit]
        ]

    def play_count(self, song_name: str) -> int:
        counted = self._counts.get(_song_key(song_name))
        return counted.count if counted else 0

    def snapshot(self) -> TourLeaderboards:
        """Immutable copy of the current boards."""
        return TourLeaderboards(
            tour_name=self._tour_name,
            longest=tuple(e for e, _ in self._longest),
            rarest=tuple(e for e, _ in self._rarest),
            most_played=tuple(self.most_played()),
            shows_folded=self._shows_folded,
            latest_show_date=self._last_folded,
        )


def fold_shows(tracker: TourLeaderboardTracker,
               dates: Iterable[date],
               load: Callable[[date], EnhancedSetlist],
               progress: bool = False,
               tour_name: Optional[str] = None) -> int:
    """
    Load and fold shows one at a time in ascending date order.

    A show whose load fails is logged, recorded in the tracker's
    skipped_dates and passed over. Dates at or before the tracker's last
    folded date are ignored. tour_name is handed to every fold. Returns
    the number of shows folded.
    """
    pending = sorted(set(dates))
    if tracker.last_folded_date is not None:
        pending = [d for d in pending if d > tracker.last_folded_date]

    folded = 0
    for show_date in tqdm(pending, desc="Folding shows", disable=not progress):
        try:
            setlist = load(show_date)
        except TourStatsError as exc:
            logger.warning("Skipping %s: %s", show_date, exc)
            tracker.mark_skipped(show_date)
            continue
        tracker.fold(setlist, tour_name)
        folded += 1

    return folded
