"""
Enhanced setlist builder.

Merges everything known about one show: the Phish.net setlist, Phish.in
track durations and recordings, the venue run, the tour position and
per-song gaps. The independent lookups run concurrently; only a missing
setlist fails the build, anything else just leaves its field empty.
"""

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor, TimeoutError as FutureTimeout
from datetime import date
from typing import Callable, Dict, List, Optional

from . import config
from .cache import AggregationCache, CacheKeys
from .errors import SetlistUnavailableError, TourStatsError
from .models import (
    EnhancedSetlist, SetlistEntry, Show, ShowSetlist, SongGap, TourPosition, VenueRun
)
from .reconcile import reconcile_durations
from .sources import AudioSource, SetlistSource
from .tour_position import TourPositionCalculator
from .venue_runs import calculate_venue_runs

logger = logging.getLogger(__name__)


class EnhancedSetlistBuilder:
    """Builds (and caches) EnhancedSetlist records one date at a time."""

    def __init__(self, setlist_source: SetlistSource, audio_source: AudioSource,
                 cache: Optional[AggregationCache] = None,
                 schedules: Optional[Dict[str, List[str]]] = None,
                 max_workers: int = config.MAX_WORKERS,
                 gap_delay: float = config.GAP_FETCH_DELAY,
                 subfetch_timeout: float = config.SUBFETCH_TIMEOUT,
                 sleep: Callable[[float], None] = time.sleep):
        self.setlist_source = setlist_source
        self.audio_source = audio_source
        self.cache = cache if cache is not None else AggregationCache()
        self.max_workers = max_workers
        self.gap_delay = gap_delay
        self.subfetch_timeout = subfetch_timeout
        self._sleep = sleep
        self.tours = TourPositionCalculator(
            setlist_source, schedules, shows_for_year=self.shows_for_year
        )

    def shows_for_year(self, year: int) -> List[Show]:
        """Year show list, shared by every caller through the cache."""
        return self.cache.get_or_load(
            CacheKeys.shows_for_year(year),
            lambda: self.setlist_source.fetch_shows_for_year(year),
            config.TTL_SHOWS_FOR_YEAR,
        )

    def build(self, show_date: date) -> EnhancedSetlist:
        """
        Enhanced setlist for a date, from cache when fresh.

        Raises:
            SetlistUnavailableError: the setlist itself could not be fetched
                or no show was played that day.
        """
        return self.cache.get_or_load(
            CacheKeys.enhanced_setlist(show_date),
            lambda: self._build(show_date),
            config.TTL_ENHANCED_SETLIST,
        )

    # ==================== Sub-fetches ====================

    def _venue_run(self, show_date: date) -> Optional[VenueRun]:
        tour_name = self.tours.tour_name_for(show_date)
        if tour_name:
            shows = self.tours.tour_shows(show_date, tour_name)
        else:
            shows = self.shows_for_year(show_date.year)
        return calculate_venue_runs(shows).get(show_date)

    def _tour_position(self, show_date: date) -> Optional[TourPosition]:
        return self.tours.calculate(show_date, self.tours.tour_name_for(show_date))

    def _collect(self, name: str, future: Future, show_date: date, deadline: float, default):
        """Result of an optional sub-fetch, or default if it failed or timed out."""
        try:
            return future.result(timeout=max(0.0, deadline - time.monotonic()))
        except FutureTimeout:
            logger.warning("%s for %s timed out after %.0fs", name, show_date, self.subfetch_timeout)
        except TourStatsError as exc:
            logger.warning("%s for %s unavailable: %s", name, show_date, exc)
        return default

    def _build(self, show_date: date) -> EnhancedSetlist:
        started = time.monotonic()
        deadline = started + self.subfetch_timeout

        pool = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="setlist")
        try:
            setlist_future = pool.submit(self.setlist_source.fetch_setlist, show_date)
            durations_future = pool.submit(self.audio_source.fetch_track_durations, show_date)
            recordings_future = pool.submit(self.audio_source.fetch_recordings, show_date)
            venue_future = pool.submit(self._venue_run, show_date)
            position_future = pool.submit(self._tour_position, show_date)

            try:
                setlist: Optional[ShowSetlist] = setlist_future.result(
                    timeout=max(0.0, deadline - time.monotonic())
                )
            except FutureTimeout as exc:
                raise SetlistUnavailableError(show_date, exc) from exc
            except TourStatsError as exc:
                raise SetlistUnavailableError(show_date, exc) from exc
            if setlist is None:
                raise SetlistUnavailableError(show_date)

            durations = self._collect("Track durations", durations_future, show_date, deadline, [])
            recordings = self._collect("Recordings", recordings_future, show_date, deadline, [])
            venue_run = self._collect("Venue run", venue_future, show_date, deadline, None)
            position = self._collect("Tour position", position_future, show_date, deadline, None)
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

        if position is None and setlist.show.tour_name:
            try:
                position = self.tours.calculate(show_date, setlist.show.tour_name)
            except TourStatsError as exc:
                logger.warning("Tour position for %s unavailable: %s", show_date, exc)

        song_gaps = self._song_gaps(show_date, setlist.entries)
        matches = reconcile_durations(setlist.entries, durations)

        result = EnhancedSetlist(
            show=setlist.show,
            entries=tuple(setlist.entries),
            matches=tuple(matches),
            durations=tuple(durations),
            venue_run=venue_run,
            tour_position=position,
            song_gaps=tuple(song_gaps),
            recordings=tuple(recordings),
        )
        logger.info(
            "Built %s: %d songs, %d/%d durations matched, %d gaps (%.2fs)",
            show_date, len(result.entries), sum(m.is_matched for m in matches),
            len(durations), len(song_gaps), time.monotonic() - started,
        )
        return result

    # ==================== Song gaps ====================

    def _song_gaps(self, show_date: date, entries) -> List[SongGap]:
        """
        Gap records for each distinct song, fetched one at a time.

        Upstream calls are spaced by gap_delay to stay under the
        Phish.net rate limit. A missing or failed record falls back to
        the gap printed in the setlist itself.
        """
        first_entry: Dict[str, SetlistEntry] = {}
        for entry in sorted(entries, key=lambda e: e.position):
            if entry.is_playable:
                first_entry.setdefault(entry.song_name.strip().casefold(), entry)

        calls = 0

        def fetch(song_name: str) -> Optional[SongGap]:
            nonlocal calls
            if calls and self.gap_delay > 0:
                self._sleep(self.gap_delay)
            calls += 1
            return self.setlist_source.fetch_song_gap(song_name, show_date)

        gaps: List[SongGap] = []
        for entry in first_entry.values():
            try:
                gap = self.cache.get_or_load(
                    CacheKeys.song_gap(entry.song_name, show_date),
                    lambda name=entry.song_name: fetch(name),
                    config.TTL_SONG_GAPS,
                )
            except TourStatsError as exc:
                logger.warning("Gap for %r on %s unavailable: %s", entry.song_name, show_date, exc)
                gap = None

            if gap is None and entry.gap is not None:
                gap = SongGap(song_name=entry.song_name, gap=entry.gap, show_date=show_date)
            if gap is not None:
                logger.debug("%s: %s gap %d", show_date, gap.song_name, gap.gap)
                gaps.append(gap)

        return gaps
