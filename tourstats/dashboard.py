"""
Current tour dashboard.

Keeps one TourLeaderboardTracker for the tour in progress and folds in
newly played shows on demand. The snapshot is cached briefly; when the
latest show belongs to a different tour, the tracker and every cached
current-tour aggregate are thrown away. Shows that failed to build are
retried on later refreshes, and the tour is refolded once one succeeds.
"""

import logging
from datetime import date
from typing import Optional, Set

from . import config
from .builder import EnhancedSetlistBuilder
from .cache import AggregationCache, CacheKeys
from .errors import TourStatsError
from .leaderboard import TourLeaderboardTracker, fold_shows
from .models import Show, TourLeaderboards
from .sources import SetlistSource
from .tour_position import normalize_tour_name

logger = logging.getLogger(__name__)


class TourDashboard:
    """Serves the longest / rarest / most played boards for the current tour."""

    def __init__(self, builder: EnhancedSetlistBuilder, setlist_source: SetlistSource,
                 cache: AggregationCache,
                 tracker: Optional[TourLeaderboardTracker] = None,
                 limit: int = config.RESULT_LIMIT,
                 progress: bool = False):
        self.builder = builder
        self.setlist_source = setlist_source
        self.cache = cache
        self.limit = limit
        self.progress = progress
        self.tracker = tracker or TourLeaderboardTracker(limit=limit)

    def current_tour_leaderboards(self) -> TourLeaderboards:
        """Leaderboards for the tour of the most recently played show."""
        latest = self.setlist_source.fetch_latest_show()
        if latest is None:
            logger.info("No recent show found - returning empty leaderboards")
            return TourLeaderboards(tour_name=None)

        tour = normalize_tour_name(latest.tour_name)
        changed = self.cache.handle_tour_change(tour)
        if changed or (self.tracker.shows_folded and self.tracker.tour_name != tour):
            self.tracker = TourLeaderboardTracker(limit=self.limit, tour_name=tour)

        return self.cache.get_or_load(
            CacheKeys.CURRENT_TOUR_STATS,
            lambda: self._refresh(latest, tour),
            config.TTL_CURRENT_TOUR_STATS,
        )

    def _refresh(self, latest: Show, tour: Optional[str]) -> TourLeaderboards:
        if tour:
            shows = self.builder.tours.tour_shows(latest.show_date, tour)
        else:
            shows = [latest]
        dates = {s.show_date for s in shows if s.show_date <= latest.show_date}
        dates.add(latest.show_date)
        self._retry_skipped(dates, tour)

        logger.info("Refreshing %s leaderboards through %s (%d shows)", tour, latest.show_date, len(dates))
        folded = fold_shows(self.tracker, dates, self.builder.build, progress=self.progress, tour_name=tour)
        logger.info("Folded %d new shows (%d total)", folded, self.tracker.shows_folded)
        return self.tracker.snapshot()

    def _retry_skipped(self, dates: Set[date], tour: Optional[str]) -> None:
        """Start the tour over when a show that failed earlier can now be built."""
        last = self.tracker.last_folded_date
        if last is None:
            return
        recovered = []
        for show_date in sorted(d for d in self.tracker.skipped_dates if d in dates and d < last):
            try:
                self.builder.build(show_date)
            except TourStatsError as exc:
                logger.debug("%s still unavailable: %s", show_date, exc)
                continue
            recovered.append(show_date)

        if recovered:
            logger.info("Refolding %s: %d skipped shows now available", tour, len(recovered))
            self.tracker.reset(tour)
