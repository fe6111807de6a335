"""
Engine facade.

The two queries offered to callers: the enhanced setlist for a date and
the current tour's leaderboards.
"""

import logging
from datetime import date
from typing import Dict, List, Optional, Union

from . import config
from .api import PhishNetAPI
from .builder import EnhancedSetlistBuilder
from .cache import AggregationCache
from .dashboard import TourDashboard
from .models import EnhancedSetlist, TourLeaderboards, parse_date
from .phishin_api import PhishInAPI
from .sources import AudioSource, SetlistSource

logger = logging.getLogger(__name__)


class TourStatsEngine:
    """Wires the sources, cache, builder and dashboard together."""

    def __init__(self, setlist_source: SetlistSource, audio_source: AudioSource,
                 cache: Optional[AggregationCache] = None,
                 schedules: Optional[Dict[str, List[str]]] = None,
                 limit: int = config.RESULT_LIMIT,
                 progress: bool = False):
        self.cache = cache if cache is not None else AggregationCache()
        self.builder = EnhancedSetlistBuilder(
            setlist_source, audio_source, self.cache, schedules=schedules
        )
        self.dashboard = TourDashboard(
            self.builder, setlist_source, self.cache, limit=limit, progress=progress
        )

    def get_enhanced_setlist(self, show_date: Union[date, str]) -> EnhancedSetlist:
        """Enhanced setlist for a date (a date or 'YYYY-MM-DD')."""
        return self.builder.build(parse_date(show_date))

    def get_current_tour_leaderboards(self) -> TourLeaderboards:
        """Longest, rarest and most played songs of the current tour so far."""
        return self.dashboard.current_tour_leaderboards()


def create_engine(api_key: Optional[str] = None, progress: bool = False) -> TourStatsEngine:
    """Build an engine on the live Phish.net and Phish.in APIs."""
    config.validate_config(api_key)
    cache = AggregationCache()
    engine = TourStatsEngine(
        PhishNetAPI(api_key=api_key),
        PhishInAPI(cache=cache),
        cache=cache,
        schedules=config.load_tour_schedules(),
        progress=progress,
    )
    logger.info("Tour stats engine ready (result limit %d)", config.RESULT_LIMIT)
    return engine
