"""
Tour position calculation.

Finds a show's 1-based number within its tour. Tour membership comes
from the year show list of the setlist source, filtered by normalized
tour name. When a published schedule exists for the tour, its complete
date list supplies the numbering and the total instead.
"""

import logging
from datetime import date
from typing import Callable, Dict, List, Optional

from . import config
from .models import Show, TourPosition, parse_date
from .sources import SetlistSource

logger = logging.getLogger(__name__)


def normalize_tour_name(name: Optional[str]) -> Optional[str]:
    """
    Map alternate spellings of a tour name to the canonical one.

    'Summer Tour 2025' -> '2025 Summer Tour'. Unknown names come back
    trimmed but otherwise unchanged.
    """
    if name is None:
        return None
    name = name.strip()
    return config.TOUR_NAME_ALIASES.get(name, name)


def same_tour(a: Optional[str], b: Optional[str]) -> bool:
    return normalize_tour_name(a) == normalize_tour_name(b)


class TourPositionCalculator:
    """Locates shows within their tour."""

    def __init__(self, source: SetlistSource,
                 schedules: Optional[Dict[str, List[str]]] = None,
                 shows_for_year: Optional[Callable[[int], List[Show]]] = None):
        """
        Args:
            source: setlist source providing fetch_shows_for_year
            schedules: published schedules, {tour name: [YYYY-MM-DD, ...]}
            shows_for_year: replacement year loader (e.g. a cached one);
                defaults to source.fetch_shows_for_year
        """
        self.source = source
        self.schedules = {
            normalize_tour_name(name): sorted({parse_date(d) for d in dates})
            for name, dates in (schedules or {}).items()
        }
        self.shows_for_year = shows_for_year or source.fetch_shows_for_year

    def tour_name_for(self, show_date: date) -> Optional[str]:
        """Tour name the source lists for a date, or None."""
        for show in self.shows_for_year(show_date.year):
            if show.show_date == show_date:
                return show.tour_name
        return None

    def tour_shows(self, show_date: date, tour_name: str) -> List[Show]:
        """
        All known shows of a tour, ascending by date, one per date.

        Tours that cross New Year pull in the neighbouring year's shows.
        """
        target = normalize_tour_name(tour_name)
        by_year = {show_date.year: self.shows_for_year(show_date.year)}

        def in_tour(shows: List[Show]) -> List[Show]:
            return [s for s in shows if normalize_tour_name(s.tour_name) == target]

        matched = in_tour(by_year[show_date.year])
        if matched:
            first = min(s.show_date for s in matched)
            last = max(s.show_date for s in matched)
            if first.month == 1:
                by_year[show_date.year - 1] = self.shows_for_year(show_date.year - 1)
            if last.month == 12:
                by_year[show_date.year + 1] = self.shows_for_year(show_date.year + 1)

        unique: Dict[date, Show] = {}
        for year in sorted(by_year):
            for show in in_tour(by_year[year]):
                unique.setdefault(show.show_date, show)

        return [unique[d] for d in sorted(unique)]

    def calculate(self, show_date: date, tour_name: Optional[str]) -> Optional[TourPosition]:
        """
        Position of a show within its tour.

        Returns None when no tour name is given or the date is not among
        the tour's shows (for example a name that does not normalize to
        the tour the source lists).

        When a published schedule lists the date, the schedule supplies
        both the show number and the total, replacing the count of shows
        the source currently knows about.
        """
        if not tour_name:
            return None
        canonical = normalize_tour_name(tour_name)

        schedule = self.schedules.get(canonical)
        if schedule and show_date in schedule:
            return TourPosition(
                tour_name=canonical,
                show_number=schedule.index(show_date) + 1,
                total_shows=len(schedule),
                tour_year=show_date.year,
            )

        dates = [s.show_date for s in self.tour_shows(show_date, canonical)]
        if show_date not in dates:
            logger.debug("%s not found in tour %r", show_date, canonical)
            return None

        return TourPosition(
            tour_name=canonical,
            show_number=dates.index(show_date) + 1,
            total_shows=len(dates),
            tour_year=show_date.year,
        )
