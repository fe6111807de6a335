"""
Venue run detection.

A venue run is two or more back-to-back shows (in date order) at the
same venue, city and state. Runs are recomputed from the show list
every time; nothing here is cached or incremental.
"""

from datetime import date
from itertools import groupby
from typing import Dict, Iterable, List, Optional

from .models import Show, VenueRun


def calculate_venue_runs(shows: Iterable[Show]) -> Dict[date, VenueRun]:
    """
    Map each show date that belongs to a multi-night stand to its VenueRun.

    Shows are sorted by date first. Singleton shows get no entry, so a
    tour with no multi-night stands returns an empty dict.
    """
    ordered: List[Show] = sorted(shows, key=lambda s: s.show_date)
    runs: Dict[date, VenueRun] = {}

    for venue_key, group in groupby(ordered, key=lambda s: s.venue_key):
        group = list(group)
        if len(group) < 2:
            continue

        venue, city, state = venue_key
        dates = tuple(s.show_date for s in group)
        for night, show in enumerate(group, start=1):
            runs[show.show_date] = VenueRun(
                venue=venue,
                city=city,
                state=state,
                night_number=night,
                total_nights=len(group),
                show_dates=dates,
            )

    return runs


def get_venue_run(show_date: date, shows: Iterable[Show]) -> Optional[VenueRun]:
    """VenueRun for one date, or None if it was a single night."""
    return calculate_venue_runs(shows).get(show_date)
