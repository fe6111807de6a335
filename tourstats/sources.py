"""
Contracts for the two external data sources.

PhishNetAPI and PhishInAPI are the production implementations;
tests supply in-memory fakes.
"""

from datetime import date
from typing import List, Optional, Protocol

from .models import Recording, Show, ShowSetlist, SongGap, TrackDuration


class SetlistSource(Protocol):
    """Authoritative source for setlists, gaps, tours and venues."""

    def fetch_setlist(self, show_date: date) -> Optional[ShowSetlist]:
        ...

    def fetch_song_gap(self, song_name: str, show_date: date) -> Optional[SongGap]:
        ...

    def fetch_shows_for_year(self, year: int) -> List[Show]:
        ...

    def fetch_latest_show(self) -> Optional[Show]:
        ...


class AudioSource(Protocol):
    """Source for track durations and recordings only."""

    def fetch_track_durations(self, show_date: date) -> List[TrackDuration]:
        ...

    def fetch_recordings(self, show_date: date) -> List[Recording]:
        ...
