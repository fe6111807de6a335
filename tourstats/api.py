"""
Phish.net API Client

Phish.net is the authoritative source for setlists, gaps, tour names and
venues. Every method returns engine models; HTTP and payload problems are
raised as UpstreamError / DecodeError so callers can decide whether to
degrade or fail.
"""

import logging
import re
from datetime import date, datetime
from typing import Dict, List, Optional

import requests

from . import config
from .errors import ConfigurationError, DecodeError, UpstreamError
from .models import (
    Show, SetlistEntry, ShowSetlist, SongGap,
    parse_date, safe_int
)

logger = logging.getLogger(__name__)


def song_slug(song_name: str) -> str:
    """Phish.net style slug: 'Mike's Song' -> 'mikes-song'."""
    slug = song_name.strip().lower()
    slug = re.sub(r"['.,()!?]", "", slug)
    slug = re.sub(r"[^a-z0-9]+", "-", slug)
    return slug.strip("-")


class PhishNetAPI:
    """Client for Phish.net API v5."""

    SOURCE = "phish.net"

    def __init__(self, api_key: Optional[str] = None,
                 session: Optional[requests.Session] = None,
                 base_url: str = config.PHISHNET_BASE_URL,
                 timeout: float = config.REQUEST_TIMEOUT,
                 artist_id: int = config.PHISH_ARTIST_ID):
        self.api_key = api_key or config.PHISHNET_API_KEY
        if not self.api_key:
            raise ConfigurationError(
                "API key required. Set PHISHNET_API_KEY env var or pass api_key parameter."
            )
        self.session = session or requests.Session()
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.artist_id = artist_id

    def _request(self, endpoint: str, params: Optional[Dict] = None) -> List[Dict]:
        """GET an endpoint and return its 'data' list."""
        params = dict(params or {})
        params['apikey'] = self.api_key

        url = f"{self.base_url}/{endpoint}"
        logger.debug("GET %s", url)
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise UpstreamError(self.SOURCE, f"{endpoint} failed: {exc}") from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise DecodeError(self.SOURCE, f"{endpoint} returned invalid JSON") from exc

        if not isinstance(payload, dict):
            raise DecodeError(self.SOURCE, f"{endpoint} returned {type(payload).__name__}, expected object")

        if payload.get('error') and payload.get('error_message'):
            raise UpstreamError(self.SOURCE, f"{endpoint}: {payload['error_message']}")

        data = payload.get('data', [])
        if data is None:
            return []
        if not isinstance(data, list):
            raise DecodeError(self.SOURCE, f"{endpoint} 'data' is not a list")
        for i, row in enumerate(data):
            if not isinstance(row, dict):
                raise DecodeError(self.SOURCE, f"{endpoint} row {i} is not an object")
        return data

    def _is_artist(self, row: Dict) -> bool:
        artist = row.get('artistid')
        if artist is None:
            return True
        return safe_int(artist, -1) == self.artist_id

    # ==================== Setlist Endpoints ====================

    def fetch_setlist(self, show_date: date) -> Optional[ShowSetlist]:
        """
        Fetch the setlist for one date.

        Returns None when no show was played on that date.
        """
        rows = self._request(f"setlists/showdate/{show_date.isoformat()}.json")
        rows = [r for r in rows if self._is_artist(r)]
        if not rows:
            return None

        try:
            first = rows[0]
            show = Show(
                show_date=parse_date(first['showdate']),
                venue_name=first.get('venue'),
                city=first.get('city'),
                state=first.get('state'),
                tour_name=first.get('tourname') or first.get('tour_name'),
                show_id=safe_int(first.get('showid'), None),
            )
            entries = [
                SetlistEntry(
                    position=safe_int(row.get('position'), i + 1),
                    set_label=str(row.get('set') or '1'),
                    song_name=row['song'],
                    transition_mark=(row.get('trans_mark') or '').strip() or None,
                    gap=safe_int(row.get('gap'), None),
                    song_id=safe_int(row.get('songid'), None),
                )
                for i, row in enumerate(rows)
            ]
        except (KeyError, ValueError) as exc:
            raise DecodeError(self.SOURCE, f"malformed setlist for {show_date}: {exc}") from exc

        entries.sort(key=lambda e: e.position)
        return ShowSetlist(show=show, entries=tuple(entries))

    def fetch_song_history(self, song_name: str) -> List[Dict]:
        """All performances of a song, oldest first."""
        rows = self._request(f"setlists/slug/{song_slug(song_name)}.json")
        rows = [r for r in rows if self._is_artist(r) and r.get('showdate')]
        return sorted(rows, key=lambda r: str(r['showdate']))

    def fetch_song_gap(self, song_name: str, show_date: date) -> Optional[SongGap]:
        """
        Gap for a song as of a show date, with where it was last played.

        Returns None when the song was not played on that date.
        """
        history = self.fetch_song_history(song_name)
        target = show_date.isoformat()

        index = next((i for i, r in enumerate(history) if str(r['showdate'])[:10] == target), None)
        if index is None:
            return None

        current = history[index]
        previous = history[index - 1] if index > 0 else None

        try:
            last_played = parse_date(previous['showdate']) if previous else None
        except ValueError as exc:
            raise DecodeError(self.SOURCE, f"bad previous date for {song_name!r}: {exc}") from exc

        return SongGap(
            song_name=current.get('song', song_name),
            gap=safe_int(current.get('gap'), 0),
            show_date=show_date,
            last_played=last_played,
            times_played=index + 1,
            historical_venue=previous.get('venue') if previous else None,
            historical_city=previous.get('city') if previous else None,
            historical_state=previous.get('state') if previous else None,
        )

    # ==================== Show Endpoints ====================

    def fetch_shows_for_year(self, year: int) -> List[Show]:
        """All shows in a calendar year, ordered by date."""
        rows = self._request(f"shows/showyear/{year}.json", {'order_by': 'showdate'})

        shows: Dict[date, Show] = {}
        for row in rows:
            if not self._is_artist(row) or not row.get('showdate'):
                continue
            try:
                show_date = parse_date(row['showdate'])
            except ValueError:
                logger.warning("Skipping show with bad date %r", row.get('showdate'))
                continue
            if show_date in shows:
                continue
            shows[show_date] = Show(
                show_date=show_date,
                venue_name=row.get('venue'),
                city=row.get('city'),
                state=row.get('state'),
                tour_name=row.get('tour_name') or row.get('tourname'),
                show_id=safe_int(row.get('showid'), None),
            )

        return sorted(shows.values(), key=lambda s: s.show_date)

    def fetch_latest_show(self, today: Optional[date] = None) -> Optional[Show]:
        """Most recent show already played, looking back one year if needed."""
        today = today or datetime.now().date()

        for year in (today.year, today.year - 1):
            try:
                shows = self.fetch_shows_for_year(year)
            except UpstreamError as exc:
                logger.warning("Could not fetch %d shows: %s", year, exc)
                continue
            played = [s for s in shows if s.show_date <= today]
            if played:
                return played[-1]

        return None
