"""
Phish.in API Client

Phish.in is an archive of live recordings with DURATION DATA. It is used
for audio data only: track lengths and recording metadata. Setlists, gaps,
venue runs and tour positions all come from Phish.net.

API Base: https://phish.in/api/v2
Authentication: NOT required for public read endpoints
"""

import logging
from datetime import date
from typing import Dict, List, Optional

import requests

from . import config
from .cache import AggregationCache, CacheKeys
from .errors import DecodeError, UpstreamError
from .models import Recording, TrackDuration, safe_int

logger = logging.getLogger(__name__)


class PhishInAPI:
    """Client for Phish.in API v2 - the source for song duration data."""

    SOURCE = "phish.in"

    def __init__(self, session: Optional[requests.Session] = None,
                 base_url: str = config.PHISHIN_BASE_URL,
                 timeout: float = config.REQUEST_TIMEOUT,
                 cache: Optional[AggregationCache] = None):
        self.session = session or requests.Session()
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.cache = cache if cache is not None else AggregationCache()

    def _request(self, endpoint: str) -> Dict:
        url = f"{self.base_url}/{endpoint}"
        logger.debug("GET %s", url)
        try:
            response = self.session.get(
                url, headers={"Accept": "application/json"}, timeout=self.timeout
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            raise UpstreamError(self.SOURCE, f"{endpoint} failed: {exc}") from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise DecodeError(self.SOURCE, f"{endpoint} returned invalid JSON") from exc

        if not isinstance(payload, dict):
            raise DecodeError(self.SOURCE, f"{endpoint} returned {type(payload).__name__}, expected object")
        return payload

    def get_show(self, show_date: date) -> Dict:
        """
        Get show details including all tracks with durations.

        Durations and recordings both read this payload, so it is fetched
        once per date and shared through the cache.

        Returns:
            Show dict with 'tracks' array, each containing 'duration' in milliseconds
        """
        return self.cache.get_or_load(
            CacheKeys.audio_show(show_date),
            lambda: self._request(f"shows/{show_date.isoformat()}"),
            config.TTL_AUDIO_SHOW,
        )

    def _tracks(self, show: Dict, show_date: date) -> List[Dict]:
        tracks = show.get('tracks') or []
        if not isinstance(tracks, list):
            raise DecodeError(self.SOURCE, f"'tracks' for {show_date} is not a list")
        for i, track in enumerate(tracks):
            if not isinstance(track, dict):
                raise DecodeError(self.SOURCE, f"track {i} for {show_date} is not an object")
        return tracks

    def fetch_track_durations(self, show_date: date) -> List[TrackDuration]:
        """
        Track durations for a show, in whole seconds.

        Tracks without a duration or title are dropped; a show with no
        tracks yields an empty list.
        """
        tracks = self._tracks(self.get_show(show_date), show_date)

        durations = []
        for i, track in enumerate(tracks):
            seconds = round(safe_int(track.get('duration'), 0) / 1000)
            title = track.get('title')
            if seconds <= 0 or not title:
                continue

            songs = track.get('songs') or []
            if not isinstance(songs, list):
                raise DecodeError(self.SOURCE, f"'songs' of track {i} for {show_date} is not a list")
            song = songs[0] if songs and isinstance(songs[0], dict) else {}

            durations.append(TrackDuration(
                song_name=str(title),
                set_label=str(track.get('set_name') or '1'),
                position=safe_int(track.get('position'), i + 1),
                duration_seconds=seconds,
                track_id=str(track['id']) if track.get('id') is not None else None,
                song_id=safe_int(song.get('id'), None),
            ))

        logger.debug("%s: %d tracks with duration", show_date, len(durations))
        return durations

    def fetch_recordings(self, show_date: date) -> List[Recording]:
        """Recording metadata for a show (one recording per Phish.in show)."""
        show = self.get_show(show_date)
        tracks = self._tracks(show, show_date)
        venue = show.get('venue') or {}

        return [Recording(
            recording_id=str(show.get('id', show_date.isoformat())),
            show_date=show_date,
            venue_name=(venue.get('name') if isinstance(venue, dict) else None) or show.get('venue_name') or 'Unknown Venue',
            recording_type='soundboard' if show.get('sbd') is True else 'audience',
            url=tracks[0].get('mp3') if tracks else None,
            is_available=not bool(show.get('missing', False)),
        )]

    # ==================== Utility Methods ====================

    @staticmethod
    def get_track_duration_minutes(track: TrackDuration) -> float:
        """Convert a track duration to minutes."""
        return track.duration_seconds / 60

    @staticmethod
    def get_longest_track(durations: List[TrackDuration]) -> Optional[TrackDuration]:
        """Get the longest track from a show."""
        if not durations:
            return None
        return max(durations, key=lambda t: t.duration_seconds)
