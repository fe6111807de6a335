"""
Data Models for Tour Statistics

Immutable value types shared by the API clients, calculators,
leaderboards and the enhanced setlist builder.
"""

import re
from dataclasses import dataclass, fields, is_dataclass
from datetime import datetime, date
from enum import Enum
from typing import Any, Dict, Optional, Tuple


UNKNOWN = "Unknown"

SOUNDCHECK_RANK = -1
UNKNOWN_SET_RANK = 50
ENCORE_RANK = 100


def set_rank(label: Optional[str]) -> int:
    """
    Sort rank for a set label.

    Set labels are an open enumeration ("1", "Set 2", "e", "Encore 2",
    "s", "Soundcheck", ...). Numbered sets sort by number, encores after
    every set, soundcheck before everything, anything else in between.
    """
    text = (label or "1").strip().lower()
    if text.startswith("set "):
        text = text[4:].strip()

    if text in ("s", "soundcheck"):
        return SOUNDCHECK_RANK

    encore = re.fullmatch(r"(?:e|encore)\s*(\d*)", text)
    if encore:
        number = int(encore.group(1)) if encore.group(1) else 1
        return ENCORE_RANK + number - 1

    if text.isdigit():
        return int(text)

    roman = {"i": 1, "ii": 2, "iii": 3, "iv": 4}
    if text in roman:
        return roman[text]

    return UNKNOWN_SET_RANK


def is_playable(label: Optional[str]) -> bool:
    return set_rank(label) != SOUNDCHECK_RANK


class MatchKind(Enum):
    POSITION = "position"
    NAME = "name"
    UNMATCHED = "unmatched"


@dataclass(frozen=True)
class Show:
    """A single show as published by the primary setlist source."""
    show_date: date
    venue_name: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    tour_name: Optional[str] = None
    show_id: Optional[int] = None

    @property
    def venue_key(self) -> Tuple[str, str, str]:
        return (
            self.venue_name or UNKNOWN,
            self.city or UNKNOWN,
            self.state or UNKNOWN,
        )


@dataclass(frozen=True)
class SetlistEntry:
    """One song performance in a show's setlist."""
    position: int
    set_label: str
    song_name: str
    transition_mark: Optional[str] = None
    gap: Optional[int] = None  # Shows since last played (from API)
    song_id: Optional[int] = None

    @property
    def is_playable(self) -> bool:
        return is_playable(self.set_label)


@dataclass(frozen=True)
class TrackDuration:
    """A track length reported by the audio source."""
    song_name: str
    set_label: str
    position: int
    duration_seconds: int
    track_id: Optional[str] = None
    song_id: Optional[int] = None

    def __post_init__(self):
        if self.duration_seconds <= 0:
            raise ValueError(f"duration must be positive, got {self.duration_seconds}")


@dataclass(frozen=True)
class SongGap:
    """How long a song had been out of rotation when played on show_date."""
    song_name: str
    gap: int
    show_date: date
    last_played: Optional[date] = None
    times_played: Optional[int] = None
    historical_venue: Optional[str] = None
    historical_city: Optional[str] = None
    historical_state: Optional[str] = None


@dataclass(frozen=True)
class Recording:
    """Recording metadata from the audio source."""
    recording_id: str
    show_date: date
    venue_name: str = "Unknown Venue"
    recording_type: str = "audience"
    url: Optional[str] = None
    is_available: bool = True


@dataclass(frozen=True)
class VenueRun:
    """A multi-night stand at one venue."""
    venue: str
    city: str
    state: str
    night_number: int
    total_nights: int
    show_dates: Tuple[date, ...] = ()


@dataclass(frozen=True)
class TourPosition:
    """Where a show sits within its tour."""
    tour_name: str
    show_number: int
    total_shows: int
    tour_year: int


@dataclass(frozen=True)
class ShowSetlist:
    """What the primary source returns for one date."""
    show: Show
    entries: Tuple[SetlistEntry, ...] = ()


@dataclass(frozen=True)
class DurationMatch:
    """Reconciliation outcome for one setlist entry."""
    entry: SetlistEntry
    duration: Optional[TrackDuration]
    kind: MatchKind

    @property
    def is_matched(self) -> bool:
        return self.kind is not MatchKind.UNMATCHED


@dataclass(frozen=True)
class EnhancedSetlist:
    """The merged view of one show."""
    show: Show
    entries: Tuple[SetlistEntry, ...] = ()
    matches: Tuple[DurationMatch, ...] = ()
    durations: Tuple[TrackDuration, ...] = ()
    venue_run: Optional[VenueRun] = None
    tour_position: Optional[TourPosition] = None
    song_gaps: Tuple[SongGap, ...] = ()
    recordings: Tuple[Recording, ...] = ()

    @property
    def show_date(self) -> date:
        return self.show.show_date

    @property
    def tour_name(self) -> Optional[str]:
        if self.tour_position is not None:
            return self.tour_position.tour_name
        return self.show.tour_name

    def to_dict(self) -> Dict[str, Any]:
        return to_jsonable(self)


@dataclass(frozen=True)
class LeaderboardEntry:
    """One row on a leaderboard, with where and when it happened."""
    song_name: str
    value: int
    show_date: date
    venue: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    tour_position: Optional[TourPosition] = None
    last_played: Optional[date] = None
    historical_venue: Optional[str] = None


@dataclass(frozen=True)
class TourLeaderboards:
    """Snapshot of the three current-tour leaderboards."""
    tour_name: Optional[str]
    longest: Tuple[LeaderboardEntry, ...] = ()
    rarest: Tuple[LeaderboardEntry, ...] = ()
    most_played: Tuple[LeaderboardEntry, ...] = ()
    shows_folded: int = 0
    latest_show_date: Optional[date] = None

    def to_dict(self) -> Dict[str, Any]:
        return to_jsonable(self)


def to_jsonable(value: Any) -> Any:
    """Recursively convert dataclasses, enums and dates to JSON-safe values."""
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_jsonable(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    return value


def parse_date(date_str) -> date:
    """Parse a date string from the API."""
    if isinstance(date_str, datetime):
        return date_str.date()
    if isinstance(date_str, date):
        return date_str
    return datetime.strptime(str(date_str)[:10], "%Y-%m-%d").date()


def safe_int(value, default=0):
    """Safely convert a value to int, returning default if not possible."""
    if value is None:
        return default
    try:
        return int(value)
    except (ValueError, TypeError):
        return default
