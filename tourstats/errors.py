"""
Exception types for the Tour Statistics engine.

Only SetlistUnavailableError ever reaches a caller of the enhanced
setlist query; everything upstream-related is absorbed and degraded.
"""


class TourStatsError(Exception):
    """Base class for engine errors."""


class UpstreamError(TourStatsError):
    """An external API call failed (network, HTTP status, timeout)."""

    def __init__(self, source: str, message: str):
        self.source = source
        super().__init__(f"{source}: {message}")


class DecodeError(UpstreamError):
    """An external API answered with something we could not parse."""


class SetlistUnavailableError(TourStatsError):
    """The primary setlist for a date could not be fetched."""

    def __init__(self, show_date, cause: Exception = None):
        self.show_date = show_date
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"No setlist available for {show_date}{detail}")


class FoldOrderError(ValueError):
    """A show was folded into a leaderboard out of date order."""


class ConfigurationError(TourStatsError):
    """Raised when required configuration is missing or invalid."""
