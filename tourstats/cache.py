"""
In-process TTL cache for aggregated data.

Thread-safe. Concurrent loads of the same key share one loader call.
Keys under the current-tour prefix are dropped as a group when the
current tour changes; per-show keys are never affected by that.
"""

import logging
import threading
import time
from concurrent.futures import Future
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Dict, Optional

from . import config

logger = logging.getLogger(__name__)

MISS = object()


class CacheKeys:
    CURRENT_TOUR_PREFIX = "current_tour:"
    CURRENT_TOUR_NAME = "tour_name:current"
    CURRENT_TOUR_STATS = CURRENT_TOUR_PREFIX + "leaderboards"

    @staticmethod
    def enhanced_setlist(show_date: date) -> str:
        return f"enhanced_setlist:{show_date.isoformat()}"

    @staticmethod
    def shows_for_year(year: int) -> str:
        return f"shows:{year}"

    @staticmethod
    def audio_show(show_date: date) -> str:
        return f"audio_show:{show_date.isoformat()}"

    @staticmethod
    def audio_show(show_date: date) -> str:
        return f"audio_show:{show_date.isoformat()}"

    @staticmethod
    def song_gap(song_name: str, show_date: date) -> str:
        return f"song_gap:{song_name.strip().lower()}:{show_date.isoformat()}"

    @classmethod
    def current_tour(cls, name: str) -> str:
        return cls.CURRENT_TOUR_PREFIX + name


@dataclass
class _CacheItem:
    value: Any
    expires_at: float


class AggregationCache:
    """TTL key/value store guarded by a single lock."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._items: Dict[str, _CacheItem] = {}
        self._inflight: Dict[str, Future] = {}
        self._lock = threading.Lock()

    def lookup(self, key: str) -> Any:
        """Return the cached value, or MISS if absent or expired."""
        with self._lock:
            return self._lookup_locked(key)

    def _lookup_locked(self, key: str) -> Any:
        item = self._items.get(key)
        if item is None:
            return MISS
        if self._clock() >= item.expires_at:
            del self._items[key]
            return MISS
        return item.value

    def get(self, key: str, default: Any = None) -> Any:
        value = self.lookup(key)
        return default if value is MISS else value

    def set(self, key: str, value: Any, ttl: float) -> None:
        with self._lock:
            self._items[key] = _CacheItem(value, self._clock() + ttl)

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._items.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def clear_expired(self) -> int:
        """Drop expired entries; returns how many were removed."""
        with self._lock:
            now = self._clock()
            expired = [k for k, item in self._items.items() if now >= item.expires_at]
            for key in expired:
                del self._items[key]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def get_or_load(self, key: str, loader: Callable[[], Any], ttl: float) -> Any:
        """
        Return the cached value for key, loading it on a miss.

        If another thread is already loading the same key, wait for its
        result instead of calling loader again. Loader exceptions reach
        every waiter and nothing is cached.
        """
        with self._lock:
            value = self._lookup_locked(key)
            if value is not MISS:
                return value
            future = self._inflight.get(key)
            owner = future is None
            if owner:
                future = Future()
                self._inflight[key] = future

        if not owner:
            logger.debug("Waiting on in-flight load for %s", key)
            return future.result()

        try:
            value = loader()
        except BaseException as exc:
            with self._lock:
                self._inflight.pop(key, None)
            future.set_exception(exc)
            raise

        with self._lock:
            self._items[key] = _CacheItem(value, self._clock() + ttl)
            self._inflight.pop(key, None)
        future.set_result(value)
        return value

    # ==================== Current tour ====================

    def invalidate_current_tour(self) -> int:
        """Drop every current-tour aggregate; returns how many were removed."""
        with self._lock:
            keys = [k for k in self._items if k.startswith(CacheKeys.CURRENT_TOUR_PREFIX)]
            for key in keys:
                del self._items[key]
        if keys:
            logger.info("Invalidated %d current-tour cache entries", len(keys))
        return len(keys)

    def handle_tour_change(self, new_tour: Optional[str]) -> bool:
        """
        Record the current tour name; invalidate current-tour data if it changed.

        Returns True when a different tour was previously recorded.
        """
        with self._lock:
            previous = self._lookup_locked(CacheKeys.CURRENT_TOUR_NAME)
            self._items[CacheKeys.CURRENT_TOUR_NAME] = _CacheItem(
                new_tour, self._clock() + config.TTL_CURRENT_TOUR_NAME
            )

        changed = previous is not MISS and previous != new_tour
        if changed:
            logger.info("Tour changed from %s to %s - clearing current tour cache", previous, new_tour)
            self.invalidate_current_tour()
        return changed
