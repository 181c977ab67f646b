"""
Address resolution with a session-scoped cache.

Geocoding results are cached by normalized address text for the lifetime of
one ``PlaceResolver`` (one user session or screen). Nothing is persisted.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from cachetools import LRUCache

from .errors import OracleError, ThrottledError
from .eta import BackoffPolicy, Sleep
from .models import Geocoder, Place

logger = logging.getLogger(__name__)


# Geocoding backs off longer than travel-time lookups (seconds)
GEOCODE_BACKOFF_BASE = 1.5
GEOCODE_BACKOFF_MAX = 15.0

DEFAULT_CACHE_SIZE = 512


def normalize_address(address: str) -> str:
    """Collapse whitespace and case so equivalent addresses share a cache entry."""
    return " ".join(address.split()).casefold()


class PlaceResolver:
    """
    Resolve free-text addresses to places, retrying while the geocoder throttles.

    ``hit_throttle`` tells whether the latest resolution was throttled, even if
    it ended without a place.
    """

    def __init__(
        self,
        geocoder: Geocoder,
        backoff: Optional[BackoffPolicy] = None,
        cache_size: int = DEFAULT_CACHE_SIZE,
        sleep: Sleep = asyncio.sleep,
    ):
        self.geocoder = geocoder
        self.backoff = backoff or BackoffPolicy(
            base_seconds=GEOCODE_BACKOFF_BASE,
            max_seconds=GEOCODE_BACKOFF_MAX,
        )
        self._cache: LRUCache[str, Place] = LRUCache(maxsize=cache_size)
        self._sleep = sleep
        self.hit_throttle = False
        self.throttled_wait_seconds = 0.0

    def reset_throttle_stats(self) -> None:
        self.hit_throttle = False
        self.throttled_wait_seconds = 0.0

    async def resolve(self, address: Optional[str]) -> Optional[Place]:
        """
        Resolve an address to a place.

        Empty input returns None without calling the geocoder. A cached
        result is returned without another call. Throttling is retried with
        backoff until the geocoder answers or the task is cancelled; any
        other failure returns None immediately.

        Args:
            address: Free-text address

        Returns:
            Place, or None if the address cannot be resolved
        """
        text = (address or "").strip()
        if not text:
            return None

        key = normalize_address(text)
        self.hit_throttle = False
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        attempt = 0
        while True:
            try:
                place = await self.geocoder.geocode(text)
            except ThrottledError:
                attempt += 1
                self.hit_throttle = True
                wait = self.backoff.delay(attempt)
                self.throttled_wait_seconds += wait
                logger.debug(f"Geocoder throttled for {text!r}, retrying in {wait:.2f}s (attempt {attempt})")
                await self._sleep(wait)
                continue
            except OracleError as e:
                logger.debug(f"No place for {text!r}: {e}")
                return None

            self._cache[key] = place
            return place

    def cache_stats(self) -> dict:
        """Get current cache statistics."""
        return {"size": len(self._cache), "maxsize": self._cache.maxsize}

    def clear_cache(self) -> None:
        self._cache.clear()
