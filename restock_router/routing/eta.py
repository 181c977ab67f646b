"""
Rate-limited travel-time lookups.

This module wraps the external travel-time oracle, providing:
- A sliding-window request budget shared by every lookup of a session
- Unbounded retries with capped exponential backoff while throttled
- Cancellation at every wait (plain asyncio cancellation)
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable, Deque, Optional

from .errors import OracleError, ThrottledError
from .models import Place, TravelTimeOracle

logger = logging.getLogger(__name__)


# -----------------------------
# Constants
# -----------------------------

# Request budget for the travel-time oracle
DEFAULT_CALL_LIMIT = 50
DEFAULT_WINDOW_SECONDS = 60.0

# Retry configuration (seconds)
ETA_BACKOFF_BASE = 0.5
ETA_BACKOFF_MAX = 8.0

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]


# -----------------------------
# Retry Logic
# -----------------------------

@dataclass(frozen=True)
class BackoffPolicy:
    """Capped exponential backoff with optional jitter."""
    base_seconds: float = ETA_BACKOFF_BASE
    max_seconds: float = ETA_BACKOFF_MAX
    jitter_seconds: float = 0.0

    def delay(self, attempt: int) -> float:
        """
        Calculate the wait before retry number ``attempt``.

        Formula: min(base * 2^(attempt-1) + random(0, jitter), max)

        Args:
            attempt: Retry attempt number (1-indexed)

        Returns:
            Sleep time in seconds
        """
        base_delay = self.base_seconds * (2 ** max(attempt - 1, 0))
        jitter = random.random() * self.jitter_seconds if self.jitter_seconds else 0.0
        return min(base_delay + jitter, self.max_seconds)


# -----------------------------
# Request Budget
# -----------------------------

class RateBudget:
    """
    Sliding-window call budget.

    At most ``limit`` calls are recorded within any trailing ``window_seconds``.
    Callers wait in ``acquire`` instead of exceeding it; the check and the
    record happen under one lock so concurrent callers cannot overdraw.
    """

    def __init__(
        self,
        limit: int = DEFAULT_CALL_LIMIT,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        clock: Clock = time.monotonic,
    ):
        if limit < 1:
            raise ValueError("Rate budget limit must be at least 1")
        if window_seconds <= 0:
            raise ValueError("Rate budget window must be positive")
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._calls: Deque[float] = deque()
        self._lock = asyncio.Lock()

    def _prune(self, now: float) -> None:
        while self._calls and now - self._calls[0] >= self.window_seconds:
            self._calls.popleft()

    def delay(self, now: Optional[float] = None) -> float:
        """Seconds until another call fits in the window (0 if it fits now)."""
        now = self._clock() if now is None else now
        self._prune(now)
        if len(self._calls) < self.limit:
            return 0.0
        return max(0.0, self.window_seconds - (now - self._calls[0]))

    def record(self, now: Optional[float] = None) -> None:
        self._calls.append(self._clock() if now is None else now)

    async def acquire(self, sleep: Sleep = asyncio.sleep) -> None:
        """Wait until the budget allows a call, then record it."""
        async with self._lock:
            while True:
                wait = self.delay()
                if wait <= 0:
                    self.record()
                    return
                logger.debug(f"Rate budget exhausted ({self.limit}/{self.window_seconds:.0f}s), waiting {wait:.2f}s")
                await sleep(wait)

    @property
    def calls_in_window(self) -> int:
        self._prune(self._clock())
        return len(self._calls)


# -----------------------------
# ETA Client
# -----------------------------

class RateLimitedEtaClient:
    """
    Travel-time lookups that respect a request budget and back off when throttled.

    ``travel_time`` returns None when the oracle has no answer (no drivable
    route or any other non-throttling failure). That is an expected outcome,
    not an error. Throttling is retried until the oracle answers or the
    calling task is cancelled.
    """

    def __init__(
        self,
        oracle: TravelTimeOracle,
        budget: Optional[RateBudget] = None,
        backoff: Optional[BackoffPolicy] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.oracle = oracle
        self.budget = budget or RateBudget()
        self.backoff = backoff or BackoffPolicy()
        self._sleep = sleep
        self.hit_throttle = False
        self.throttled_wait_seconds = 0.0
        self.calls_made = 0

    def reset_throttle_stats(self) -> None:
        self.hit_throttle = False
        self.throttled_wait_seconds = 0.0

    async def travel_time(
        self,
        origin: Place,
        destination: Place,
        departure: datetime,
    ) -> Optional[float]:
        """
        Travel time in seconds from ``origin`` to ``destination``.

        Args:
            origin: Departure place
            destination: Arrival place
            departure: Departure time passed to the oracle

        Returns:
            Seconds of travel, or None if unavailable
        """
        attempt = 0
        self.hit_throttle = False

        while True:
            await self.budget.acquire(self._sleep)
            self.calls_made += 1

            try:
                eta = await self.oracle.travel_time(origin, destination, departure)
            except ThrottledError:
                attempt += 1
                self.hit_throttle = True
                wait = max(self.backoff.delay(attempt), self.budget.delay())
                self.throttled_wait_seconds += wait
                logger.debug(
                    f"ETA oracle throttled {origin.label!r} -> {destination.label!r}, "
                    f"retrying in {wait:.2f}s (attempt {attempt})"
                )
                await self._sleep(wait)
                continue
            except OracleError as e:
                logger.debug(f"ETA unavailable {origin.label!r} -> {destination.label!r}: {e}")
                return None

            self.hit_throttle = False
            return float(eta)
