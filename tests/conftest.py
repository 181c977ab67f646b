"""
Pytest configuration and shared fixtures for restock-router tests.

This file provides:
- A fake clock whose sleep advances time instantly
- Fake geocoder and travel-time oracles keyed by place label
- Sample places, stops and run sections
"""

import asyncio
import os
from datetime import datetime
from typing import Dict, List, Optional, Tuple

import pytest

from restock_router.routing import (
    BackoffPolicy,
    Coordinate,
    LocationRecord,
    NoRouteError,
    Place,
    PlaceNotFoundError,
    PlaceResolver,
    RateBudget,
    RateLimitedEtaClient,
    ReorderPlanner,
    RunSection,
    Stop,
    ThrottledError,
    resolve_schedule,
)


# ==============================================================================
# Fake Clock
# ==============================================================================

class FakeClock:
    """Monotonic clock for tests; ``sleep`` records the wait and advances time."""

    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        # Yield so cancellation can land at every wait
        await asyncio.sleep(0)


# ==============================================================================
# Fake Oracles
# ==============================================================================

class FakeGeocoder:
    """Geocoder backed by a dict of address -> Place."""

    def __init__(self, places: Dict[str, Place], throttle_first: int = 0):
        self.places = places
        self.throttles_left = throttle_first
        self.calls: List[str] = []

    async def geocode(self, address: str) -> Place:
        self.calls.append(address)
        if self.throttles_left > 0:
            self.throttles_left -= 1
            raise ThrottledError("quota exceeded")
        if address not in self.places:
            raise PlaceNotFoundError(f"No place for {address!r}")
        return self.places[address]


class FakeTravelOracle:
    """Travel-time oracle backed by a dict of (from label, to label) -> seconds."""

    def __init__(
        self,
        etas: Dict[Tuple[str, str], float],
        throttle_first: int = 0,
        clock: Optional[FakeClock] = None,
        always_throttle: bool = False,
    ):
        self.etas = etas
        self.throttles_left = throttle_first
        self.always_throttle = always_throttle
        self.clock = clock
        self.calls: List[Tuple[str, str]] = []
        self.call_times: List[float] = []

    async def travel_time(self, origin: Place, destination: Place, departure: datetime) -> float:
        self.calls.append((origin.label, destination.label))
        if self.clock is not None:
            self.call_times.append(self.clock())
        if self.always_throttle or self.throttles_left > 0:
            self.throttles_left -= 1
            raise ThrottledError("rate limited")
        key = (origin.label, destination.label)
        if key not in self.etas:
            raise NoRouteError(f"No route {key}")
        return self.etas[key]


def symmetric(etas: Dict[Tuple[str, str], float]) -> Dict[Tuple[str, str], float]:
    """Add the reverse direction for every pair."""
    both = dict(etas)
    for (a, b), seconds in etas.items():
        both.setdefault((b, a), seconds)
    return both


def make_place(label: str, lat: float = 0.0, lng: float = 0.0) -> Place:
    return Place(coordinate=Coordinate(lat=lat, lng=lng), label=label)


def make_stop(
    label: str,
    lat: float = 0.0,
    lng: float = 0.0,
    opening: Optional[int] = None,
    closing: Optional[int] = None,
    dwell: Optional[int] = None,
    resolved: bool = True,
) -> Stop:
    return Stop(
        stop_id=label,
        title=label,
        address=f"{label} address",
        schedule=resolve_schedule(opening, closing, dwell),
        place=make_place(label, lat, lng) if resolved else None,
    )


def make_section(section_id: str, address: Optional[str] = None, **schedule) -> RunSection:
    return RunSection(
        section_id=section_id,
        title=section_id,
        location=LocationRecord(location_id=f"loc-{section_id}", address=address, **schedule),
    )


def eta_client(oracle, clock: FakeClock, limit: int = 1000, window: float = 60.0) -> RateLimitedEtaClient:
    return RateLimitedEtaClient(
        oracle,
        budget=RateBudget(limit=limit, window_seconds=window, clock=clock),
        backoff=BackoffPolicy(base_seconds=0.5, max_seconds=8.0),
        sleep=clock.sleep,
    )


def make_planner(
    geocoder: FakeGeocoder,
    oracle: FakeTravelOracle,
    clock: FakeClock,
    **kwargs,
) -> ReorderPlanner:
    resolver = PlaceResolver(
        geocoder,
        backoff=BackoffPolicy(base_seconds=1.5, max_seconds=15.0),
        sleep=clock.sleep,
    )
    return ReorderPlanner(resolver, eta_client(oracle, clock), **kwargs)


# ==============================================================================
# Sample Data
# ==============================================================================

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def start_time() -> datetime:
    """Run start: 09:00."""
    return datetime(2025, 10, 13, 9, 0, 0)


@pytest.fixture
def depot() -> Place:
    return make_place("Shop", 51.5072, -0.1276)


@pytest.fixture
def abc_etas() -> Dict[Tuple[str, str], float]:
    """Shop and three stops with every pairwise ETA defined (seconds)."""
    return symmetric({
        ("Shop", "A"): 600,
        ("Shop", "B"): 1800,
        ("Shop", "C"): 300,
        ("A", "B"): 420,
        ("A", "C"): 480,
        ("B", "C"): 900,
    })


@pytest.fixture
def abc_stops() -> List[Stop]:
    return [
        make_stop("A", 51.51, -0.12),
        make_stop("B", 51.52, -0.10),
        make_stop("C", 51.50, -0.13),
    ]


@pytest.fixture
def abc_places(depot) -> Dict[str, Place]:
    """Geocoder data: address text -> Place (label = stop name)."""
    return {
        "1 Shop Street": depot,
        "A address": make_place("A", 51.51, -0.12),
        "B address": make_place("B", 51.52, -0.10),
        "C address": make_place("C", 51.50, -0.13),
    }


# ==============================================================================
# Environment Setup
# ==============================================================================

@pytest.fixture(scope="session", autouse=True)
def setup_test_environment():
    """Setup test environment variables."""
    # Set dummy API keys for tests (not real keys)
    os.environ["GOOGLE_MAPS_API_KEY"] = "TEST_API_KEY_NOT_REAL"
    os.environ.pop("RUNS_API_TOKEN", None)
    os.environ.pop("LOCATION_SCHEDULES_CSV", None)
    yield
