"""Data models shared by the sequencing engine and its collaborators."""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Optional, Protocol

from .schedule import ResolvedSchedule


@dataclass(frozen=True)
class Coordinate:
    """Geographic coordinate in decimal degrees."""
    lat: float
    lng: float

    @property
    def is_valid(self) -> bool:
        return (
            math.isfinite(self.lat)
            and math.isfinite(self.lng)
            and -90.0 <= self.lat <= 90.0
            and -180.0 <= self.lng <= 180.0
        )


@dataclass(frozen=True)
class Place:
    """A geocoded address."""
    coordinate: Coordinate
    label: str


@dataclass(frozen=True)
class Stop:
    """
    A location to visit on a run.

    Stops are immutable: the Place Resolver produces a new value with the
    resolved ``place`` instead of mutating an existing one.
    """

    stop_id: str
    title: str
    subtitle: Optional[str] = None
    address: Optional[str] = None
    schedule: ResolvedSchedule = field(default_factory=ResolvedSchedule)
    place: Optional[Place] = None

    def with_place(self, place: Optional[Place]) -> "Stop":
        return replace(self, place=place)


@dataclass(frozen=True)
class RouteLeg:
    """Travel between two consecutive points of a route."""
    from_label: str
    to_label: str
    eta_seconds: Optional[float] = None


# -----------------------------
# Run-management records
# -----------------------------

@dataclass(frozen=True)
class LocationRecord:
    """Location attached to a run section, as supplied by run management."""
    location_id: str
    address: Optional[str] = None
    opening_minutes: Optional[int] = None
    closing_minutes: Optional[int] = None
    dwell_minutes: Optional[int] = None


@dataclass(frozen=True)
class LocationSchedule:
    """Per-location schedule overrides from the location-schedule source."""
    opening_minutes: Optional[int] = None
    closing_minutes: Optional[int] = None
    dwell_minutes: Optional[int] = None
    address: Optional[str] = None


@dataclass(frozen=True)
class RunSection:
    """
    One row of a run's location list.

    A section with no location (or an empty location id) is the
    "unassigned stops" bucket; it keeps its position but is never routed.
    """

    section_id: str
    title: str
    subtitle: Optional[str] = None
    location: Optional[LocationRecord] = None

    @property
    def is_assigned(self) -> bool:
        return self.location is not None and bool(self.location.location_id)


# -----------------------------
# Collaborator protocols
# -----------------------------

class Geocoder(Protocol):
    async def geocode(self, address: str) -> Place:
        """Resolve an address or raise PlaceNotFoundError / ThrottledError."""


class TravelTimeOracle(Protocol):
    async def travel_time(self, origin: Place, destination: Place, departure: datetime) -> float:
        """Return seconds of travel or raise NoRouteError / ThrottledError."""


class LocationScheduleSource(Protocol):
    def schedule_for(self, location_id: str) -> Optional[LocationSchedule]:
        """Return schedule overrides for a location, if any."""


class OrderSink(Protocol):
    async def save_order(self, run_id: str, ordered_ids: list) -> list:
        """Persist an ordered list of location ids (None = unassigned bucket)."""
