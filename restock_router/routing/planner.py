"""
Reorder session orchestration.

A ``ReorderPlanner`` belongs to one user session (one reorder screen). It owns
the session's place cache and request budget, turns run sections into stops,
and runs optimisation, travel-estimate refreshes and order saves. Only one
task runs at a time per planner when callers go through ``run_latest``; a new
request cancels the one in flight.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, TypeVar

from .errors import OptimisationError, PersistenceError, RequestSuperseded
from .estimates import TravelEstimate, estimate_travel
from .eta import BackoffPolicy, RateBudget, RateLimitedEtaClient
from .greedy import GreedySequenceResult, greedy_sequence
from .models import (
    Geocoder,
    LocationSchedule,
    LocationScheduleSource,
    OrderSink,
    RunSection,
    Stop,
    TravelTimeOracle,
)
from .places import PlaceResolver
from .preview import RoutePreview, build_route_preview
from .schedule import ResolvedSchedule, resolve_schedule
from ..tools.config_loader import ConfigLoader

logger = logging.getLogger(__name__)

T = TypeVar("T")

UNASSIGNED_SECTION_ID = "_unassigned"

# User-facing messages
MISSING_DEPOT_MESSAGE = "Add a shop address to optimise the route."
DEPOT_NOT_FOUND_MESSAGE = "We couldn't locate the shop address in Maps."
NO_STOPS_MESSAGE = "We couldn't resolve any locations for optimisation."
RATE_LIMITED_MESSAGE = "Maps lookups are temporarily rate limited. Please try again in a moment."
REFRESH_RATE_LIMITED_MESSAGE = "Maps lookups are temporarily rate limited. Travel times will refresh soon."
EMPTY_ORDER_MESSAGE = "There aren't any locations to reorder yet."

DEFAULT_NOTICE_AFTER_SECONDS = 2.0


@dataclass
class StopPartition:
    """Sections split by whether they can be routed."""
    stops: List[Stop] = field(default_factory=list)
    sections: Dict[str, RunSection] = field(default_factory=dict)
    unresolved: List[RunSection] = field(default_factory=list)
    unassigned: List[RunSection] = field(default_factory=list)


@dataclass
class OptimisationOutcome:
    sections: List[RunSection]
    sequence: Optional[GreedySequenceResult] = None
    estimate: Optional[TravelEstimate] = None
    preview: Optional[RoutePreview] = None
    message: Optional[str] = None
    notice: Optional[str] = None


@dataclass
class EstimateOutcome:
    estimate: TravelEstimate = field(default_factory=TravelEstimate)
    preview: RoutePreview = field(default_factory=RoutePreview)
    notice: Optional[str] = None


class StartTimeStore:
    """Remembers the chosen start time per run for the planner's lifetime."""

    def __init__(self):
        self._values: Dict[str, datetime] = {}

    @staticmethod
    def key(run_id: str) -> str:
        return f"route_start_time_{run_id}"

    def load(self, run_id: str) -> Optional[datetime]:
        return self._values.get(self.key(run_id))

    def save(self, run_id: str, value: datetime) -> None:
        self._values[self.key(run_id)] = value


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    text = value.strip()
    return text or None


def location_identifier(section: RunSection) -> Optional[str]:
    """Identifier persisted for a section; None marks the unassigned bucket."""
    if section.location is not None and section.location.location_id:
        return section.location.location_id
    if section.section_id == UNASSIGNED_SECTION_ID or not section.section_id:
        return None
    return section.section_id


class ReorderPlanner:
    """Session-scoped entry point for optimising and estimating a run's stop order."""

    def __init__(
        self,
        resolver: PlaceResolver,
        eta_client: RateLimitedEtaClient,
        schedule_source: Optional[LocationScheduleSource] = None,
        order_sink: Optional[OrderSink] = None,
        notice_after_seconds: float = DEFAULT_NOTICE_AFTER_SECONDS,
        start_times: Optional[StartTimeStore] = None,
    ):
        self.resolver = resolver
        self.eta_client = eta_client
        self.schedule_source = schedule_source
        self.order_sink = order_sink
        self.notice_after_seconds = notice_after_seconds
        self.start_times = start_times or StartTimeStore()
        self._active: Optional[asyncio.Task] = None
        self._superseded: set = set()
        self._generation = 0

    @classmethod
    def from_profile(
        cls,
        profile: Dict[str, Any],
        geocoder: Geocoder,
        oracle: TravelTimeOracle,
        schedule_source: Optional[LocationScheduleSource] = None,
        order_sink: Optional[OrderSink] = None,
    ) -> "ReorderPlanner":
        """
        Build a planner with fresh session state from a configuration profile.

        Raises:
            ValueError: If the profile has unknown sections, keys or bad values
        """
        ConfigLoader.validate_profile(profile)
        eta_cfg = profile.get("eta", {})
        geocode_cfg = profile.get("geocode", {})
        notice_cfg = profile.get("notice", {})

        eta_client = RateLimitedEtaClient(
            oracle,
            budget=RateBudget(
                limit=eta_cfg.get("limit", 50),
                window_seconds=eta_cfg.get("window_seconds", 60.0),
            ),
            backoff=BackoffPolicy(
                base_seconds=eta_cfg.get("backoff_base", 0.5),
                max_seconds=eta_cfg.get("backoff_max", 8.0),
                jitter_seconds=eta_cfg.get("backoff_jitter", 0.0),
            ),
        )
        resolver = PlaceResolver(
            geocoder,
            backoff=BackoffPolicy(
                base_seconds=geocode_cfg.get("backoff_base", 1.5),
                max_seconds=geocode_cfg.get("backoff_max", 15.0),
                jitter_seconds=geocode_cfg.get("backoff_jitter", 0.0),
            ),
            cache_size=geocode_cfg.get("cache_size", 512),
        )
        return cls(
            resolver,
            eta_client,
            schedule_source=schedule_source,
            order_sink=order_sink,
            notice_after_seconds=notice_cfg.get("after_seconds", DEFAULT_NOTICE_AFTER_SECONDS),
        )

    # -----------------------------
    # Stops
    # -----------------------------

    def _override_for(self, section: RunSection) -> Optional[LocationSchedule]:
        if self.schedule_source is None or section.location is None:
            return None
        return self.schedule_source.schedule_for(section.location.location_id)

    def schedule_for(self, section: RunSection) -> ResolvedSchedule:
        location = section.location
        override = self._override_for(section)

        def pick(name: str) -> Optional[int]:
            value = getattr(override, name, None) if override is not None else None
            if value is None and location is not None:
                value = getattr(location, name)
            return value

        return resolve_schedule(
            opening_minutes=pick("opening_minutes"),
            closing_minutes=pick("closing_minutes"),
            dwell_minutes=pick("dwell_minutes"),
        )

    def address_for(self, section: RunSection) -> Optional[str]:
        location = section.location
        override = self._override_for(section)

        return (
            _clean(override.address if override is not None else None)
            or _clean(location.address if location is not None else None)
            or _clean(section.subtitle)
            or _clean(section.title)
        )

    async def stop_for(self, section: RunSection) -> Optional[Stop]:
        """Resolve a section to a routable stop, or None if it has no usable place."""
        if section.location is None:
            return None

        address = self.address_for(section)
        if not address:
            return None

        place = await self.resolver.resolve(address)
        if place is None:
            return None

        stop = Stop(
            stop_id=section.section_id,
            title=section.title,
            subtitle=section.subtitle,
            address=address,
            schedule=self.schedule_for(section),
        )
        return stop.with_place(place)

    async def build_stops(self, sections: Sequence[RunSection]) -> StopPartition:
        partition = StopPartition()
        for section in sections:
            if not section.is_assigned:
                partition.unassigned.append(section)
                continue

            stop = await self.stop_for(section)
            if stop is None:
                partition.unresolved.append(section)
                continue
            partition.stops.append(stop)
            partition.sections[stop.stop_id] = section
        return partition

    # -----------------------------
    # Operations
    # -----------------------------

    def _reset_throttle_stats(self) -> None:
        self.resolver.reset_throttle_stats()
        self.eta_client.reset_throttle_stats()

    def _throttle_notice(self, message: str) -> Optional[str]:
        waited = self.resolver.throttled_wait_seconds + self.eta_client.throttled_wait_seconds
        if waited > 0 and waited >= self.notice_after_seconds:
            return message
        return None

    async def optimise(
        self,
        depot_address: Optional[str],
        sections: Sequence[RunSection],
        start_time: datetime,
    ) -> OptimisationOutcome:
        """
        Compute an optimised section order.

        Raises:
            OptimisationError: If the depot or every stop cannot be resolved.
                The caller's current order should be left untouched.
        """
        sections = list(sections)
        if len(sections) < 2:
            return OptimisationOutcome(sections=sections)

        self._reset_throttle_stats()

        depot_text = _clean(depot_address)
        if depot_text is None:
            raise OptimisationError(MISSING_DEPOT_MESSAGE, code="MISSING_DEPOT")

        depot = await self.resolver.resolve(depot_text)
        if depot is None:
            if self.resolver.hit_throttle:
                raise OptimisationError(RATE_LIMITED_MESSAGE, code="RATE_LIMITED")
            raise OptimisationError(DEPOT_NOT_FOUND_MESSAGE, code="DEPOT_NOT_FOUND")

        partition = await self.build_stops(sections)
        if not partition.stops:
            raise OptimisationError(NO_STOPS_MESSAGE, code="NO_RESOLVABLE_STOPS")

        sequence = await greedy_sequence(depot, start_time, partition.stops, self.eta_client)
        ordered_stops = sequence.ordered_stops
        ordered_sections = (
            [partition.sections[stop.stop_id] for stop in ordered_stops]
            + partition.unresolved
            + partition.unassigned
        )

        estimate = await estimate_travel(depot, ordered_stops, start_time, self.eta_client)
        preview = build_route_preview(depot, ordered_stops, depot_subtitle=depot_text)

        logger.info(
            f"Optimised {len(sequence.sequenced)}/{len(partition.stops)} stops "
            f"({len(partition.unresolved)} unresolved, {len(partition.unassigned)} unassigned)"
        )
        return OptimisationOutcome(
            sections=ordered_sections,
            sequence=sequence,
            estimate=estimate,
            preview=preview,
            message=sequence.message,
            notice=self._throttle_notice(RATE_LIMITED_MESSAGE),
        )

    async def refresh_estimates(
        self,
        depot_address: Optional[str],
        sections: Sequence[RunSection],
        start_time: datetime,
    ) -> EstimateOutcome:
        """Recompute travel estimates and the preview for the sections as ordered."""
        self._reset_throttle_stats()

        depot_text = _clean(depot_address)
        if depot_text is None:
            return EstimateOutcome()

        depot = await self.resolver.resolve(depot_text)
        if depot is None:
            notice = REFRESH_RATE_LIMITED_MESSAGE if self.resolver.hit_throttle else None
            return EstimateOutcome(notice=notice)

        partition = await self.build_stops(sections)
        estimate = await estimate_travel(depot, partition.stops, start_time, self.eta_client)
        return EstimateOutcome(
            estimate=estimate,
            preview=build_route_preview(depot, partition.stops, depot_subtitle=depot_text),
            notice=self._throttle_notice(REFRESH_RATE_LIMITED_MESSAGE),
        )

    async def save_order(
        self,
        run_id: str,
        sections: Sequence[RunSection],
        sink: Optional[OrderSink] = None,
    ) -> list:
        """
        Persist the section order through ``sink`` (default: the planner's order sink).

        Raises:
            PersistenceError: If there is nothing to save or the service rejects it
        """
        ordered_ids = [location_identifier(section) for section in sections]
        if not ordered_ids:
            raise PersistenceError(EMPTY_ORDER_MESSAGE)
        sink = sink or self.order_sink
        if sink is None:
            raise RuntimeError("No order sink configured for this planner")

        try:
            return await sink.save_order(run_id, ordered_ids)
        except PersistenceError as e:
            logger.warning(f"Saving location order for run {run_id} failed: {e.message}")
            raise

    # -----------------------------
    # Start time & task coalescing
    # -----------------------------

    def start_time_for(self, run_id: str, now: Optional[datetime] = None) -> datetime:
        return self.start_times.load(run_id) or now or datetime.now()

    def remember_start_time(self, run_id: str, value: datetime) -> None:
        self.start_times.save(run_id, value)

    async def run_latest(self, factory: Callable[[], Awaitable[T]]) -> T:
        """
        Run ``factory()`` as this planner's only in-flight task.

        Any task already in flight is cancelled and allowed to unwind first so
        the two never share the request budget. The superseded caller gets
        ``RequestSuperseded``, including a caller still waiting for its turn
        when a newer request arrives.
        """
        self._generation += 1
        generation = self._generation

        previous = self._active
        if previous is not None and not previous.done():
            self._superseded.add(previous)
            previous.cancel()

        # Only the newest caller may start once the slot is free
        while True:
            if self._generation != generation:
                raise RequestSuperseded()
            current = self._active
            if current is None or current.done():
                break
            await asyncio.wait([current])

        task = asyncio.ensure_future(factory())
        self._active = task
        try:
            return await task
        except asyncio.CancelledError:
            if task in self._superseded:
                self._superseded.discard(task)
                raise RequestSuperseded() from None
            raise
        finally:
            if self._active is task:
                self._active = None
