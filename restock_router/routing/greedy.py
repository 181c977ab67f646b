"""
Greedy time-window sequencing for restocking runs.

This module orders a run's stops with a nearest-insertion heuristic that
respects opening windows. From the current position it evaluates every
unplaced stop, prefers stops that can be finished before they close, and
moves to the one that finishes earliest. Not an optimal TSP-with-time-windows
solver: it costs two oracle lookups per candidate per iteration (O(n²) calls
in total), which keeps latency bounded against a rate-limited oracle.

Selection order for feasible candidates (finish <= close):
1. Earliest finish
2. Earliest closing time
3. Shortest return trip to the depot (unknown = worst)
4. Least waiting for the stop to open

When nothing is feasible, the least late candidate wins, then the earliest
finish, then the shortest return trip.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional, Sequence, Tuple

from .eta import RateLimitedEtaClient
from .models import Place, Stop

logger = logging.getLogger(__name__)

NO_ROUTE_MESSAGE = "We couldn't create a route between these stops."


@dataclass
class SequencedStop:
    """A stop placed by the sequencer, with its projected timing."""

    stop: Stop
    arrival_time: datetime
    start_time: datetime
    departure_time: datetime
    travel_time_sec: float
    waiting_sec: float
    return_eta_sec: Optional[float]
    window_close: datetime
    feasible: bool
    reason: Optional[str] = None

    @property
    def lateness_sec(self) -> float:
        return max(0.0, (self.departure_time - self.window_close).total_seconds())


@dataclass
class GreedySequenceResult:
    """Result from greedy sequencing."""

    sequenced: List[SequencedStop]
    unplaced: List[Stop]
    degraded: bool = False

    @property
    def ordered_stops(self) -> List[Stop]:
        """Sequenced stops followed by unplaced stops in their original order."""
        return [s.stop for s in self.sequenced] + list(self.unplaced)

    @property
    def message(self) -> Optional[str]:
        return NO_ROUTE_MESSAGE if self.degraded else None


@dataclass
class SequencingSession:
    """Mutable cursor for one sequencing run."""

    depot: Place
    start_time: datetime
    remaining: List[Stop]
    current_place: Place = field(init=False)
    current_time: datetime = field(init=False)
    ordered: List[SequencedStop] = field(default_factory=list)

    def __post_init__(self):
        self.current_place = self.depot
        self.current_time = self.start_time

    def advance(self, chosen: SequencedStop) -> None:
        self.ordered.append(chosen)
        self.current_place = chosen.stop.place  # type: ignore[assignment]
        self.current_time = chosen.departure_time
        for index, stop in enumerate(self.remaining):
            if stop is chosen.stop:
                del self.remaining[index]
                break


def _return_key(value: Optional[float]) -> float:
    return math.inf if value is None else value


def _feasible_key(candidate: SequencedStop) -> Tuple:
    return (
        candidate.departure_time,
        candidate.window_close,
        _return_key(candidate.return_eta_sec),
        candidate.waiting_sec,
    )


def _infeasible_key(candidate: SequencedStop) -> Tuple:
    return (
        candidate.lateness_sec,
        candidate.departure_time,
        _return_key(candidate.return_eta_sec),
    )


async def _evaluate(
    session: SequencingSession,
    stop: Stop,
    eta_client: RateLimitedEtaClient,
) -> Optional[SequencedStop]:
    if stop.place is None:
        return None

    window = stop.schedule.window(session.current_time)
    if window is None:
        return None
    open_at, close_at = window

    travel_to = await eta_client.travel_time(session.current_place, stop.place, session.current_time)
    if travel_to is None:
        return None

    arrival = session.current_time + timedelta(seconds=travel_to)
    start_at = max(arrival, open_at)
    finish = start_at + timedelta(seconds=stop.schedule.dwell_seconds)
    waiting = max(0.0, (start_at - arrival).total_seconds())

    return_eta = await eta_client.travel_time(stop.place, session.depot, finish)

    return SequencedStop(
        stop=stop,
        arrival_time=arrival,
        start_time=start_at,
        departure_time=finish,
        travel_time_sec=travel_to,
        waiting_sec=waiting,
        return_eta_sec=return_eta,
        window_close=close_at,
        feasible=finish <= close_at,
    )


def select_next(candidates: Sequence[SequencedStop]) -> Optional[SequencedStop]:
    """
    Pick the best candidate, or None when there are no candidates.

    Ties beyond the selection keys keep the input order.
    """
    feasible = [c for c in candidates if c.feasible]
    if feasible:
        return min(feasible, key=_feasible_key)
    if candidates:
        return min(candidates, key=_infeasible_key)
    return None


async def greedy_sequence(
    depot: Place,
    start_time: datetime,
    stops: Sequence[Stop],
    eta_client: RateLimitedEtaClient,
) -> GreedySequenceResult:
    """
    Order stops greedily from the depot.

    Candidates are evaluated one at a time so the shared request budget is
    consumed deterministically. A candidate whose ETA is unavailable is only
    skipped for the current iteration. If no remaining stop can be reached
    at all, sequencing stops and the rest keep their original order.

    Args:
        depot: Start and end of the run
        start_time: Departure time from the depot
        stops: Stops to order (stops without a place are never placed)
        eta_client: Rate-limited travel-time lookups

    Returns:
        GreedySequenceResult with the placed stops and any unplaced remainder
    """
    session = SequencingSession(depot=depot, start_time=start_time, remaining=list(stops))

    while session.remaining:
        candidates: List[SequencedStop] = []
        for stop in session.remaining:
            candidate = await _evaluate(session, stop, eta_client)
            if candidate is not None:
                candidates.append(candidate)

        chosen = select_next(candidates)
        if chosen is None:
            logger.warning(
                f"No route from {session.current_place.label!r} to any of "
                f"{len(session.remaining)} remaining stops; keeping their original order"
            )
            return GreedySequenceResult(
                sequenced=session.ordered,
                unplaced=session.remaining,
                degraded=True,
            )

        chosen.reason = format_reason(chosen)
        session.advance(chosen)

    logger.info(f"Sequenced {len(session.ordered)} stops from {depot.label!r}")
    return GreedySequenceResult(sequenced=session.ordered, unplaced=[])


def format_reason(candidate: SequencedStop) -> str:
    """
    Format a human-readable reason for choosing this stop.

    Args:
        candidate: The chosen stop

    Returns:
        Formatted reason string
    """
    parts = [f"finish={candidate.departure_time.strftime('%H:%M')}"]
    if not candidate.stop.schedule.is_all_day:
        parts.append(f"closes={candidate.window_close.strftime('%H:%M')}")
    if candidate.waiting_sec > 0:
        parts.append(f"wait={candidate.waiting_sec / 60:.0f}min")
    if candidate.feasible:
        parts.append("greedy")
    else:
        parts.append(f"late={candidate.lateness_sec / 60:.0f}min")
    return "; ".join(parts)
