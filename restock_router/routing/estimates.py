"""
Travel estimates for a fixed stop order.

Walks a given order once, the same way the sequencer advances its cursor
(arrival, window-adjusted start, dwell, finish), without choosing anything.
Used after optimisation and after every manual reorder.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence

from .eta import RateLimitedEtaClient
from .models import Place, RouteLeg, Stop

logger = logging.getLogger(__name__)

DEFAULT_DEPOT_LABEL = "Shop"


@dataclass
class TravelEstimate:
    """Per-leg ETAs and the round-trip total for one stop order."""

    legs: Dict[str, RouteLeg] = field(default_factory=dict)
    return_leg: Optional[RouteLeg] = None
    total_seconds: Optional[float] = None
    finish_time: Optional[datetime] = None

    @property
    def all_legs(self) -> List[RouteLeg]:
        """Inbound legs in route order, then the return leg when known."""
        legs = list(self.legs.values())
        if self.return_leg is not None:
            legs.append(self.return_leg)
        return legs


async def estimate_travel(
    depot: Place,
    stops: Sequence[Stop],
    start_time: datetime,
    eta_client: RateLimitedEtaClient,
    depot_label: str = DEFAULT_DEPOT_LABEL,
) -> TravelEstimate:
    """
    Estimate travel for stops visited in the given order.

    A stop with no place, or whose ETA is unavailable, is left out of
    ``legs`` and the total, and the walk continues from the previous
    position. The return leg starts from the last stop actually reached.

    Args:
        depot: Start and end of the run
        stops: Stops in visiting order
        start_time: Departure time from the depot
        eta_client: Rate-limited travel-time lookups
        depot_label: Label used for the depot end of legs

    Returns:
        TravelEstimate with inbound legs keyed by stop id
    """
    legs: Dict[str, RouteLeg] = {}
    total = 0.0
    answered = 0
    previous_place = depot
    previous_label = depot_label
    current_time = start_time

    for stop in stops:
        if stop.place is None:
            continue

        eta = await eta_client.travel_time(previous_place, stop.place, current_time)
        if eta is None:
            continue

        total += eta
        answered += 1
        arrival = current_time + timedelta(seconds=eta)
        open_at, _ = stop.schedule.window(current_time) or (arrival, arrival)
        start_at = max(arrival, open_at)
        current_time = start_at + timedelta(seconds=stop.schedule.dwell_seconds)

        legs[stop.stop_id] = RouteLeg(
            from_label=previous_label,
            to_label=stop.title,
            eta_seconds=eta,
        )
        previous_place = stop.place
        previous_label = stop.title

    return_leg = None
    if legs:
        back_eta = await eta_client.travel_time(previous_place, depot, current_time)
        return_leg = RouteLeg(from_label=previous_label, to_label=depot_label, eta_seconds=back_eta)
        if back_eta is not None:
            total += back_eta
            answered += 1

    logger.debug(f"Estimated {len(legs)}/{len(stops)} legs, total={total:.0f}s")
    return TravelEstimate(
        legs=legs,
        return_leg=return_leg,
        total_seconds=total if answered else None,
        finish_time=current_time,
    )
