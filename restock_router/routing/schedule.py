"""
Visit schedules for restocking stops.

A location record may carry an opening time, a closing time (both as
minutes after midnight) and a dwell duration. Any of them can be missing or
out of range; ``resolve_schedule`` merges them with defaults into a
``ResolvedSchedule`` that always describes a non-empty window within one day.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Tuple


# -----------------------------
# Constants
# -----------------------------

LAST_MINUTE_OF_DAY = 24 * 60 - 1  # 23:59

DEFAULT_OPENING_MINUTES = 0
DEFAULT_CLOSING_MINUTES = LAST_MINUTE_OF_DAY
DEFAULT_DWELL_MINUTES = 20
MIN_DWELL_MINUTES = 1


# -----------------------------
# Data Models
# -----------------------------

@dataclass(frozen=True)
class ResolvedSchedule:
    """Opening window and dwell time for a single stop."""

    opening_minutes: int = DEFAULT_OPENING_MINUTES
    closing_minutes: int = DEFAULT_CLOSING_MINUTES
    dwell_minutes: int = DEFAULT_DWELL_MINUTES

    @property
    def dwell_seconds(self) -> float:
        return float(self.dwell_minutes * 60)

    @property
    def is_all_day(self) -> bool:
        return (
            self.opening_minutes == DEFAULT_OPENING_MINUTES
            and self.closing_minutes == DEFAULT_CLOSING_MINUTES
        )

    def window(self, for_time: datetime) -> Optional[Tuple[datetime, datetime]]:
        """
        Project the minute-of-day window onto the calendar day of ``for_time``.

        The returned datetimes keep the tzinfo of ``for_time``.

        Args:
            for_time: Any moment on the day of interest

        Returns:
            ``(open, close)`` datetimes, or None if the projection fails
        """
        try:
            day = for_time.replace(hour=0, minute=0, second=0, microsecond=0)
            open_at = day + timedelta(minutes=self.opening_minutes)
            close_at = day + timedelta(minutes=self.closing_minutes)
        except (AttributeError, OverflowError, ValueError):
            return None
        return open_at, close_at


# -----------------------------
# Resolution
# -----------------------------

def _clamp_minutes(value: int) -> int:
    return max(0, min(int(value), LAST_MINUTE_OF_DAY))


def resolve_schedule(
    opening_minutes: Optional[int] = None,
    closing_minutes: Optional[int] = None,
    dwell_minutes: Optional[int] = None,
) -> ResolvedSchedule:
    """
    Merge raw schedule values with defaults.

    Missing values fall back to an all-day window and a 20 minute dwell.
    Minutes are clamped to ``[0, 1439]``; a closing time at or before the
    opening time becomes ``opening + 1``. Dwell is at least one minute.

    Args:
        opening_minutes: Opening time in minutes after midnight
        closing_minutes: Closing time in minutes after midnight
        dwell_minutes: Time spent servicing the stop

    Returns:
        ResolvedSchedule satisfying ``opening < closing``
    """
    opening = _clamp_minutes(
        DEFAULT_OPENING_MINUTES if opening_minutes is None else opening_minutes
    )
    # Leave room for a one minute window at the very end of the day.
    opening = min(opening, LAST_MINUTE_OF_DAY - 1)

    closing = _clamp_minutes(
        DEFAULT_CLOSING_MINUTES if closing_minutes is None else closing_minutes
    )
    if closing <= opening:
        closing = opening + 1

    dwell = DEFAULT_DWELL_MINUTES if dwell_minutes is None else int(dwell_minutes)

    return ResolvedSchedule(
        opening_minutes=opening,
        closing_minutes=closing,
        dwell_minutes=max(MIN_DWELL_MINUTES, dwell),
    )
