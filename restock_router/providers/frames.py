"""Location schedules loaded from tabular exports."""

from __future__ import annotations

from typing import Dict, Optional

import pandas as pd

from ..routing.models import LocationSchedule

SCHEDULE_COLUMNS = ["location_id", "address", "opening_minutes", "closing_minutes", "dwell_minutes"]


def _optional_int(value) -> Optional[int]:
    if value is None or pd.isna(value):
        return None
    return int(value)


def _optional_text(value) -> Optional[str]:
    if value is None or pd.isna(value):
        return None
    text = str(value).strip()
    return text or None


class FrameScheduleSource:
    """
    ``LocationScheduleSource`` backed by a DataFrame.

    Expects a ``location_id`` column; the other schedule columns are optional
    and NaN means "not configured". Later rows win for duplicate ids.
    """

    def __init__(self, frame: pd.DataFrame):
        if "location_id" not in frame.columns:
            raise ValueError("Schedule frame needs a 'location_id' column")

        self._schedules: Dict[str, LocationSchedule] = {}
        for _, row in frame.iterrows():
            location_id = _optional_text(row.get("location_id"))
            if location_id is None:
                continue
            self._schedules[location_id] = LocationSchedule(
                opening_minutes=_optional_int(row.get("opening_minutes")),
                closing_minutes=_optional_int(row.get("closing_minutes")),
                dwell_minutes=_optional_int(row.get("dwell_minutes")),
                address=_optional_text(row.get("address")),
            )

    @classmethod
    def from_csv(cls, path) -> "FrameScheduleSource":
        return cls(pd.read_csv(path, dtype={"location_id": str}))

    def schedule_for(self, location_id: str) -> Optional[LocationSchedule]:
        return self._schedules.get(location_id)

    def __len__(self) -> int:
        return len(self._schedules)
