"""Adapters for external geocoding, travel-time and run-management services."""

from .google import GooglePlacesGeocoder, GoogleRoutesEta
from .runs_api import RunsApiClient
from .frames import FrameScheduleSource

__all__ = [
    "GooglePlacesGeocoder",
    "GoogleRoutesEta",
    "RunsApiClient",
    "FrameScheduleSource",
]
