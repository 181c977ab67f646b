"""
Google Maps Platform adapters for address lookup and single-leg ETAs.

Each adapter turns HTTP outcomes into the oracle error taxonomy: quota and
rate-limit responses become ``ThrottledError``; anything else that is not a
usable answer becomes ``PlaceNotFoundError`` / ``NoRouteError``.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from typing import Optional

import httpx

from ..routing.errors import NoRouteError, PlaceNotFoundError, ThrottledError
from ..routing.models import Coordinate, Place
from ..tools.fields import get_places_geocode_mask, get_routes_eta_mask

logger = logging.getLogger(__name__)

PLACES_BASE = "https://places.googleapis.com/v1"
ROUTES_URL = "https://routes.googleapis.com/directions/v2:computeRoutes"

THROTTLE_STATUSES = {"RESOURCE_EXHAUSTED", "OVER_QUERY_LIMIT"}


def _require_google_api_key() -> str:
    """Fetch the Google Maps API key from the environment at call time."""

    google_key = os.getenv("GOOGLE_MAPS_API_KEY", "")
    if not google_key:
        raise RuntimeError(
            "Missing GOOGLE_MAPS_API_KEY. Copy .env.sample to .env and set your key before running the server."
        )
    return google_key


def _json_body(response: httpx.Response) -> dict:
    try:
        payload = response.json()
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}


def _error_status(response: httpx.Response) -> Optional[str]:
    payload = _json_body(response)
    error = payload.get("error")
    if isinstance(error, dict):
        return error.get("status")
    return payload.get("status")


def is_throttled(response: httpx.Response) -> bool:
    """True when a response signals quota exhaustion or rate limiting."""
    if response.status_code == 429:
        return True
    return _error_status(response) in THROTTLE_STATUSES


def duration_to_seconds(value: object) -> Optional[float]:
    """Parse Routes API durations ("754s", {"seconds": 754} or a number)."""
    if isinstance(value, str) and value.endswith("s"):
        try:
            return float(value[:-1])
        except ValueError:
            return None
    if isinstance(value, dict):
        seconds = value.get("seconds")
        if seconds is not None:
            return float(seconds)
    if isinstance(value, (int, float)):
        return float(value)
    return None


def to_rfc3339(moment: datetime) -> str:
    """Format a datetime as UTC RFC 3339 (naive values are taken as local time)."""
    return moment.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _lat_lng_waypoint(place: Place) -> dict:
    return {
        "location": {
            "latLng": {
                "latitude": place.coordinate.lat,
                "longitude": place.coordinate.lng,
            }
        }
    }


class GooglePlacesGeocoder:
    """Resolve free-text addresses with Places Text Search (New)."""

    def __init__(
        self,
        language: str = "en",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.language = language
        self.timeout = timeout
        self.transport = transport

    async def geocode(self, address: str) -> Place:
        google_key = _require_google_api_key()

        headers = {"X-Goog-Api-Key": google_key}
        headers.update(get_places_geocode_mask())
        body = {
            "textQuery": address,
            "languageCode": self.language,
            "maxResultCount": 1,
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(f"{PLACES_BASE}/places:searchText", json=body, headers=headers)
        except httpx.HTTPError as e:
            raise PlaceNotFoundError(f"Places search failed for {address!r}: {e}") from e

        if is_throttled(response):
            raise ThrottledError(f"Places search throttled ({response.status_code})")
        if response.is_error:
            raise PlaceNotFoundError(f"Places search failed for {address!r}: HTTP {response.status_code}")

        places = _json_body(response).get("places") or []
        if not places:
            raise PlaceNotFoundError(f"No place found for {address!r}")

        first = places[0]
        location = first.get("location") or {}
        lat, lng = location.get("latitude"), location.get("longitude")
        if lat is None or lng is None:
            raise PlaceNotFoundError(f"Place for {address!r} has no location")

        label = (
            first.get("formattedAddress")
            or (first.get("displayName") or {}).get("text")
            or address
        )
        return Place(coordinate=Coordinate(lat=float(lat), lng=float(lng)), label=label)


class GoogleRoutesEta:
    """Single-leg driving ETAs from the Routes API computeRoutes endpoint."""

    def __init__(
        self,
        travel_mode: str = "DRIVE",
        routing_preference: str = "TRAFFIC_AWARE",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.travel_mode = travel_mode
        self.routing_preference = routing_preference
        self.timeout = timeout
        self.transport = transport

    def build_request_body(self, origin: Place, destination: Place, departure: datetime) -> dict:
        body = {
            "origin": _lat_lng_waypoint(origin),
            "destination": _lat_lng_waypoint(destination),
            "travelMode": self.travel_mode,
        }
        if self.travel_mode == "DRIVE":
            body["routingPreference"] = self.routing_preference
        # The API rejects departure times in the past.
        if departure.astimezone(timezone.utc) > datetime.now(timezone.utc):
            body["departureTime"] = to_rfc3339(departure)
        return body

    async def travel_time(self, origin: Place, destination: Place, departure: datetime) -> float:
        google_key = _require_google_api_key()

        headers = {"X-Goog-Api-Key": google_key}
        headers.update(get_routes_eta_mask())
        body = self.build_request_body(origin, destination, departure)

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(ROUTES_URL, json=body, headers=headers)
        except httpx.HTTPError as e:
            raise NoRouteError(f"Routes request failed: {e}") from e

        if is_throttled(response):
            raise ThrottledError(f"Routes request throttled ({response.status_code})")
        if response.is_error:
            raise NoRouteError(f"Routes request failed: HTTP {response.status_code}")

        routes = _json_body(response).get("routes") or []
        if not routes:
            raise NoRouteError(f"No route from {origin.label!r} to {destination.label!r}")

        seconds = duration_to_seconds(routes[0].get("duration"))
        if seconds is None:
            raise NoRouteError("Route has no duration")
        return seconds
