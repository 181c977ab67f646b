"""
Centralized FieldMask constants for Google Maps Platform APIs.

Address lookups and single-leg ETAs only need a handful of fields; requesting
nothing else keeps each call in the cheapest billing tier.

Reference:
- Places API (New): https://developers.google.com/maps/documentation/places/web-service/text-search
- Routes API: https://developers.google.com/maps/documentation/routes/compute_route_directions
"""

from typing import Dict, List

# -----------------------------
# Places API FieldMasks
# -----------------------------

# Address resolution: coordinate plus a label to show on the map
PLACES_GEOCODE_FIELDS = [
    "places.id",
    "places.location",
    "places.formattedAddress",
    "places.displayName",
]

# -----------------------------
# Routes API FieldMasks
# -----------------------------

# computeRoutes: duration only (no polyline, the preview draws straight legs)
ROUTES_ETA_FIELDS = [
    "routes.duration",
]

# -----------------------------
# Helper Functions
# -----------------------------

def get_fieldmask_header(fields: List[str]) -> Dict[str, str]:
    """
    Generate X-Goog-FieldMask header from field list.

    Args:
        fields: List of field paths (e.g., ["routes.duration"])

    Returns:
        Dictionary with FieldMask header

    Example:
        >>> get_fieldmask_header(ROUTES_ETA_FIELDS)
        {'X-Goog-FieldMask': 'routes.duration'}
    """
    return {"X-Goog-FieldMask": ",".join(fields)}


def get_places_geocode_mask() -> Dict[str, str]:
    """Get FieldMask header for address lookups via Places Text Search."""
    return get_fieldmask_header(PLACES_GEOCODE_FIELDS)


def get_routes_eta_mask() -> Dict[str, str]:
    """Get FieldMask header for Routes computeRoutes ETAs."""
    return get_fieldmask_header(ROUTES_ETA_FIELDS)
