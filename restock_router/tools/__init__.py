"""Google Maps Platform tools and utilities."""

from .fields import (
    get_fieldmask_header,
    get_places_geocode_mask,
    get_routes_eta_mask,
    PLACES_GEOCODE_FIELDS,
    ROUTES_ETA_FIELDS,
)
from .config_loader import ConfigLoader, get_config

__all__ = [
    "get_fieldmask_header",
    "get_places_geocode_mask",
    "get_routes_eta_mask",
    "PLACES_GEOCODE_FIELDS",
    "ROUTES_ETA_FIELDS",
    "ConfigLoader",
    "get_config",
]
