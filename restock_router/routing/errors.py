"""
Error taxonomy for route sequencing.

Oracle adapters raise the ``OracleError`` family; the Place Resolver and the
ETA client catch and classify them, so nothing above that boundary sees raw
transport errors. ``OptimisationError`` and ``PersistenceError`` carry the
user-facing message for the caller to surface.
"""

from __future__ import annotations

from typing import Optional


class OracleError(Exception):
    """An external geocoding or travel-time oracle could not answer."""


class ThrottledError(OracleError):
    """The oracle is temporarily rate limiting requests (retryable)."""


class PlaceNotFoundError(OracleError):
    """The geocoder has no result for an address."""


class NoRouteError(OracleError):
    """The travel-time oracle has no drivable route between two places."""


class OptimisationError(Exception):
    """The optimisation attempt cannot proceed at all."""

    def __init__(self, message: str, code: str = "OPTIMISATION_FAILED"):
        super().__init__(message)
        self.message = message
        self.code = code


class PersistenceError(Exception):
    """The run-management service rejected a stop order."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class RequestSuperseded(Exception):
    """A newer request on the same session cancelled this one."""
