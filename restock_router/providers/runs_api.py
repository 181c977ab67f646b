"""Run-management API client used to persist a run's location order."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx

from ..routing.errors import PersistenceError

logger = logging.getLogger(__name__)

GENERIC_SAVE_ERROR = "We couldn't update the location order. Please try again."
UNAUTHORIZED_MESSAGE = "Your session has expired. Please sign in again."
INVALID_ORDER_MESSAGE = "The location order was rejected for this run."


def build_order_payload(ordered_ids: Sequence[Optional[str]]) -> Dict[str, Any]:
    """Request body for ``PUT /runs/{id}/location-order``; None keeps the unassigned bucket."""
    return {
        "locations": [
            {"order": index, "locationId": location_id}
            for index, location_id in enumerate(ordered_ids)
        ]
    }


class RunsApiClient:
    """Persist stop orders through the run-management service."""

    def __init__(
        self,
        base_url: str,
        access_token: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.access_token = access_token
        self.timeout = timeout
        self.transport = transport

    async def save_order(self, run_id: str, ordered_ids: Sequence[Optional[str]]) -> List[Dict[str, Any]]:
        """
        Save the ordered location identifiers for a run.

        Args:
            run_id: Run to update
            ordered_ids: Location ids in visiting order (None = unassigned bucket)

        Returns:
            The stored location orders, sorted by position

        Raises:
            PersistenceError: If the request fails or is rejected
        """
        url = f"{self.base_url}/runs/{run_id}/location-order"
        headers = {"Authorization": f"Bearer {self.access_token}"}

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.put(url, json=build_order_payload(ordered_ids), headers=headers)
        except httpx.HTTPError as e:
            logger.warning(f"Location order request for run {run_id} failed: {e}")
            raise PersistenceError(GENERIC_SAVE_ERROR) from e

        if response.status_code == 401:
            raise PersistenceError(UNAUTHORIZED_MESSAGE, status_code=401)
        if response.status_code == 400:
            raise PersistenceError(INVALID_ORDER_MESSAGE, status_code=400)
        if response.is_error:
            raise PersistenceError(
                f"{GENERIC_SAVE_ERROR} (server error {response.status_code})",
                status_code=response.status_code,
            )

        try:
            orders = response.json().get("locationOrders") or []
        except (ValueError, AttributeError) as e:
            raise PersistenceError(GENERIC_SAVE_ERROR) from e
        return sorted(orders, key=lambda order: order.get("position", 0))
