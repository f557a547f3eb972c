"""
BobGo logistics client: shipment cancellation and pickup-point (locker) lookup.
"""
from typing import Optional, Dict, Any, List

import httpx

from rebooked.app.core.exceptions import UpstreamError
from rebooked.app.core.logging import get_logger
from rebooked.app.core.metrics import upstream_requests_total
from rebooked.app.core.settings import get_settings

logger = get_logger(__name__)

BOBGO_TIMEOUT = 10.0


class BobGoError(UpstreamError):
    """BobGo rejected the request or could not be reached."""


class BobGoClient:
    def __init__(
        self,
        api_url: Optional[str] = None,
        api_key: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()
        self.api_url = (api_url if api_url is not None else settings.BOBGO_API_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.BOBGO_API_KEY
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

    async def _request(self, operation: str, method: str, path: str, **kwargs) -> Any:
        if not self.configured:
            raise BobGoError("BobGo API key is not configured")
        try:
            async with httpx.AsyncClient(timeout=BOBGO_TIMEOUT, transport=self._transport) as client:
                response = await client.request(method, f"{self.api_url}{path}", headers=self._headers(), **kwargs)
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            upstream_requests_total.labels(provider="bobgo", operation=operation, outcome="rejected").inc()
            raise BobGoError(
                f"BobGo {operation} failed with status {e.response.status_code}",
                status_code=e.response.status_code,
                body=e.response.text,
            ) from e
        except httpx.TimeoutException as e:
            upstream_requests_total.labels(provider="bobgo", operation=operation, outcome="timeout").inc()
            raise BobGoError(f"BobGo {operation} timed out") from e
        except httpx.RequestError as e:
            upstream_requests_total.labels(provider="bobgo", operation=operation, outcome="error").inc()
            raise BobGoError(f"BobGo {operation} request failed: {e}") from e

        upstream_requests_total.labels(provider="bobgo", operation=operation, outcome="ok").inc()
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            return {}

    async def cancel_shipment(self, tracking_number: str) -> Dict[str, Any]:
        """Cancel a booked shipment. Raises BobGoError on failure."""
        result = await self._request(
            "cancel_shipment",
            "POST",
            "/shipments/cancel",
            json={"tracking_reference": tracking_number},
        )
        logger.info("BobGo shipment cancelled", tracking_number=tracking_number)
        return result

    async def get_locations(self, bounds: Dict[str, float]) -> List[Dict[str, Any]]:
        """
        Pickup points / lockers inside a bounding box
        (``min_lat``, ``max_lat``, ``min_lng``, ``max_lng``).

        The API has answered with ``{"data": [...]}`` and ``{"locations": [...]}``
        over time; anything that is not a list is treated as no results.
        """
        data = await self._request("get_locations", "GET", "/pickup-points", params=bounds)
        if isinstance(data, list):
            return data
        locations = data.get("data") or data.get("locations") or []
        return locations if isinstance(locations, list) else []
