"""
BobPay payment gateway client (reversals only; checkout happens on BobPay's side).
"""
import re
from typing import Optional, Dict, Any

import httpx

from rebooked.app.core.exceptions import UpstreamError
from rebooked.app.core.logging import get_logger
from rebooked.app.core.metrics import upstream_requests_total
from rebooked.app.core.settings import get_settings

logger = get_logger(__name__)

BOBPAY_TIMEOUT = 15.0


class BobPayError(UpstreamError):
    """BobPay rejected the request or could not be reached."""


def normalize_api_base(url: str) -> str:
    """Configured URLs sometimes include the version; endpoints add ``/v2`` themselves."""
    return re.sub(r"/v2$", "", (url or "").rstrip("/"))


class BobPayClient:
    def __init__(
        self,
        api_url: Optional[str] = None,
        api_token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()
        self.api_url = api_url if api_url is not None else settings.BOBPAY_API_URL
        self.api_token = api_token if api_token is not None else settings.BOBPAY_API_TOKEN
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.api_url and self.api_token)

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_token}",
        }

    async def reverse_payment(self, payment_id: Any) -> Dict[str, Any]:
        """
        Reverse (refund) a completed payment.

        Raises:
            BobPayError: On non-2xx or non-JSON responses and transport errors
        """
        url = f"{normalize_api_base(self.api_url)}/v2/payments/reversal"
        try:
            async with httpx.AsyncClient(timeout=BOBPAY_TIMEOUT, transport=self._transport) as client:
                response = await client.post(url, json={"id": payment_id}, headers=self._headers())
        except httpx.TimeoutException as e:
            upstream_requests_total.labels(provider="bobpay", operation="reversal", outcome="timeout").inc()
            raise BobPayError(f"BobPay reversal timed out: {e}") from e
        except httpx.RequestError as e:
            upstream_requests_total.labels(provider="bobpay", operation="reversal", outcome="error").inc()
            raise BobPayError(f"BobPay request failed: {e}") from e

        if not response.is_success:
            upstream_requests_total.labels(provider="bobpay", operation="reversal", outcome="rejected").inc()
            logger.warning(
                "BobPay reversal rejected",
                payment_id=payment_id,
                status=response.status_code,
                body=response.text[:500],
            )
            raise BobPayError(
                f"BobPay reversal failed with status {response.status_code}",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            data = response.json()
        except ValueError as e:
            upstream_requests_total.labels(provider="bobpay", operation="reversal", outcome="invalid").inc()
            raise BobPayError("BobPay reversal returned a non-JSON response", body=response.text) from e

        upstream_requests_total.labels(provider="bobpay", operation="reversal", outcome="ok").inc()
        return data
