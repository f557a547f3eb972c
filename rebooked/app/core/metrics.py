"""
Prometheus metrics for application monitoring.
"""
import time

from fastapi import Response
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from prometheus_client.openmetrics.exposition import generate_latest as generate_latest_openmetrics
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request


# Request metrics
http_requests_total = Counter(
    'http_requests_total',
    'Total number of HTTP requests',
    ['method', 'endpoint', 'status_code']
)

http_request_duration_seconds = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint'],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0]
)

# Third-party API calls
upstream_requests_total = Counter(
    'upstream_requests_total',
    'Calls to third-party APIs',
    ['provider', 'operation', 'outcome']
)

# Business metrics
orders_cancelled_total = Counter(
    'orders_cancelled_total',
    'Orders cancelled through the cancel-and-refund flow',
    ['shipment_cancelled']
)

refunds_processed_total = Counter(
    'refunds_processed_total',
    'Refunds processed',
    ['method', 'status']
)

wallet_credits_total = Counter(
    'wallet_credits_total',
    'Seller wallet credits on collection'
)

payouts_total = Counter(
    'payouts_total',
    'Payout requests by lifecycle event',
    ['event']
)

affiliate_earnings_total = Counter(
    'affiliate_earnings_total',
    'Affiliate earnings recorded'
)


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Middleware to collect HTTP request metrics."""

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()

        if request.url.path == "/metrics":
            return await call_next(request)

        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
        finally:
            duration = time.time() - start_time
            # Route template keeps /orders/{order_id} to one label value
            route = request.scope.get("route")
            endpoint = getattr(route, "path", None) or request.url.path

            http_requests_total.labels(
                method=request.method,
                endpoint=endpoint,
                status_code=status_code
            ).inc()

            http_request_duration_seconds.labels(
                method=request.method,
                endpoint=endpoint
            ).observe(duration)

        return response


def get_metrics_response(openmetrics: bool = False) -> Response:
    """
    Get Prometheus metrics response.

    Args:
        openmetrics: If True, return OpenMetrics format, else Prometheus format
    """
    if openmetrics:
        content = generate_latest_openmetrics()
        content_type = "application/openmetrics-text; version=1.0.0; charset=utf-8"
    else:
        content = generate_latest()
        content_type = CONTENT_TYPE_LATEST

    return Response(content=content, media_type=content_type)
