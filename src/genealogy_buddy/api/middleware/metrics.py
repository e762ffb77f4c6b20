"""Metrics middleware for automatic request tracking."""

from time import time

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from genealogy_buddy.core.metrics import (
    active_requests,
    request_latency_seconds,
    request_total,
)


class MetricsMiddleware(BaseHTTPMiddleware):
    """Collects latency, count and in-flight gauges per route.

    Metrics and health endpoints are not tracked.
    """

    EXCLUDED_PATHS = {"/metrics", "/health", "/health/ready"}

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if path in self.EXCLUDED_PATHS:
            return await call_next(request)

        method = request.method
        active_requests.inc()
        start_time = time()
        status = "500"

        try:
            response: Response = await call_next(request)
            status = str(response.status_code)
            return response
        finally:
            # Route is only known once routing ran, so label afterwards.
            endpoint = self._get_endpoint(request)
            request_latency_seconds.labels(endpoint=endpoint, method=method).observe(
                time() - start_time
            )
            request_total.labels(endpoint=endpoint, method=method, status=status).inc()
            active_requests.dec()

    def _get_endpoint(self, request: Request) -> str:
        """Route pattern if matched (``/tools/{x}`` rather than ``/tools/1``)."""
        route = request.scope.get("route")
        if route is not None:
            return route.path
        return request.url.path
