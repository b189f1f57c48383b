"""Request tracing, access logging and latency metrics"""

import logging
import time
import uuid
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from cardledger.config import settings
from cardledger.infrastructure.observability.metrics import request_duration_histogram

access_logger = logging.getLogger("cardledger.access")

# Liveness and scrape traffic stays out of the latency histogram
UNTIMED_PATHS = {"/health", "/metrics"}


def endpoint_label(request: Request) -> str:
    """Route template ("/v1/invoices/{invoice_id}"), so entity ids never become label values"""
    route = request.scope.get("route")
    return getattr(route, "path", "unmatched")


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Tag each request with an ID (the caller's X-Request-ID when given) and
    write one access log line carrying it and the acting user.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        access_logger.info(
            f"{request.method} {request.url.path} {response.status_code}",
            extra={
                "request_id": request_id,
                "user_id": request.headers.get(settings.user_id_header),
                "status": response.status_code,
            },
        )
        return response


class MetricsMiddleware(BaseHTTPMiddleware):
    """Observe request latency per method, route template and status"""

    async def dispatch(self, request: Request, call_next):
        if request.url.path in UNTIMED_PATHS:
            return await call_next(request)

        started = time.perf_counter()
        response = await call_next(request)

        request_duration_histogram.labels(
            method=request.method,
            endpoint=endpoint_label(request),
            status=response.status_code,
        ).observe(time.perf_counter() - started)
        return response
