"""
Request middleware: request ids, access logging and HTTP metrics.
"""

import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
import structlog

from boxoffice.core.logging import get_logger
from boxoffice.core.metrics import record_request

logger = get_logger(__name__)

# Polled by load balancers and Prometheus; metrics only, no access log
QUIET_PATHS = {"/health", "/metrics"}


def route_template(request: Request) -> str:
    """`/api/v1/holds/{hold_id}` rather than the concrete id, to bound label cardinality."""
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Binds a request id (reusing X-Request-ID when the caller sent one) plus
    method and path to the structlog context for everything logged while
    handling the request, then records the outcome in the access log and in
    http_requests_total / http_request_duration_seconds.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:8]
        start = time.perf_counter()

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        try:
            response = await call_next(request)
        except Exception:
            elapsed = time.perf_counter() - start
            record_request(request.method, route_template(request), 500, elapsed)
            logger.exception("request_failed", duration_ms=round(elapsed * 1000, 2))
            raise

        elapsed = time.perf_counter() - start
        record_request(request.method, route_template(request), response.status_code, elapsed)

        duration_ms = round(elapsed * 1000, 2)
        if request.url.path not in QUIET_PATHS:
            log = logger.warning if response.status_code >= 500 else logger.info
            log("request_completed", status_code=response.status_code, duration_ms=duration_ms)

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{duration_ms}ms"
        return response
