"""FastAPI middleware for request tracing and metrics"""

import uuid
import time
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from crm_billing.infrastructure.observability.metrics import request_duration_histogram


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Tag each request with an ID, reusing the caller's X-Request-ID when given"""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


class MetricsMiddleware(BaseHTTPMiddleware):
    """Record HTTP request latency per route"""

    async def dispatch(self, request: Request, call_next):
        start_time = time.perf_counter()

        response = await call_next(request)

        # Route template keeps label cardinality bounded (ids stay out of labels)
        route = request.scope.get("route")
        endpoint = getattr(route, "path", request.url.path)
        request_duration_histogram.labels(
            method=request.method,
            endpoint=endpoint,
            status=response.status_code,
        ).observe(time.perf_counter() - start_time)

        return response
