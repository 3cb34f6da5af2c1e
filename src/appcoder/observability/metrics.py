"""Prometheus series exported on ``/metrics``.

``appcoder_request_latency_seconds{method,path,status}``
    Every HTTP request except ``/metrics`` itself. For the SSE endpoints this
    is the time until the response starts streaming, not the whole stream.
``appcoder_generation_seconds{kind,outcome}``
    A generate or modify stream from start to drain (``completed``) or to
    rollback (``failed``).
``appcoder_stream_deltas_total{kind}``
    Text deltas appended to the artifact.
``appcoder_publish_seconds{outcome}``
    Publish round-trips, including the minimum-duration floor.
"""

from __future__ import annotations

import time
from typing import Awaitable, Callable

from prometheus_client import Counter, Histogram
from starlette.requests import Request
from starlette.responses import Response

REQUEST_LATENCY = Histogram(
    "appcoder_request_latency_seconds",
    "HTTP request latency in seconds",
    labelnames=("method", "path", "status"),
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0),
)

# Code generation routinely runs for tens of seconds.
GENERATION_LATENCY = Histogram(
    "appcoder_generation_seconds",
    "Time from request start to stream drain or failure",
    labelnames=("kind", "outcome"),
    buckets=(0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 40.0, 80.0, 160.0),
)

STREAM_DELTAS = Counter(
    "appcoder_stream_deltas_total",
    "Text deltas appended to the artifact",
    labelnames=("kind",),
)

PUBLISH_LATENCY = Histogram(
    "appcoder_publish_seconds",
    "Publish duration including the minimum display floor",
    labelnames=("outcome",),
    buckets=(0.25, 0.5, 1.0, 1.5, 2.0, 3.0, 5.0, 10.0),
)

API_PREFIX = "/api"


def sanitize_path(path: str) -> str:
    """Label a request by its router, e.g. ``/session``.

    The ``/api`` mirror is folded into the plain mount and everything after
    the router segment is dropped to keep label cardinality bounded.
    """
    path = path.split("?")[0]
    if path == API_PREFIX or path.startswith(API_PREFIX + "/"):
        path = path[len(API_PREFIX):]
    segs = path.split("/")
    if len(segs) > 1 and segs[1]:
        return "/" + segs[1]
    return "/"


def metrics_middleware_factory() -> Callable[[Request, Callable[[Request], Awaitable[Response]]], Awaitable[Response]]:
    async def middleware(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        if request.url.path.startswith("/metrics"):
            return await call_next(request)
        start = time.perf_counter()
        response = await call_next(request)
        REQUEST_LATENCY.labels(
            method=request.method,
            path=sanitize_path(request.url.path),
            status=str(response.status_code),
        ).observe(time.perf_counter() - start)
        return response

    return middleware
