"""Per-request access log with elapsed time."""
from __future__ import annotations

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)

TIMING_HEADER = "Server-Timing"


class RequestTimingMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000
        # Event streams return as soon as headers are ready; the body runs for the connection's lifetime.
        streaming = response.headers.get("content-type", "").startswith("text/event-stream")
        logger.info(
            "%s %s %s %.1fms%s",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
            " (stream opened)" if streaming else "",
        )
        response.headers[TIMING_HEADER] = f"app;dur={elapsed_ms:.1f}"
        return response
