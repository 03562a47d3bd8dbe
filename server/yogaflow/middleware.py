# ─────────────────────────────────────────────────────────────────────────────
# Request Context Middleware — request id + timing on every request
# ─────────────────────────────────────────────────────────────────────────────
# Binds request_id into structlog contextvars so every log line emitted
# while handling the request carries it, echoes it back in X-Request-ID,
# and logs one access line with the elapsed time.
# ─────────────────────────────────────────────────────────────────────────────


import time
import uuid
from typing import Any

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = structlog.get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Attach a request id and log timing for every request."""

    def __init__(self, app: Any, *, header_name: str = REQUEST_ID_HEADER) -> None:
        super().__init__(app)
        self._header_name = header_name

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(self._header_name) or uuid.uuid4().hex
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        start = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            elapsed_ms = round((time.perf_counter() - start) * 1000, 1)

        response.headers[self._header_name] = request_id
        logger.info(
            "request_complete",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            time_ms=elapsed_ms,
        )
        structlog.contextvars.clear_contextvars()
        return response
