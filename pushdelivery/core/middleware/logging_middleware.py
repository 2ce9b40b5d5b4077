"""Logging middleware for FastAPI.

Adds a per-request UUID (honouring an inbound `X-Request-ID` from the event pipeline),
enriches log records with IP/contextvars, and measures latency. Runs early in the stack
so the notification service logs inherit the request context.
"""

import time
import uuid
from typing import Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from pushdelivery.core.logging_config import (
    bind_request_context,
    log_request,
    reset_request_context,
)

REQUEST_ID_HEADER = "X-Request-ID"


class LoggingMiddleware(BaseHTTPMiddleware):
    """Log HTTP requests/responses with timing and correlation metadata."""

    def __init__(self, app: ASGIApp):
        super().__init__(app)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id

        ip_address = request.client.host if request.client else "unknown"

        tokens = bind_request_context(request_id=request_id, ip_address=ip_address)

        start_time = time.perf_counter()

        response: Optional[Response] = None
        try:
            response = await call_next(request)
        finally:
            duration_ms = (time.perf_counter() - start_time) * 1000

            log_request(
                method=request.method,
                endpoint=request.url.path,
                status_code=response.status_code if response else 500,
                duration_ms=duration_ms,
                ip_address=ip_address,
                request_id=request_id,
            )

            # Reset contextvars no matter what
            reset_request_context(tokens)

        response.headers[REQUEST_ID_HEADER] = request_id

        return response
