"""Custom middleware for the DQ Flags API.

This module provides the request logging middleware. It binds a request id
into structlog's context variables so log lines emitted by the flag core
while serving a request carry the same id as the access log.
"""

import time
import uuid
from collections.abc import Awaitable, Callable

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = structlog.get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
RESPONSE_TIME_HEADER = "X-Response-Time"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs each request and tags its response with an id and timing.

    A request id supplied by the client in ``X-Request-ID`` is reused;
    otherwise a short random one is generated.
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:8]
        request.state.request_id = request_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        logger.info(
            "Request started",
            method=request.method,
            path=request.url.path,
            query=str(request.query_params) if request.query_params else None,
        )

        start_time = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as e:
            logger.exception(
                "Request failed with unhandled exception",
                method=request.method,
                path=request.url.path,
                error=str(e),
            )
            raise
        finally:
            duration_ms = (time.perf_counter() - start_time) * 1000

        log = logger.info if response.status_code < 400 else logger.warning
        log(
            "Request completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round(duration_ms, 2),
        )

        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers[RESPONSE_TIME_HEADER] = f"{duration_ms:.2f}ms"
        structlog.contextvars.unbind_contextvars("request_id")
        return response
