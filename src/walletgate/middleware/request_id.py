"""Request ID middleware — one correlation id per request.

Learn: the id comes from the caller's X-Request-ID header when it looks
sane (short, printable), otherwise a fresh UUID. It is bound into
structlog's contextvars, so every event logged while serving the request
carries it, together with the user_id the auth dependency binds once the
token checks out. The response echoes it back, and one
"request.completed" event records status and latency.
"""

import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = structlog.get_logger()

HEADER = "X-Request-ID"
_MAX_LENGTH = 128


def _incoming_id(request: Request) -> str:
    value = request.headers.get(HEADER, "").strip()
    if value and len(value) <= _MAX_LENGTH and value.isprintable():
        return value
    return str(uuid.uuid4())


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Bind a request id to the log context and echo it in the response."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = _incoming_id(request)
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        started = time.perf_counter()
        response: Response = await call_next(request)
        response.headers[HEADER] = request_id
        logger.info(
            "request.completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 1),
        )
        return response
