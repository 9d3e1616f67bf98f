"""
Request Context Middleware.

Tags every request with a correlation id, the calling frontend and its
duration. The frontend named in X-Frontend-ID becomes the `source` field
of every log record emitted while the request is handled.
"""

import uuid
from datetime import datetime

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from notesync.backend.core.logging import VALID_SOURCES, get_logger
from notesync.backend.core.utils import utc_now

logger = get_logger(__name__)

# Sources a caller may claim. "sync" and "backup" are client-internal.
REQUEST_SOURCES = VALID_SOURCES - {"sync", "backup"}


def _elapsed_ms(start_time: datetime) -> int:
    return int((utc_now() - start_time).total_seconds() * 1000)


def _request_source(request: Request) -> str:
    source = request.headers.get("X-Frontend-ID", "unknown").strip().lower()
    return source if source in REQUEST_SOURCES else "unknown"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Binds request context for handlers and logs.

    Sets on request.state:
        request_id  - X-Request-ID from the caller, or a new uuid4
        source      - X-Frontend-ID if recognized, else "unknown"
        start_time  - naive UTC timestamp

    Adds X-Request-ID and X-Response-Time to every response.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        source = _request_source(request)
        start_time = utc_now()

        request.state.request_id = request_id
        request.state.source = source
        request.state.start_time = start_time

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            source=source,
            method=request.method,
            path=request.url.path,
        )

        try:
            response = await call_next(request)
        except Exception as exc:
            # Exception handlers build the response
            logger.error(
                "Request failed with exception",
                extra={
                    "duration_ms": _elapsed_ms(start_time),
                    "error_type": type(exc).__name__,
                },
            )
            raise
        else:
            duration_ms = _elapsed_ms(start_time)
            response.headers["X-Request-ID"] = request_id
            response.headers["X-Response-Time"] = f"{duration_ms}ms"
            logger.debug(
                "Request completed",
                extra={"status_code": response.status_code, "duration_ms": duration_ms},
            )
            return response
        finally:
            structlog.contextvars.clear_contextvars()
