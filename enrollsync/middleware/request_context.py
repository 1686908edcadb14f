"""Request context middleware: correlation ids for every request.

Two ids travel with each request:

  request_id  from X-Request-ID, or a fresh UUID.  Identifies this HTTP
              call and is echoed back on the response.
  event_id    from X-Event-ID, when the billing or catalog subsystem
              supplies one.  Identifies the upstream event, so a
              redelivered webhook logs under the same event id as the
              original delivery.

Both live in context variables and a logging filter stamps them on every
record, so an engine log line deep in a reconciliation carries the ids
of the webhook that caused it.  Starlette copies the context into the
threadpool that runs sync routes, so the ids survive the hop.
"""

from __future__ import annotations

import logging
import time
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)

request_id_var: ContextVar[str] = ContextVar("request_id", default="-")
event_id_var: ContextVar[str] = ContextVar("event_id", default="-")


class _RequestContextFilter(logging.Filter):
    """Inject request_id / event_id into every LogRecord.

    A filter (not a formatter) because filters can add fields to the
    record before any formatter reads it.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get("-")  # type: ignore[attr-defined]
        record.event_id = event_id_var.get("-")  # type: ignore[attr-defined]
        return True


def install_context_filter() -> None:
    """Attach the context filter to every root handler.

    Filters on a logger only see records logged on that logger, not the
    ones propagated from children, so the filter goes on the handlers.
    Call after setup_logging(), which replaces the handlers.
    """
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, _RequestContextFilter) for f in handler.filters):
            handler.addFilter(_RequestContextFilter())


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Assign correlation ids, time the request, log one summary line."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        req_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request_id_var.set(req_id)
        event_id = request.headers.get("x-event-id") or "-"
        event_id_var.set(event_id)

        start = time.monotonic()
        response = await call_next(request)
        duration_ms = round((time.monotonic() - start) * 1000, 1)

        logger.info(
            "%s %s → %d (%.1fms)",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            extra={
                "request_id": req_id,
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            },
        )

        response.headers["X-Request-ID"] = req_id
        if event_id != "-":
            response.headers["X-Event-ID"] = event_id
        return response
