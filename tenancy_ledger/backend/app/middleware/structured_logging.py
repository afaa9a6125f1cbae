# backend/app/middleware/structured_logging.py
from __future__ import annotations

import logging
import time
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from ..config import settings

log = logging.getLogger("tenancy_ledger.request")


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """
    One access line per request: method, path, status, latency, and the org
    slug / user email headers the caller sent. The request id is attached by
    the formatter.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        t0 = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            log.info(
                "%s %s -> %s",
                request.method,
                request.url.path,
                status_code,
                extra={
                    "path": request.url.path,
                    "status_code": status_code,
                    "latency_ms": int((time.perf_counter() - t0) * 1000),
                    "org_slug": request.headers.get(settings.dev_header_org_slug),
                    "user_email": request.headers.get(settings.dev_header_user_email),
                },
            )
