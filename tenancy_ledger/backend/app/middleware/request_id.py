# backend/app/middleware/request_id.py
from __future__ import annotations

import uuid
from contextvars import ContextVar
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)


def get_request_id() -> str | None:
    return request_id_ctx.get()


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Tags each request with an id, echoed back in X-Request-ID.

    An incoming X-Request-ID is reused so a caller can correlate its own logs
    with lease and payment log lines; otherwise a uuid4 is minted. The id lives
    in a ContextVar so JsonFormatter picks it up without plumbing.
    """

    header = "X-Request-ID"

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        rid = (request.headers.get(self.header) or "").strip() or uuid.uuid4().hex
        request.state.request_id = rid

        token = request_id_ctx.set(rid)
        try:
            resp = await call_next(request)
            resp.headers[self.header] = rid
            return resp
        finally:
            request_id_ctx.reset(token)
