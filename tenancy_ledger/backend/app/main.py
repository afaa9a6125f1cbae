# backend/app/main.py
from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import settings
from .errors import DomainError
from .logging_config import configure_logging

from .middleware.request_id import RequestIDMiddleware
from .middleware.structured_logging import StructuredLoggingMiddleware

from .routers.health import router as health_router
from .routers.leases import router as leases_router
from .routers.payments import router as payments_router
from .routers.expenses import router as expenses_router
from .routers.utility_bills import router as utility_bills_router
from .routers.finance import router as finance_router

from .services.container import ServiceContainer

API_PREFIX = "/api"

log = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    val = getattr(settings, "cors_allow_origins", ["*"])
    if isinstance(val, str):
        v = val.strip()
        return ["*"] if v == "*" else [x.strip() for x in v.split(",") if x.strip()]
    if isinstance(val, list) and val:
        return val
    return ["*"]


def _error_body(kind: str, message: str) -> dict[str, str]:
    return {"error": kind, "message": message}


def _install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(DomainError)
    async def _domain_error(request: Request, exc: DomainError):
        return JSONResponse(status_code=exc.status_code, content=_error_body(exc.kind, exc.message))

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException):
        kind = "Authentication Error" if exc.status_code == 401 else "HTTP Error"
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(kind, str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def _request_validation(request: Request, exc: RequestValidationError):
        parts = []
        for err in exc.errors():
            loc = ".".join(str(x) for x in err.get("loc", ()) if x != "body")
            parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
        return JSONResponse(status_code=400, content=_error_body("Validation Error", "; ".join(parts) or "Invalid input data"))

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception):
        log.exception("unhandled error", extra={"path": request.url.path})
        return JSONResponse(status_code=500, content=_error_body("Internal Server Error", "An unexpected error occurred"))


def create_app(services: Optional[ServiceContainer] = None) -> FastAPI:
    configure_logging()

    app = FastAPI(title="Tenancy Ledger", version=settings.app_version)
    app.state.services = services or ServiceContainer.build()

    # Request-ID first (observability baseline)
    app.add_middleware(StructuredLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _install_error_handlers(app)

    app.include_router(health_router, prefix=API_PREFIX)

    # Leases + money
    app.include_router(leases_router, prefix=API_PREFIX)
    app.include_router(payments_router, prefix=API_PREFIX)
    app.include_router(expenses_router, prefix=API_PREFIX)
    app.include_router(utility_bills_router, prefix=API_PREFIX)
    app.include_router(finance_router, prefix=API_PREFIX)

    return app


app = create_app()
