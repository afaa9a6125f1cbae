# backend/app/logging_config.py
from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from .config import settings
from .middleware.request_id import get_request_id

# Keys lifted from `extra=` onto the JSON line when a call site sets them.
LEDGER_EXTRAS: tuple[str, ...] = (
    "org_id",
    "user_id",
    "lease_id",
    "unit_id",
    "bill_id",
    "path",
    "status_code",
    "latency_ms",
    "org_slug",
    "user_email",
)


class JsonFormatter(logging.Formatter):
    """
    One JSON object per line: ts, level, logger, message, the request id when
    the record was emitted inside a request, the traceback if any, and the
    ledger extras.
    """

    def format(self, record: logging.LogRecord) -> str:
        line: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        rid = get_request_id()
        if rid:
            line["request_id"] = rid

        line.update({k: getattr(record, k) for k in LEDGER_EXTRAS if getattr(record, k, None) is not None})

        if record.exc_info:
            line["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(line, ensure_ascii=False, default=str)


def configure_logging() -> None:
    level = settings.log_level.upper()

    root = logging.getLogger()
    root.setLevel(level)

    # Idempotent across create_app() calls; foreign handlers (pytest, uvicorn) stay.
    for h in list(root.handlers):
        if isinstance(h.formatter, JsonFormatter):
            root.removeHandler(h)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(JsonFormatter())
    root.addHandler(handler)

    logging.getLogger("uvicorn.access").setLevel(level)
    logging.getLogger("sqlalchemy.engine").setLevel(settings.sql_log_level.upper())
