# backend/app/domain/dates.py
from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Optional


def utcnow() -> datetime:
    # naive UTC, matching the DateTime columns
    return datetime.now(timezone.utc).replace(tzinfo=None)


def today() -> date:
    return utcnow().date()


def as_date(v: Any) -> Optional[date]:
    if v is None:
        return None
    if isinstance(v, datetime):
        return v.date()
    if isinstance(v, date):
        return v
    try:
        return date.fromisoformat(str(v)[:10])
    except ValueError:
        return None


def start_of_day(d: date) -> datetime:
    return datetime.combine(d, time.min)


def end_of_day_exclusive(d: date) -> datetime:
    """First instant of the following day; use with `<` for an inclusive end date."""
    return datetime.combine(d + timedelta(days=1), time.min)


def quarter_start(d: date) -> date:
    return date(d.year, ((d.month - 1) // 3) * 3 + 1, 1)
