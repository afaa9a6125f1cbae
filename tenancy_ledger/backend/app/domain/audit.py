# backend/app/domain/audit.py
from __future__ import annotations

import json
from datetime import date, datetime
from typing import Any, Iterable, Optional

from sqlalchemy import inspect
from sqlalchemy.orm import Session

from ..models import AuditEvent
from .dates import utcnow


def _plain(v: Any) -> Any:
    if isinstance(v, (date, datetime)):
        return v.isoformat()
    return v


def snapshot(row: Any, *, exclude: Iterable[str] = ("created_at", "updated_at")) -> dict[str, Any]:
    """
    Column values of an ORM row as JSON-friendly primitives.

    Timestamps are left out by default so an update's before/after pair only
    differs where the business data did.
    """
    skip = set(exclude)
    mapper = inspect(row).mapper
    return {a.key: _plain(getattr(row, a.key)) for a in mapper.column_attrs if a.key not in skip}


def audit_write(
    db: Session,
    *,
    org_id: int,
    actor_user_id: Optional[int],
    action: str,
    entity_type: str,
    entity_id: Any,
    before: Optional[dict[str, Any]] = None,
    after: Optional[dict[str, Any]] = None,
) -> AuditEvent:
    """
    Adds an audit row to the current unit of work and returns it.

    Never commits: the caller's `atomic(db)` block decides whether the audit
    row lands together with the lease or ledger write or not at all.
    """
    row = AuditEvent(
        org_id=int(org_id),
        actor_user_id=actor_user_id,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id),
        before_json=json.dumps(before, sort_keys=True) if before is not None else None,
        after_json=json.dumps(after, sort_keys=True) if after is not None else None,
        created_at=utcnow(),
    )
    db.add(row)
    return row
