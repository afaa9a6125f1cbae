from __future__ import annotations

from datetime import date
from typing import Any, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.domain.dates import as_date
from app.domain.enums import LEASABLE_UNIT_STATUSES, UTILITIES
from app.errors import ConflictError, ValidationError
from app.models import Lease, Unit


def fixed_amount_errors(values: Mapping[str, Any]) -> list[str]:
    """
    A utility's fixed amount must be set exactly when its billing type is
    fixed_amount. Returns one message per offending utility.
    """
    errors: list[str] = []
    for utility in UTILITIES:
        billing_type = values.get(f"{utility}_billing_type")
        amount = values.get(f"{utility}_fixed_amount")
        if billing_type == "fixed_amount" and amount is None:
            errors.append(f"Fixed amount is required for {utility} when billing type is fixed_amount")
        elif billing_type != "fixed_amount" and amount is not None:
            errors.append(f"Fixed amount for {utility} is only allowed when billing type is fixed_amount")
    return errors


def ensure_valid_lease_terms(values: Mapping[str, Any]) -> None:
    """Re-checks the merged row on update, where the request alone can't tell."""
    s: Optional[date] = as_date(values.get("start_date"))
    e: Optional[date] = as_date(values.get("end_date"))
    if s is None or e is None:
        raise ValidationError("Lease start_date and end_date are required")
    if s >= e:
        raise ValidationError("Start date must be before end date")

    errors = fixed_amount_errors(values)
    if errors:
        raise ValidationError("; ".join(errors))


def ensure_no_active_lease(db: Session, *, unit_id: int, ignore_lease_id: Optional[int] = None, message: str) -> None:
    q = select(Lease.id).where(Lease.unit_id == int(unit_id), Lease.status == "active")
    if ignore_lease_id is not None:
        q = q.where(Lease.id != int(ignore_lease_id))
    if db.scalar(q.limit(1)) is not None:
        raise ConflictError(message)


def ensure_unit_leasable(unit: Unit, *, message: str = "Unit is not available for lease") -> None:
    if unit.status not in LEASABLE_UNIT_STATUSES:
        raise ConflictError(message)
