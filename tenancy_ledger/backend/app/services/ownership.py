# backend/app/services/ownership.py
from __future__ import annotations

from typing import TypeVar

from sqlalchemy.orm import Session

from ..auth import Principal
from ..errors import NotFoundError
from ..models import Property, Unit, Tenant, Lease, Payment, Expense, UtilityBill
from .guard import AuthorizationGuard

T = TypeVar("T")

_LABELS = {
    Property: "Property",
    Unit: "Unit",
    Tenant: "Tenant",
    Lease: "Lease",
    Payment: "Payment",
    Expense: "Expense",
    UtilityBill: "Utility bill",
}


def must_get(db: Session, model: type[T], row_id: int) -> T:
    row = db.get(model, row_id)
    if row is None:
        raise NotFoundError(f"{_LABELS.get(model, model.__name__)} not found")
    return row


def must_get_owned(
    db: Session,
    guard: AuthorizationGuard,
    principal: Principal,
    model: type[T],
    row_id: int,
    *,
    action: str = "access",
) -> T:
    """Fetch by id, 404 if missing, then re-check the organization before handing it back."""
    row = must_get(db, model, row_id)
    guard.require_organization_match(row, principal, action=action)
    return row


def must_get_property(db: Session, guard: AuthorizationGuard, principal: Principal, property_id: int) -> Property:
    return must_get_owned(db, guard, principal, Property, property_id)


def must_get_unit(db: Session, guard: AuthorizationGuard, principal: Principal, unit_id: int) -> Unit:
    return must_get_owned(db, guard, principal, Unit, unit_id)


def must_get_tenant(db: Session, guard: AuthorizationGuard, principal: Principal, tenant_id: int) -> Tenant:
    return must_get_owned(db, guard, principal, Tenant, tenant_id)
