from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.auth import Principal
from app.config import settings
from app.db import atomic
from app.domain.audit import audit_write, snapshot
from app.domain.dates import end_of_day_exclusive, start_of_day, utcnow
from app.errors import ConflictError
from app.models import Expense, Lease, Payment, UtilityBill
from app.schemas import PaymentCreate, PaymentUpdate
from app.services.guard import MANAGE_FINANCIAL_ROLES, VIEW_FINANCIAL_ROLES, AuthorizationGuard
from app.services.ownership import must_get_owned, must_get_property, must_get_tenant, must_get_unit

log = logging.getLogger(__name__)


class PaymentsService:
    def __init__(self, guard: AuthorizationGuard) -> None:
        self.guard = guard

    def get_payments_by_organization(self, db: Session, principal: Principal) -> list[Payment]:
        self.guard.require_role(principal, VIEW_FINANCIAL_ROLES)
        q = select(Payment).where(Payment.org_id == principal.org_id).order_by(Payment.transaction_date.desc())
        return list(db.scalars(q).all())

    def get_payment_by_id(self, db: Session, principal: Principal, payment_id: int) -> Payment:
        self.guard.require_role(principal, VIEW_FINANCIAL_ROLES)
        return must_get_owned(db, self.guard, principal, Payment, payment_id)

    def get_payments_by_property(self, db: Session, principal: Principal, property_id: int) -> list[Payment]:
        self.guard.require_role(principal, VIEW_FINANCIAL_ROLES)
        must_get_property(db, self.guard, principal, property_id)
        q = select(Payment).where(Payment.property_id == property_id).order_by(Payment.transaction_date.desc())
        return list(db.scalars(q).all())

    def get_payments_by_lease(self, db: Session, principal: Principal, lease_id: int) -> list[Payment]:
        self.guard.require_role(principal, VIEW_FINANCIAL_ROLES)
        must_get_owned(db, self.guard, principal, Lease, lease_id)
        q = select(Payment).where(Payment.lease_id == lease_id).order_by(Payment.transaction_date.desc())
        return list(db.scalars(q).all())

    def get_payments_by_tenant(self, db: Session, principal: Principal, tenant_id: int) -> list[Payment]:
        self.guard.require_role(principal, VIEW_FINANCIAL_ROLES)
        must_get_tenant(db, self.guard, principal, tenant_id)
        q = select(Payment).where(Payment.tenant_id == tenant_id).order_by(Payment.transaction_date.desc())
        return list(db.scalars(q).all())

    def _check_links(self, db: Session, principal: Principal, payload: PaymentCreate) -> None:
        if payload.property_id is not None:
            must_get_property(db, self.guard, principal, payload.property_id)
        if payload.unit_id is not None:
            must_get_unit(db, self.guard, principal, payload.unit_id)
        if payload.lease_id is not None:
            must_get_owned(db, self.guard, principal, Lease, payload.lease_id)
        if payload.tenant_id is not None:
            must_get_tenant(db, self.guard, principal, payload.tenant_id)

    def create_payment(self, db: Session, principal: Principal, payload: PaymentCreate) -> Payment:
        self.guard.require_role(principal, MANAGE_FINANCIAL_ROLES)
        self._check_links(db, principal, payload)

        data = payload.model_dump()
        data["currency"] = data.get("currency") or settings.default_currency
        data["transaction_date"] = data.get("transaction_date") or utcnow()

        with atomic(db):
            row = Payment(**data, org_id=principal.org_id, status="pending", recorded_by=principal.user_id)
            db.add(row)
            db.flush()
            audit_write(
                db,
                org_id=principal.org_id,
                actor_user_id=principal.user_id,
                action="payment.create",
                entity_type="payment",
                entity_id=row.id,
                after=snapshot(row),
            )
        return row

    def update_payment(self, db: Session, principal: Principal, payment_id: int, payload: PaymentUpdate) -> Payment:
        self.guard.require_role(principal, MANAGE_FINANCIAL_ROLES)
        row = must_get_owned(db, self.guard, principal, Payment, payment_id, action="update")
        before = snapshot(row)
        with atomic(db):
            for k, v in payload.model_dump(exclude_unset=True).items():
                setattr(row, k, v)
            db.flush()
            audit_write(
                db,
                org_id=principal.org_id,
                actor_user_id=principal.user_id,
                action="payment.update",
                entity_type="payment",
                entity_id=row.id,
                before=before,
                after=snapshot(row),
            )
        return row

    def delete_payment(self, db: Session, principal: Principal, payment_id: int) -> None:
        self.guard.require_role(principal, MANAGE_FINANCIAL_ROLES)
        row = must_get_owned(db, self.guard, principal, Payment, payment_id, action="delete")

        if db.scalar(select(UtilityBill.id).where(UtilityBill.payment_id == row.id).limit(1)) is not None:
            raise ConflictError("Payment is linked to a utility bill; delete the bill instead")
        if db.scalar(select(Expense.id).where(Expense.payment_id == row.id).limit(1)) is not None:
            raise ConflictError("Payment is linked to an expense; delete the expense instead")

        before = snapshot(row)
        with atomic(db):
            db.delete(row)
            db.flush()
            audit_write(
                db,
                org_id=principal.org_id,
                actor_user_id=principal.user_id,
                action="payment.delete",
                entity_type="payment",
                entity_id=before["id"],
                before=before,
            )

    def get_property_income(
        self,
        db: Session,
        property_id: int,
        start: date,
        end: date,
        org_id: int,
    ) -> float:
        """
        Sum of successful payments recorded against the property in
        [start, end], `end` counted through the end of that day.

        Every payment type counts, deposits and utility collections included.
        """
        total: Optional[float] = db.scalar(
            select(func.sum(Payment.amount)).where(
                Payment.org_id == int(org_id),
                Payment.property_id == int(property_id),
                Payment.status == "successful",
                Payment.transaction_date >= start_of_day(start),
                Payment.transaction_date < end_of_day_exclusive(end),
            )
        )
        return float(total or 0.0)
