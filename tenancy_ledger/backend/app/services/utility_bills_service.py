from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from app.auth import Principal
from app.config import settings
from app.db import atomic
from app.domain.audit import audit_write, snapshot
from app.domain.dates import utcnow
from app.errors import ConflictError, ValidationError
from app.models import Lease, Payment, UtilityBill
from app.schemas import UtilityBillCreate, UtilityBillUpdate
from app.services.guard import MANAGE_FINANCIAL_ROLES, VIEW_FINANCIAL_ROLES, AuthorizationGuard
from app.services.ownership import must_get, must_get_owned, must_get_property, must_get_tenant, must_get_unit

log = logging.getLogger(__name__)


class UtilityBillsService:
    def __init__(self, guard: AuthorizationGuard) -> None:
        self.guard = guard

    def get_utility_bills_by_organization(self, db: Session, principal: Principal) -> list[UtilityBill]:
        self.guard.require_role(principal, VIEW_FINANCIAL_ROLES)
        q = select(UtilityBill).where(UtilityBill.org_id == principal.org_id).order_by(UtilityBill.due_date.desc())
        return list(db.scalars(q).all())

    def get_utility_bill_by_id(self, db: Session, principal: Principal, bill_id: int) -> UtilityBill:
        self.guard.require_role(principal, VIEW_FINANCIAL_ROLES)
        return must_get_owned(db, self.guard, principal, UtilityBill, bill_id)

    def get_utility_bills_by_property(self, db: Session, principal: Principal, property_id: int) -> list[UtilityBill]:
        self.guard.require_role(principal, VIEW_FINANCIAL_ROLES)
        must_get_property(db, self.guard, principal, property_id)
        q = select(UtilityBill).where(UtilityBill.property_id == property_id).order_by(UtilityBill.due_date.desc())
        return list(db.scalars(q).all())

    def get_utility_bills_by_unit(self, db: Session, principal: Principal, unit_id: int) -> list[UtilityBill]:
        self.guard.require_role(principal, VIEW_FINANCIAL_ROLES)
        must_get_unit(db, self.guard, principal, unit_id)
        q = select(UtilityBill).where(UtilityBill.unit_id == unit_id).order_by(UtilityBill.due_date.desc())
        return list(db.scalars(q).all())

    def create_utility_bill(self, db: Session, principal: Principal, payload: UtilityBillCreate) -> UtilityBill:
        self.guard.require_role(principal, MANAGE_FINANCIAL_ROLES)
        must_get_property(db, self.guard, principal, payload.property_id)
        unit = must_get_unit(db, self.guard, principal, payload.unit_id)
        if int(unit.property_id) != int(payload.property_id):
            raise ValidationError("Unit does not belong to the given property")
        if payload.lease_id is not None:
            must_get_owned(db, self.guard, principal, Lease, payload.lease_id)
        if payload.tenant_id is not None:
            must_get_tenant(db, self.guard, principal, payload.tenant_id)

        with atomic(db):
            bill = UtilityBill(**payload.model_dump(), org_id=principal.org_id)
            db.add(bill)
            db.flush()
            audit_write(
                db,
                org_id=principal.org_id,
                actor_user_id=principal.user_id,
                action="utility_bill.create",
                entity_type="utility_bill",
                entity_id=bill.id,
                after=snapshot(bill),
            )
        return bill

    def update_utility_bill(
        self, db: Session, principal: Principal, bill_id: int, payload: UtilityBillUpdate
    ) -> UtilityBill:
        self.guard.require_role(principal, MANAGE_FINANCIAL_ROLES)
        bill = must_get_owned(db, self.guard, principal, UtilityBill, bill_id, action="update")
        patch = payload.model_dump(exclude_unset=True)
        if bill.status == "paid" and "status" in patch and patch["status"] != "paid":
            raise ConflictError("A paid utility bill cannot change status")

        before = snapshot(bill)
        with atomic(db):
            for k, v in patch.items():
                setattr(bill, k, v)
            if bill.billing_period_start > bill.billing_period_end:
                raise ValidationError("Billing period start must not be after its end")
            db.flush()
            audit_write(
                db,
                org_id=principal.org_id,
                actor_user_id=principal.user_id,
                action="utility_bill.update",
                entity_type="utility_bill",
                entity_id=bill.id,
                before=before,
                after=snapshot(bill),
            )
        return bill

    def delete_utility_bill(self, db: Session, principal: Principal, bill_id: int) -> None:
        self.guard.require_role(principal, MANAGE_FINANCIAL_ROLES)
        bill = must_get_owned(db, self.guard, principal, UtilityBill, bill_id, action="delete")
        before = snapshot(bill)

        with atomic(db):
            payment_id = bill.payment_id
            # the bill holds the FK, so it goes first
            db.delete(bill)
            db.flush()
            if payment_id is not None:
                payment = db.get(Payment, payment_id)
                if payment is not None:
                    db.delete(payment)
                    db.flush()
            audit_write(
                db,
                org_id=principal.org_id,
                actor_user_id=principal.user_id,
                action="utility_bill.delete",
                entity_type="utility_bill",
                entity_id=before["id"],
                before=before,
            )

    def pay_utility_bill(
        self,
        db: Session,
        bill_id: int,
        org_id: int,
        amount: float,
        method: str,
        reference_id: Optional[str] = None,
        paid_date: Optional[datetime] = None,
        notes: Optional[str] = None,
        recorded_by: Optional[int] = None,
    ) -> dict:
        """
        Records the payment for a bill and marks the bill paid, both or neither.

        Returns {"bill": UtilityBill, "payment": Payment}.
        """
        bill = must_get(db, UtilityBill, bill_id)
        self.guard.require_org_id(bill, org_id, action="pay", user_id=recorded_by)
        if bill.status == "paid" and bill.payment_id is not None:
            raise ConflictError("Utility bill is already paid")
        if bill.status == "canceled":
            raise ConflictError("Cannot pay a canceled utility bill")

        when = paid_date or utcnow()
        with atomic(db):
            payment = Payment(
                org_id=bill.org_id,
                property_id=bill.property_id,
                unit_id=bill.unit_id,
                lease_id=bill.lease_id,
                tenant_id=bill.tenant_id,
                type="utility",
                status="successful",
                method=method,
                amount=float(amount),
                currency=settings.default_currency,
                transaction_date=when,
                paid_date=when,
                description=(
                    f"Payment for {bill.utility_type} bill from "
                    f"{bill.billing_period_start.isoformat()} to {bill.billing_period_end.isoformat()}"
                ),
                notes=notes,
                reference_id=reference_id,
                recorded_by=recorded_by,
            )
            db.add(payment)
            db.flush()

            before = snapshot(bill)
            bill.status = "paid"
            bill.payment_id = payment.id
            db.flush()
            audit_write(
                db,
                org_id=bill.org_id,
                actor_user_id=recorded_by,
                action="utility_bill.pay",
                entity_type="utility_bill",
                entity_id=bill.id,
                before=before,
                after={**snapshot(bill), "payment_id": payment.id},
            )

        log.info("utility bill paid", extra={"org_id": bill.org_id, "bill_id": bill.id})
        return {"bill": bill, "payment": payment}

    def mark_overdue_bills(self, db: Session, today: date, org_id: Optional[int] = None) -> int:
        """Flips `due` bills whose due date has passed to `overdue`. Returns how many changed."""
        stmt = (
            update(UtilityBill)
            .where(UtilityBill.status == "due", UtilityBill.due_date < today)
            .values(status="overdue", updated_at=utcnow())
        )
        if org_id is not None:
            stmt = stmt.where(UtilityBill.org_id == int(org_id))

        with atomic(db):
            result = db.execute(stmt.execution_options(synchronize_session=False))
        changed = int(result.rowcount or 0)
        log.info("overdue bill sweep", extra={"org_id": org_id})
        return changed

