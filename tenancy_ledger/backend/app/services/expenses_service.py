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
from app.domain.dates import start_of_day
from app.models import Expense, Payment
from app.schemas import ExpenseCreate, ExpenseUpdate
from app.services.guard import MANAGE_FINANCIAL_ROLES, VIEW_FINANCIAL_ROLES, AuthorizationGuard
from app.services.ownership import must_get_owned, must_get_property, must_get_unit

log = logging.getLogger(__name__)


class ExpensesService:
    def __init__(self, guard: AuthorizationGuard) -> None:
        self.guard = guard

    def get_expenses_by_organization(self, db: Session, principal: Principal) -> list[Expense]:
        self.guard.require_role(principal, VIEW_FINANCIAL_ROLES)
        q = select(Expense).where(Expense.org_id == principal.org_id).order_by(Expense.expense_date.desc())
        return list(db.scalars(q).all())

    def get_expense_by_id(self, db: Session, principal: Principal, expense_id: int) -> Expense:
        self.guard.require_role(principal, VIEW_FINANCIAL_ROLES)
        return must_get_owned(db, self.guard, principal, Expense, expense_id)

    def get_expenses_by_property(self, db: Session, principal: Principal, property_id: int) -> list[Expense]:
        self.guard.require_role(principal, VIEW_FINANCIAL_ROLES)
        must_get_property(db, self.guard, principal, property_id)
        q = select(Expense).where(Expense.property_id == property_id).order_by(Expense.expense_date.desc())
        return list(db.scalars(q).all())

    def create_expense(
        self,
        db: Session,
        principal: Principal,
        payload: ExpenseCreate,
        *,
        create_payment: Optional[bool] = None,
    ) -> Expense:
        """
        Records an expense. With `create_payment`, a successful
        expense_reimbursement payment mirroring it is inserted in the same
        transaction and linked through `payment_id`.
        """
        self.guard.require_role(principal, MANAGE_FINANCIAL_ROLES)
        if payload.property_id is not None:
            must_get_property(db, self.guard, principal, payload.property_id)
        if payload.unit_id is not None:
            must_get_unit(db, self.guard, principal, payload.unit_id)

        mirror = payload.create_payment if create_payment is None else create_payment
        data = payload.model_dump(exclude={"create_payment"})

        with atomic(db):
            expense = Expense(**data, org_id=principal.org_id, recorded_by=principal.user_id)

            if mirror:
                payment = Payment(
                    org_id=principal.org_id,
                    property_id=payload.property_id,
                    unit_id=payload.unit_id,
                    type="expense_reimbursement",
                    status="successful",
                    method=settings.expense_payment_method,
                    amount=payload.amount,
                    currency=settings.default_currency,
                    transaction_date=start_of_day(payload.expense_date),
                    paid_date=start_of_day(payload.expense_date),
                    description=payload.description,
                    notes=payload.notes,
                    recorded_by=principal.user_id,
                )
                db.add(payment)
                db.flush()
                expense.payment_id = payment.id

            db.add(expense)
            db.flush()
            audit_write(
                db,
                org_id=principal.org_id,
                actor_user_id=principal.user_id,
                action="expense.create",
                entity_type="expense",
                entity_id=expense.id,
                after=snapshot(expense),
            )

        if mirror:
            log.info(
                "expense recorded with mirrored payment",
                extra={"org_id": principal.org_id, "user_id": principal.user_id},
            )
        return expense

    def update_expense(self, db: Session, principal: Principal, expense_id: int, payload: ExpenseUpdate) -> Expense:
        self.guard.require_role(principal, MANAGE_FINANCIAL_ROLES)
        expense = must_get_owned(db, self.guard, principal, Expense, expense_id, action="update")
        before = snapshot(expense)
        with atomic(db):
            for k, v in payload.model_dump(exclude_unset=True).items():
                setattr(expense, k, v)
            db.flush()
            audit_write(
                db,
                org_id=principal.org_id,
                actor_user_id=principal.user_id,
                action="expense.update",
                entity_type="expense",
                entity_id=expense.id,
                before=before,
                after=snapshot(expense),
            )
        return expense

    def delete_expense(self, db: Session, principal: Principal, expense_id: int) -> None:
        self.guard.require_role(principal, MANAGE_FINANCIAL_ROLES)
        expense = must_get_owned(db, self.guard, principal, Expense, expense_id, action="delete")
        before = snapshot(expense)

        with atomic(db):
            payment_id = expense.payment_id
            # the expense holds the FK, so it goes first
            db.delete(expense)
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
                action="expense.delete",
                entity_type="expense",
                entity_id=before["id"],
                before=before,
            )

    def get_property_expenses(self, db: Session, property_id: int, start: date, end: date, org_id: int) -> float:
        """Sum of expenses dated within [start, end]."""
        total = db.scalar(
            select(func.sum(Expense.amount)).where(
                Expense.org_id == int(org_id),
                Expense.property_id == int(property_id),
                Expense.expense_date >= start,
                Expense.expense_date <= end,
            )
        )
        return float(total or 0.0)
