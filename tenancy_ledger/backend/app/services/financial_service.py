from __future__ import annotations

from datetime import date
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.auth import Principal
from app.config import settings
from app.domain.dates import quarter_start, today as _today
from app.errors import ValidationError
from app.models import Unit
from app.services.expenses_service import ExpensesService
from app.services.guard import VIEW_FINANCIAL_ROLES, AuthorizationGuard
from app.services.ownership import must_get_property
from app.services.payments_service import PaymentsService

# Collection tracking against scheduled rent does not exist yet; callers get
# the flag below so they can tell the figure is not measured.
RENT_COLLECTION_RATE_PLACEHOLDER = 95.0


def resolve_period(
    period: str,
    start: Optional[date] = None,
    end: Optional[date] = None,
    *,
    today: Optional[date] = None,
) -> tuple[date, date]:
    """
    month   -> first of the current month .. today
    quarter -> first day of the current quarter .. today
    year    -> Jan 1 .. today
    custom  -> [start, end], both required
    """
    t = today or _today()
    if period == "month":
        return t.replace(day=1), t
    if period == "quarter":
        return quarter_start(t), t
    if period == "year":
        return date(t.year, 1, 1), t
    if period == "custom":
        if start is None or end is None:
            raise ValidationError("Custom period requires both start_date and end_date")
        if start > end:
            raise ValidationError("start_date must not be after end_date")
        return start, end
    raise ValidationError(f"Unknown period: {period}")


class FinancialService:
    """Read-only property summaries; nothing here is persisted."""

    def __init__(self, guard: AuthorizationGuard, payments: PaymentsService, expenses: ExpensesService) -> None:
        self.guard = guard
        self.payments = payments
        self.expenses = expenses

    def _occupancy(self, db: Session, property_id: int) -> tuple[int, int]:
        total = db.scalar(select(func.count(Unit.id)).where(Unit.property_id == property_id)) or 0
        occupied = (
            db.scalar(select(func.count(Unit.id)).where(Unit.property_id == property_id, Unit.status == "occupied"))
            or 0
        )
        return int(total), int(occupied)

    def get_property_financial_summary(
        self,
        db: Session,
        principal: Principal,
        property_id: int,
        period: str = "month",
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> dict[str, Any]:
        self.guard.require_role(principal, VIEW_FINANCIAL_ROLES)
        must_get_property(db, self.guard, principal, property_id)
        p_start, p_end = resolve_period(period, start, end)

        income = self.payments.get_property_income(db, property_id, p_start, p_end, principal.org_id)
        expenses = self.expenses.get_property_expenses(db, property_id, p_start, p_end, principal.org_id)
        total_units, occupied_units = self._occupancy(db, property_id)

        return {
            "property_id": property_id,
            "period": {"start": p_start, "end": p_end},
            "income": income,
            "expenses": expenses,
            "net_income": income - expenses,
            "rent_collection_rate": RENT_COLLECTION_RATE_PLACEHOLDER,
            "rent_collection_rate_is_placeholder": True,
            "currency": settings.default_currency,
            "occupancy_rate": (occupied_units / total_units * 100.0) if total_units else 0.0,
            "total_units": total_units,
            "occupied_units": occupied_units,
        }
