from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Any, Optional

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.config import settings
from app.db import atomic
from app.domain.audit import audit_write, snapshot
from app.domain.dates import today as _today, utcnow
from app.domain.enums import TERMINAL_LEASE_STATUSES, UTILITIES
from app.errors import ConflictError, NotFoundError, ValidationError
from app.models import Lease, Payment, Tenant, Unit, UtilityBill
from app.services.lease_rules import (
    ensure_no_active_lease,
    ensure_unit_leasable,
    ensure_valid_lease_terms,
)

log = logging.getLogger(__name__)

ACTIVE_LEASE_CONFLICT = "This unit already has an active lease"

# Terms a renewal carries over unchanged from its predecessor.
_RENEWAL_CARRIED = (
    "org_id",
    "unit_id",
    "tenant_id",
    "payment_day",
    "payment_frequency",
    "created_by",
    *[f"includes_{u}" for u in UTILITIES],
    *[f"{u}_billing_type" for u in UTILITIES],
    *[f"{u}_fixed_amount" for u in UTILITIES],
)


def _is_active_lease_violation(exc: IntegrityError) -> bool:
    msg = str(getattr(exc, "orig", exc))
    # postgres names the index; sqlite names the indexed column
    return "uq_leases_one_active_per_unit" in msg or "UNIQUE constraint failed: leases.unit_id" in msg


def _filtered(q, org_id: int, filters: dict[str, Any]):
    q = q.where(Lease.org_id == int(org_id))

    if filters.get("property_id") is not None:
        q = q.where(Unit.property_id == int(filters["property_id"]))
    if filters.get("unit_id") is not None:
        q = q.where(Lease.unit_id == int(filters["unit_id"]))
    if filters.get("tenant_id") is not None:
        q = q.where(Lease.tenant_id == int(filters["tenant_id"]))
    if filters.get("status"):
        q = q.where(Lease.status == filters["status"])

    search = (filters.get("search") or "").strip()
    if search:
        like = f"%{search.lower()}%"
        q = q.where(or_(func.lower(Tenant.name).like(like), func.lower(Unit.name).like(like)))

    if filters.get("start_date_from"):
        q = q.where(Lease.start_date >= filters["start_date_from"])
    if filters.get("start_date_to"):
        q = q.where(Lease.start_date <= filters["start_date_to"])
    if filters.get("end_date_from"):
        q = q.where(Lease.end_date >= filters["end_date_from"])
    if filters.get("end_date_to"):
        q = q.where(Lease.end_date <= filters["end_date_to"])
    return q


class LeaseRepository:
    """
    Every lease read and every lease state transition.

    Writes run as one `atomic(db)` unit of work each: the lease row, the unit
    status flip, any refund/successor row and the audit row land together or
    not at all.
    """

    # -------------------- reads --------------------

    def find_all(self, db: Session, *, org_id: int, filters: dict[str, Any]) -> list[Lease]:
        page = max(int(filters.get("page") or 1), 1)
        limit = min(int(filters.get("limit") or settings.default_page_size), settings.max_page_size)

        q = select(Lease).join(Unit, Unit.id == Lease.unit_id).join(Tenant, Tenant.id == Lease.tenant_id)
        q = _filtered(q, org_id, filters)
        q = q.order_by(Lease.created_at.desc(), Lease.id.desc()).offset((page - 1) * limit).limit(limit)
        return list(db.scalars(q).all())

    def count(self, db: Session, *, org_id: int, filters: dict[str, Any]) -> int:
        q = (
            select(func.count(Lease.id))
            .select_from(Lease)
            .join(Unit, Unit.id == Lease.unit_id)
            .join(Tenant, Tenant.id == Lease.tenant_id)
        )
        return int(db.scalar(_filtered(q, org_id, filters)) or 0)

    def find_by_id(self, db: Session, lease_id: int) -> Optional[Lease]:
        return db.get(Lease, int(lease_id))

    def find_with_transactions(self, db: Session, lease_id: int) -> Optional[dict[str, Any]]:
        lease = self.find_by_id(db, lease_id)
        if lease is None:
            return None
        payments = db.scalars(
            select(Payment).where(Payment.lease_id == lease.id).order_by(Payment.transaction_date.desc())
        ).all()
        bills = db.scalars(
            select(UtilityBill).where(UtilityBill.lease_id == lease.id).order_by(UtilityBill.due_date.desc())
        ).all()
        return {"lease": lease, "payments": list(payments), "utility_bills": list(bills)}

    def find_by_unit_id(self, db: Session, unit_id: int) -> list[Lease]:
        return list(db.scalars(select(Lease).where(Lease.unit_id == int(unit_id)).order_by(Lease.start_date.desc())).all())

    def find_active_lease_for_unit(self, db: Session, unit_id: int) -> Optional[Lease]:
        return db.scalar(select(Lease).where(Lease.unit_id == int(unit_id), Lease.status == "active"))

    def find_by_tenant_id(self, db: Session, tenant_id: int) -> list[Lease]:
        return list(
            db.scalars(select(Lease).where(Lease.tenant_id == int(tenant_id)).order_by(Lease.start_date.desc())).all()
        )

    def find_active_lease_for_tenant(self, db: Session, tenant_id: int) -> Optional[Lease]:
        # a tenant may hold several units; the most recent one wins
        return db.scalar(
            select(Lease)
            .where(Lease.tenant_id == int(tenant_id), Lease.status == "active")
            .order_by(Lease.start_date.desc())
            .limit(1)
        )

    def find_by_property_id(self, db: Session, property_id: int) -> list[Lease]:
        q = (
            select(Lease)
            .join(Unit, Unit.id == Lease.unit_id)
            .where(Unit.property_id == int(property_id))
            .order_by(Lease.start_date.desc())
        )
        return list(db.scalars(q).all())

    def find_expiring_leases(self, db: Session, days_ahead: int, org_id: Optional[int] = None) -> list[Lease]:
        """Active leases ending within [today, today + days_ahead]; all orgs when org_id is None."""
        start = _today()
        end = start + timedelta(days=int(days_ahead))
        q = select(Lease).where(Lease.status == "active", Lease.end_date >= start, Lease.end_date <= end)
        if org_id is not None:
            q = q.where(Lease.org_id == int(org_id))
        return list(db.scalars(q.order_by(Lease.end_date.asc(), Lease.id.asc())).all())

    def get_lease_stats(self, db: Session, *, org_id: int, property_id: Optional[int] = None) -> dict[str, Any]:
        conds = [Lease.org_id == int(org_id)]
        if property_id is not None:
            unit_ids = db.scalars(
                select(Unit.id).where(Unit.org_id == int(org_id), Unit.property_id == int(property_id))
            ).all()
            if not unit_ids:
                return {
                    "total_leases": 0,
                    "active_leases": 0,
                    "expiring_next_30_days": 0,
                    "leases_by_status": [],
                    "average_rent": 0.0,
                    "total_monthly_rent": 0.0,
                }
            conds.append(Lease.unit_id.in_(list(unit_ids)))

        active = [*conds, Lease.status == "active"]
        start = _today()
        window_end = start + timedelta(days=settings.lease_expiry_window_days)

        total = db.scalar(select(func.count(Lease.id)).where(and_(*conds))) or 0
        active_count = db.scalar(select(func.count(Lease.id)).where(and_(*active))) or 0
        expiring = (
            db.scalar(
                select(func.count(Lease.id)).where(and_(*active), Lease.end_date >= start, Lease.end_date <= window_end)
            )
            or 0
        )
        by_status = db.execute(
            select(Lease.status, func.count(Lease.id)).where(and_(*conds)).group_by(Lease.status).order_by(Lease.status)
        ).all()
        avg_rent = db.scalar(select(func.avg(Lease.rent_amount)).where(and_(*active)))
        monthly = db.scalar(
            select(func.sum(Lease.rent_amount)).where(and_(*active), Lease.payment_frequency == "monthly")
        )

        return {
            "total_leases": int(total),
            "active_leases": int(active_count),
            "expiring_next_30_days": int(expiring),
            "leases_by_status": [{"status": s, "count": int(c)} for s, c in by_status],
            "average_rent": float(avg_rent or 0.0),
            "total_monthly_rent": float(monthly or 0.0),
        }

    # -------------------- writes --------------------

    def create(self, db: Session, *, org_id: int, created_by: Optional[int], data: dict[str, Any]) -> Lease:
        try:
            with atomic(db):
                ensure_no_active_lease(db, unit_id=data["unit_id"], message=ACTIVE_LEASE_CONFLICT)

                unit = db.get(Unit, int(data["unit_id"]))
                if unit is None or int(unit.org_id) != int(org_id):
                    raise NotFoundError("Unit not found")
                ensure_unit_leasable(unit)

                lease = Lease(**data, org_id=int(org_id), created_by=created_by)
                db.add(lease)
                unit.status = "occupied"
                db.flush()

                audit_write(
                    db,
                    org_id=org_id,
                    actor_user_id=created_by,
                    action="lease.create",
                    entity_type="lease",
                    entity_id=lease.id,
                    after=snapshot(lease),
                )
        except IntegrityError as e:
            if _is_active_lease_violation(e):
                raise ConflictError(ACTIVE_LEASE_CONFLICT) from e
            raise

        log.info("lease created", extra={"org_id": org_id, "lease_id": lease.id, "unit_id": lease.unit_id})
        return lease

    def update(self, db: Session, lease_id: int, patch: dict[str, Any], *, actor_user_id: Optional[int]) -> Lease:
        try:
            with atomic(db):
                lease = db.get(Lease, int(lease_id))
                if lease is None:
                    raise NotFoundError("Lease not found")
                before = snapshot(lease)

                new_unit_id = patch.get("unit_id")
                new_status = patch.get("status")
                unit_changes = new_unit_id is not None and int(new_unit_id) != int(lease.unit_id)
                status_changes = new_status is not None and new_status != lease.status

                if lease.status in TERMINAL_LEASE_STATUSES and (unit_changes or status_changes):
                    raise ConflictError(f"Cannot change the unit or status of a {lease.status} lease")
                if status_changes and new_status == "renewed":
                    raise ValidationError("Use the renew operation to renew a lease")

                if unit_changes:
                    ensure_no_active_lease(
                        db, unit_id=new_unit_id, ignore_lease_id=lease.id, message="New unit already has an active lease"
                    )
                    new_unit = db.get(Unit, int(new_unit_id))
                    if new_unit is None or int(new_unit.org_id) != int(lease.org_id):
                        raise NotFoundError("New unit not found")
                    ensure_unit_leasable(new_unit, message="New unit is not available for lease")

                    old_unit = db.get(Unit, int(lease.unit_id))
                    if old_unit is not None:
                        old_unit.status = "vacant"
                    new_unit.status = "occupied"

                if status_changes and new_status == "active":
                    ensure_no_active_lease(
                        db,
                        unit_id=new_unit_id if unit_changes else lease.unit_id,
                        ignore_lease_id=lease.id,
                        message=ACTIVE_LEASE_CONFLICT,
                    )

                for k, v in patch.items():
                    setattr(lease, k, v)
                ensure_valid_lease_terms(snapshot(lease))

                if status_changes and new_status in ("terminated", "expired"):
                    unit = db.get(Unit, int(lease.unit_id))
                    if unit is not None:
                        unit.status = "vacant"
                elif status_changes and new_status == "active":
                    unit = db.get(Unit, int(lease.unit_id))
                    if unit is not None:
                        unit.status = "occupied"

                db.flush()
                audit_write(
                    db,
                    org_id=lease.org_id,
                    actor_user_id=actor_user_id,
                    action="lease.update",
                    entity_type="lease",
                    entity_id=lease.id,
                    before=before,
                    after=snapshot(lease),
                )
        except IntegrityError as e:
            if _is_active_lease_violation(e):
                raise ConflictError(ACTIVE_LEASE_CONFLICT) from e
            raise

        log.info("lease updated", extra={"org_id": lease.org_id, "lease_id": lease.id})
        return lease

    def terminate(
        self,
        db: Session,
        lease_id: int,
        *,
        termination_date: date,
        reason: str,
        refund_amount: float = 0.0,
        actor_user_id: Optional[int] = None,
    ) -> Lease:
        with atomic(db):
            lease = db.get(Lease, int(lease_id))
            if lease is None:
                raise NotFoundError("Lease not found")
            if lease.status != "active":
                raise ConflictError("Only active leases can be terminated")
            if termination_date <= lease.start_date:
                raise ValidationError("Termination date must be after the lease start date")
            before = snapshot(lease)

            lease.status = "terminated"
            lease.end_date = termination_date
            note = f"Termination reason: {reason}"
            lease.notes = f"{lease.notes}\n\n{note}" if lease.notes else note

            unit = db.get(Unit, int(lease.unit_id))
            if unit is not None:
                unit.status = "vacant"

            refund = None
            if refund_amount and refund_amount > 0:
                now = utcnow()
                refund = Payment(
                    org_id=lease.org_id,
                    lease_id=lease.id,
                    unit_id=lease.unit_id,
                    tenant_id=lease.tenant_id,
                    type="refund",
                    status="successful",
                    method=settings.refund_payment_method,
                    amount=float(refund_amount),
                    currency=settings.default_currency,
                    transaction_date=now,
                    paid_date=now,
                    description=f"Deposit refund for terminated lease #{lease.id}",
                    recorded_by=actor_user_id,
                )
                db.add(refund)

            db.flush()
            audit_write(
                db,
                org_id=lease.org_id,
                actor_user_id=actor_user_id,
                action="lease.terminate",
                entity_type="lease",
                entity_id=lease.id,
                before=before,
                after={**snapshot(lease), "refund_payment_id": refund.id if refund else None},
            )

        log.info(
            "lease terminated",
            extra={"org_id": lease.org_id, "lease_id": lease.id, "unit_id": lease.unit_id},
        )
        return lease

    def renew(
        self,
        db: Session,
        lease_id: int,
        *,
        new_end_date: date,
        new_rent_amount: Optional[float] = None,
        preserve_deposit: bool = True,
        new_deposit_amount: Optional[float] = None,
        actor_user_id: Optional[int] = None,
    ) -> Lease:
        try:
            with atomic(db):
                old = db.get(Lease, int(lease_id))
                if old is None:
                    raise NotFoundError("Lease not found")
                if old.status != "active":
                    raise ConflictError("Only active leases can be renewed")
                if new_end_date <= old.end_date:
                    raise ValidationError("New end date must be after the current end date")
                before = snapshot(old)

                # the old row must stop being active before the new one is inserted
                old.status = "renewed"
                db.flush()

                if preserve_deposit or new_deposit_amount is None:
                    deposit = old.deposit_amount
                else:
                    deposit = new_deposit_amount

                successor = Lease(
                    **{k: getattr(old, k) for k in _RENEWAL_CARRIED},
                    start_date=old.end_date,
                    end_date=new_end_date,
                    rent_amount=new_rent_amount if new_rent_amount is not None else old.rent_amount,
                    deposit_amount=deposit,
                    status="active",
                    renewed_from_lease_id=old.id,
                )
                db.add(successor)
                db.flush()

                old.renewed_to_lease_id = successor.id
                db.flush()

                audit_write(
                    db,
                    org_id=old.org_id,
                    actor_user_id=actor_user_id,
                    action="lease.renew",
                    entity_type="lease",
                    entity_id=old.id,
                    before=before,
                    after=snapshot(old),
                )
                audit_write(
                    db,
                    org_id=successor.org_id,
                    actor_user_id=actor_user_id,
                    action="lease.create",
                    entity_type="lease",
                    entity_id=successor.id,
                    after=snapshot(successor),
                )
        except IntegrityError as e:
            if _is_active_lease_violation(e):
                raise ConflictError(ACTIVE_LEASE_CONFLICT) from e
            raise

        log.info(
            "lease renewed",
            extra={"org_id": successor.org_id, "lease_id": successor.id, "unit_id": successor.unit_id},
        )
        return successor

    def delete(self, db: Session, lease_id: int, *, actor_user_id: Optional[int] = None) -> None:
        with atomic(db):
            lease = db.get(Lease, int(lease_id))
            if lease is None:
                raise NotFoundError("Lease not found")

            if db.scalar(select(Payment.id).where(Payment.lease_id == lease.id).limit(1)) is not None:
                raise ConflictError("Cannot delete lease with associated transactions")
            if db.scalar(select(UtilityBill.id).where(UtilityBill.lease_id == lease.id).limit(1)) is not None:
                raise ConflictError("Cannot delete lease with associated utility bills")

            before = snapshot(lease)
            if lease.status == "active":
                unit = db.get(Unit, int(lease.unit_id))
                if unit is not None:
                    unit.status = "vacant"

            db.execute(
                update(Lease).where(Lease.renewed_to_lease_id == lease.id).values(renewed_to_lease_id=None)
            )
            db.execute(
                update(Lease).where(Lease.renewed_from_lease_id == lease.id).values(renewed_from_lease_id=None)
            )
            lease.renewed_from_lease_id = None
            lease.renewed_to_lease_id = None
            db.flush()

            db.delete(lease)
            db.flush()
            audit_write(
                db,
                org_id=before["org_id"],
                actor_user_id=actor_user_id,
                action="lease.delete",
                entity_type="lease",
                entity_id=before["id"],
                before=before,
            )

        log.info("lease deleted", extra={"org_id": before["org_id"], "lease_id": before["id"]})
