# backend/tests/test_lease_lifecycle.py
from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from app.domain.dates import today
from app.errors import ConflictError, NotFoundError, ValidationError
from app.models import AuditEvent, Lease, Payment, Unit, UtilityBill
from app.schemas import LeaseRenew, LeaseTerminate, LeaseUpdate
from app.services import lease_repository as lease_repository_module
from app.services.lease_repository import _is_active_lease_violation
from conftest import lease_payload


def _create(services, db, world, unit=None, **kw) -> Lease:
    unit = unit or world.unit
    return services.leases.create_lease(db, world.admin, lease_payload(unit.id, world.tenant.id, **kw))


def test_create_marks_unit_occupied_and_audits(db_session, world, services):
    lease = _create(services, db_session, world)

    assert lease.status == "active"
    assert lease.org_id == world.org.id
    assert lease.created_by == world.admin.user_id
    assert db_session.get(Unit, world.unit.id).status == "occupied"

    actions = db_session.scalars(select(AuditEvent.action).where(AuditEvent.entity_id == str(lease.id))).all()
    assert "lease.create" in actions


def test_second_active_lease_on_same_unit_is_rejected(db_session, world, services):
    _create(services, db_session, world)

    with pytest.raises(ConflictError) as ei:
        _create(services, db_session, world)
    assert "already has an active lease" in ei.value.message

    n = db_session.scalar(select(func.count(Lease.id)).where(Lease.unit_id == world.unit.id))
    assert n == 1


def test_unit_under_maintenance_is_not_leasable(db_session, world, services):
    world.unit.status = "under_maintenance"
    db_session.commit()

    with pytest.raises(ConflictError) as ei:
        _create(services, db_session, world)
    assert ei.value.message == "Unit is not available for lease"


def test_legacy_available_status_is_leasable(db_session, world, services):
    world.unit.status = "available"
    db_session.commit()

    lease = _create(services, db_session, world)
    assert lease.status == "active"


def test_missing_unit_is_not_found(db_session, world, services):
    with pytest.raises(NotFoundError):
        services.leases.create_lease(db_session, world.admin, lease_payload(999_999, world.tenant.id))


def test_store_rejects_second_active_lease_when_app_check_is_bypassed(db_session, world, services, monkeypatch):
    _create(services, db_session, world)

    # simulate a concurrent writer that passed both checks before the first commit landed
    monkeypatch.setattr(lease_repository_module, "ensure_no_active_lease", lambda *a, **k: None)
    monkeypatch.setattr(lease_repository_module, "ensure_unit_leasable", lambda *a, **k: None)

    with pytest.raises(ConflictError) as ei:
        _create(services, db_session, world)
    assert "already has an active lease" in ei.value.message

    n = db_session.scalar(
        select(func.count(Lease.id)).where(Lease.unit_id == world.unit.id, Lease.status == "active")
    )
    assert n == 1


def test_partial_index_allows_many_inactive_leases_per_unit(db_session, world):
    start = today() - timedelta(days=800)
    for i in range(3):
        db_session.add(
            Lease(
                org_id=world.org.id,
                unit_id=world.unit.id,
                tenant_id=world.tenant.id,
                start_date=start + timedelta(days=200 * i),
                end_date=start + timedelta(days=200 * i + 100),
                rent_amount=900.0,
                status="terminated",
            )
        )
    db_session.commit()

    db_session.add_all(
        [
            Lease(
                org_id=world.org.id,
                unit_id=world.unit.id,
                tenant_id=world.tenant.id,
                start_date=today(),
                end_date=today() + timedelta(days=30),
                rent_amount=900.0,
                status="active",
            ),
            Lease(
                org_id=world.org.id,
                unit_id=world.unit.id,
                tenant_id=world.tenant.id,
                start_date=today(),
                end_date=today() + timedelta(days=60),
                rent_amount=900.0,
                status="active",
            ),
        ]
    )
    with pytest.raises(IntegrityError):
        db_session.flush()
    db_session.rollback()


def test_renew_carries_terms_and_links_both_ways(db_session, world, services):
    old = _create(services, db_session, world, rent=1000.0, deposit=2000.0, includes_water=True)
    old_end = old.end_date
    new_end = old_end + timedelta(days=365)

    new = services.leases.renew_lease(db_session, world.admin, old.id, LeaseRenew(new_end_date=new_end))

    old = db_session.get(Lease, old.id)
    assert old.status == "renewed"
    assert old.renewed_to_lease_id == new.id

    assert new.status == "active"
    assert new.renewed_from_lease_id == old.id
    assert new.start_date == old_end
    assert new.end_date == new_end
    assert new.rent_amount == 1000.0
    assert new.deposit_amount == 2000.0
    assert new.includes_water is True
    assert new.unit_id == old.unit_id and new.tenant_id == old.tenant_id
    assert db_session.get(Unit, world.unit.id).status == "occupied"


def test_renew_overrides_rent_and_deposit(db_session, world, services):
    old = _create(services, db_session, world, rent=1000.0, deposit=2000.0)

    new = services.leases.renew_lease(
        db_session,
        world.admin,
        old.id,
        LeaseRenew(
            new_end_date=old.end_date + timedelta(days=180),
            new_rent_amount=1100.0,
            preserve_deposit=False,
            new_deposit_amount=2500.0,
        ),
    )
    assert new.rent_amount == 1100.0
    assert new.deposit_amount == 2500.0


def test_renew_preserve_deposit_ignores_override(db_session, world, services):
    old = _create(services, db_session, world, deposit=2000.0)

    new = services.leases.renew_lease(
        db_session,
        world.admin,
        old.id,
        LeaseRenew(new_end_date=old.end_date + timedelta(days=30), new_deposit_amount=9999.0),
    )
    assert new.deposit_amount == 2000.0


def test_renew_requires_later_end_date(db_session, world, services):
    old = _create(services, db_session, world)

    with pytest.raises(ValidationError):
        services.leases.renew_lease(db_session, world.admin, old.id, LeaseRenew(new_end_date=old.end_date))

    assert db_session.get(Lease, old.id).status == "active"


def test_renew_only_active(db_session, world, services):
    old = _create(services, db_session, world)
    services.leases.terminate_lease(
        db_session, world.admin, old.id, LeaseTerminate(termination_date=today(), termination_reason="moved")
    )

    with pytest.raises(ConflictError) as ei:
        services.leases.renew_lease(
            db_session, world.admin, old.id, LeaseRenew(new_end_date=old.end_date + timedelta(days=90))
        )
    assert ei.value.message == "Only active leases can be renewed"


def test_terminate_with_refund(db_session, world, services):
    lease = _create(services, db_session, world)

    out = services.leases.terminate_lease(
        db_session,
        world.admin,
        lease.id,
        LeaseTerminate(termination_date=today(), termination_reason="job relocation", refund_amount=500.0),
    )

    assert out.status == "terminated"
    assert out.end_date == today()
    assert "Termination reason: job relocation" in (out.notes or "")
    assert db_session.get(Unit, world.unit.id).status == "vacant"

    refunds = db_session.scalars(select(Payment).where(Payment.lease_id == lease.id)).all()
    assert len(refunds) == 1
    r = refunds[0]
    assert (r.type, r.status, r.method, r.amount) == ("refund", "successful", "bank_transfer", 500.0)
    assert r.unit_id == world.unit.id and r.tenant_id == world.tenant.id


def test_terminate_without_refund_creates_no_payment(db_session, world, services):
    lease = _create(services, db_session, world)
    services.leases.terminate_lease(
        db_session, world.admin, lease.id, LeaseTerminate(termination_date=today(), termination_reason="done")
    )
    assert db_session.scalar(select(func.count(Payment.id))) == 0


def test_terminate_only_active(db_session, world, services):
    lease = _create(services, db_session, world)
    body = LeaseTerminate(termination_date=today(), termination_reason="x")
    services.leases.terminate_lease(db_session, world.admin, lease.id, body)

    with pytest.raises(ConflictError) as ei:
        services.leases.terminate_lease(db_session, world.admin, lease.id, body)
    assert ei.value.message == "Only active leases can be terminated"


def test_unit_can_be_leased_again_after_termination(db_session, world, services):
    lease = _create(services, db_session, world)
    services.leases.terminate_lease(
        db_session, world.admin, lease.id, LeaseTerminate(termination_date=today(), termination_reason="x")
    )

    again = _create(services, db_session, world, start=today() + timedelta(days=1))
    assert again.status == "active"


def test_delete_blocked_by_payment(db_session, world, services):
    lease = _create(services, db_session, world)
    db_session.add(
        Payment(
            org_id=world.org.id,
            lease_id=lease.id,
            type="rent",
            status="successful",
            amount=1000.0,
            currency="KES",
        )
    )
    db_session.commit()

    with pytest.raises(ConflictError) as ei:
        services.leases.delete_lease(db_session, world.admin, lease.id)
    assert "associated transactions" in ei.value.message

    assert db_session.get(Lease, lease.id) is not None
    assert db_session.get(Unit, world.unit.id).status == "occupied"


def test_delete_blocked_by_utility_bill(db_session, world, services):
    lease = _create(services, db_session, world)
    db_session.add(
        UtilityBill(
            org_id=world.org.id,
            property_id=world.property.id,
            unit_id=world.unit.id,
            lease_id=lease.id,
            utility_type="water",
            billing_period_start=today() - timedelta(days=30),
            billing_period_end=today(),
            due_date=today() + timedelta(days=10),
            amount=40.0,
        )
    )
    db_session.commit()

    with pytest.raises(ConflictError) as ei:
        services.leases.delete_lease(db_session, world.admin, lease.id)
    assert "associated utility bills" in ei.value.message


def test_delete_vacates_unit_and_clears_renewal_links(db_session, world, services):
    old = _create(services, db_session, world)
    new = services.leases.renew_lease(
        db_session, world.admin, old.id, LeaseRenew(new_end_date=old.end_date + timedelta(days=60))
    )

    services.leases.delete_lease(db_session, world.admin, new.id)

    db_session.expire_all()
    assert db_session.get(Lease, new.id) is None
    assert db_session.get(Lease, old.id).renewed_to_lease_id is None
    assert db_session.get(Unit, world.unit.id).status == "vacant"


def test_update_rejects_status_change_on_terminal_lease(db_session, world, services):
    lease = _create(services, db_session, world)
    services.leases.terminate_lease(
        db_session, world.admin, lease.id, LeaseTerminate(termination_date=today(), termination_reason="x")
    )

    with pytest.raises(ConflictError):
        services.leases.update_lease(db_session, world.admin, lease.id, LeaseUpdate(status="active"))
    with pytest.raises(ConflictError):
        services.leases.update_lease(db_session, world.admin, lease.id, LeaseUpdate(unit_id=world.unit2.id))

    # non-structural edits are still fine
    out = services.leases.update_lease(db_session, world.admin, lease.id, LeaseUpdate(notes="archived"))
    assert out.notes == "archived"


def test_update_moves_lease_to_another_unit(db_session, world, services):
    lease = _create(services, db_session, world)

    out = services.leases.update_lease(db_session, world.admin, lease.id, LeaseUpdate(unit_id=world.unit2.id))

    assert out.unit_id == world.unit2.id
    assert db_session.get(Unit, world.unit.id).status == "vacant"
    assert db_session.get(Unit, world.unit2.id).status == "occupied"


def test_update_move_to_occupied_unit_is_rejected(db_session, world, services):
    lease = _create(services, db_session, world)
    _create(services, db_session, world, unit=world.unit2)

    with pytest.raises(ConflictError) as ei:
        services.leases.update_lease(db_session, world.admin, lease.id, LeaseUpdate(unit_id=world.unit2.id))
    assert ei.value.message.startswith("New unit")


def test_update_status_expired_vacates_unit(db_session, world, services):
    lease = _create(services, db_session, world)
    services.leases.update_lease(db_session, world.admin, lease.id, LeaseUpdate(status="expired"))
    assert db_session.get(Unit, world.unit.id).status == "vacant"


def test_update_fixed_amount_rule_checked_against_merged_row(db_session, world, services):
    lease = _create(services, db_session, world)

    with pytest.raises(ValidationError):
        services.leases.update_lease(
            db_session, world.admin, lease.id, LeaseUpdate(water_billing_type="fixed_amount")
        )

    out = services.leases.update_lease(
        db_session,
        world.admin,
        lease.id,
        LeaseUpdate(water_billing_type="fixed_amount", water_fixed_amount=30.0),
    )
    assert out.water_fixed_amount == 30.0


def test_lease_stats(db_session, world, services):
    soon = today() + timedelta(days=10)
    _create(services, db_session, world, start=today() - timedelta(days=300), end=soon, rent=1000.0)
    second = _create(services, db_session, world, unit=world.unit2, rent=3000.0, payment_frequency="weekly")
    services.leases.terminate_lease(
        db_session, world.admin, second.id, LeaseTerminate(termination_date=today(), termination_reason="x")
    )

    stats = services.leases.get_lease_stats(db_session, world.admin)
    assert stats["total_leases"] == 2
    assert stats["active_leases"] == 1
    assert stats["expiring_next_30_days"] == 1
    assert {s["status"]: s["count"] for s in stats["leases_by_status"]} == {"active": 1, "terminated": 1}
    assert stats["average_rent"] == 1000.0
    assert stats["total_monthly_rent"] == 1000.0


def test_lease_stats_for_property_without_units(db_session, world, services):
    from app.models import Property

    empty = Property(org_id=world.org.id, name="Empty Lot")
    db_session.add(empty)
    db_session.commit()

    stats = services.leases.get_lease_stats(db_session, world.admin, property_id=empty.id)
    assert stats == {
        "total_leases": 0,
        "active_leases": 0,
        "expiring_next_30_days": 0,
        "leases_by_status": [],
        "average_rent": 0.0,
        "total_monthly_rent": 0.0,
    }


def test_expiring_leases_window_and_order(db_session, world, services):
    late = _create(services, db_session, world, start=today() - timedelta(days=100), end=today() + timedelta(days=20))
    early = _create(
        services, db_session, world, unit=world.unit2, start=today() - timedelta(days=100), end=today() + timedelta(days=5)
    )

    rows = services.leases.get_expiring_leases(db_session, world.admin, 30)
    assert [r.id for r in rows] == [early.id, late.id]

    assert [r.id for r in services.leases.get_expiring_leases(db_session, world.admin, 7)] == [early.id]

    # scheduler form: no org filter
    all_orgs = services.lease_repository.find_expiring_leases(db_session, 30)
    assert {r.id for r in all_orgs} == {early.id, late.id}


def _lease_row(world, **kw) -> Lease:
    fields = {
        "org_id": world.org.id,
        "unit_id": world.unit.id,
        "tenant_id": world.tenant.id,
        "start_date": today(),
        "end_date": today() + timedelta(days=60),
        "rent_amount": 900.0,
        "status": "active",
    }
    fields.update(kw)
    return Lease(**fields)


def test_only_the_active_lease_index_reads_as_a_conflict(db_session, world):
    db_session.add(_lease_row(world, unit_id=None, status="pending"))
    with pytest.raises(IntegrityError) as not_null:
        db_session.flush()
    db_session.rollback()

    db_session.add_all([_lease_row(world), _lease_row(world)])
    with pytest.raises(IntegrityError) as duplicate:
        db_session.flush()
    db_session.rollback()

    pg = IntegrityError(
        "INSERT INTO leases ...",
        {},
        Exception('duplicate key value violates unique constraint "uq_leases_one_active_per_unit"'),
    )

    assert not _is_active_lease_violation(not_null.value)
    assert _is_active_lease_violation(duplicate.value)
    assert _is_active_lease_violation(pg)


def test_null_unit_reaching_the_store_is_not_reported_as_double_booking(db_session, world, services):
    lease = _create(services, db_session, world)

    with pytest.raises(IntegrityError):
        services.lease_repository.update(db_session, lease.id, {"unit_id": None}, actor_user_id=world.admin.user_id)

    db_session.expire_all()
    assert db_session.get(Lease, lease.id).unit_id == world.unit.id


def test_list_pages_follow_configured_page_size(db_session, world, services, monkeypatch):
    from app.config import settings

    _create(services, db_session, world)
    _create(services, db_session, world, unit=world.unit2)
    monkeypatch.setattr(settings, "default_page_size", 1)

    out = services.leases.list_leases(db_session, world.admin, {})

    assert out["total"] == 2
    assert out["pages"] == 2
    assert len(out["leases"]) == 1
