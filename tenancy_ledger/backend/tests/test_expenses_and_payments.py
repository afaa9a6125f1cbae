# backend/tests/test_expenses_and_payments.py
from __future__ import annotations

from datetime import date, datetime

import pytest
from sqlalchemy import func, select

from app.errors import AuthorizationError
from app.models import Expense, Payment
from app.schemas import ExpenseCreate, ExpenseUpdate, PaymentCreate, PaymentUpdate
from app.services import expenses_service as expenses_module


def _expense(world, **kw) -> ExpenseCreate:
    body = {
        "property_id": world.property.id,
        "category": "maintenance_repair",
        "amount": 300.0,
        "expense_date": date(2026, 3, 10),
        "description": "Roof patch",
        "vendor": "Nairobi Roofing",
    }
    body.update(kw)
    return ExpenseCreate(**body)


def test_expense_without_mirror(db_session, world, services):
    e = services.expenses.create_expense(db_session, world.admin, _expense(world))

    assert e.payment_id is None
    assert e.recorded_by == world.admin.user_id
    assert db_session.scalar(select(func.count(Payment.id))) == 0


def test_expense_with_mirrored_payment(db_session, world, services):
    e = services.expenses.create_expense(db_session, world.admin, _expense(world, create_payment=True))

    p = db_session.get(Payment, e.payment_id)
    assert p is not None
    assert (p.type, p.status, p.method) == ("expense_reimbursement", "successful", "other")
    assert p.amount == 300.0
    assert p.currency == "KES"
    assert p.property_id == world.property.id


def test_mirrored_payment_rolls_back_with_expense(db_session, world, services, monkeypatch):
    def boom(*a, **k):
        raise RuntimeError("audit store unavailable")

    monkeypatch.setattr(expenses_module, "audit_write", boom)

    with pytest.raises(RuntimeError):
        services.expenses.create_expense(db_session, world.admin, _expense(world, create_payment=True))

    assert db_session.scalar(select(func.count(Payment.id))) == 0
    assert db_session.scalar(select(func.count(Expense.id))) == 0


def test_delete_expense_removes_mirrored_payment(db_session, world, services):
    e = services.expenses.create_expense(db_session, world.admin, _expense(world, create_payment=True))
    payment_id = e.payment_id

    services.expenses.delete_expense(db_session, world.admin, e.id)

    db_session.expire_all()
    assert db_session.get(Expense, e.id) is None
    assert db_session.get(Payment, payment_id) is None


def test_update_expense(db_session, world, services):
    e = services.expenses.create_expense(db_session, world.admin, _expense(world))
    out = services.expenses.update_expense(db_session, world.admin, e.id, ExpenseUpdate(amount=320.0))
    assert out.amount == 320.0
    assert out.description == "Roof patch"


def test_expense_for_other_org_property_is_blocked(db_session, world, services):
    with pytest.raises(AuthorizationError):
        services.expenses.create_expense(db_session, world.admin, _expense(world, property_id=world.other_property.id))


def test_create_payment_defaults(db_session, world, services):
    p = services.payments.create_payment(
        db_session,
        world.admin,
        PaymentCreate(property_id=world.property.id, type="rent", method="mpesa", amount=1000.0),
    )

    assert p.status == "pending"
    assert p.currency == "KES"
    assert p.transaction_date is not None
    assert p.recorded_by == world.admin.user_id


def test_payment_update_and_delete(db_session, world, services):
    p = services.payments.create_payment(
        db_session,
        world.admin,
        PaymentCreate(property_id=world.property.id, type="rent", method="cash", amount=900.0),
    )
    p = services.payments.update_payment(db_session, world.admin, p.id, PaymentUpdate(status="successful"))
    assert p.status == "successful"

    services.payments.delete_payment(db_session, world.admin, p.id)
    db_session.expire_all()
    assert db_session.get(Payment, p.id) is None


def test_payment_lists_are_scoped(db_session, world, services):
    services.payments.create_payment(
        db_session,
        world.admin,
        PaymentCreate(property_id=world.property.id, tenant_id=world.tenant.id, type="rent", method="cash", amount=5.0),
    )

    assert len(services.payments.get_payments_by_organization(db_session, world.admin)) == 1
    assert len(services.payments.get_payments_by_property(db_session, world.admin, world.property.id)) == 1
    assert len(services.payments.get_payments_by_tenant(db_session, world.admin, world.tenant.id)) == 1
    with pytest.raises(AuthorizationError):
        services.payments.get_payments_by_property(db_session, world.admin, world.other_property.id)


def test_property_income_counts_successful_in_window(db_session, world, services):
    def add(amount, when, status="successful", ptype="rent"):
        db_session.add(
            Payment(
                org_id=world.org.id,
                property_id=world.property.id,
                type=ptype,
                status=status,
                amount=amount,
                currency="KES",
                transaction_date=when,
            )
        )

    add(1000.0, datetime(2026, 3, 5, 9, 0))
    add(50.0, datetime(2026, 3, 31, 23, 30), ptype="deposit")  # end date counts through end of day
    add(700.0, datetime(2026, 3, 6), status="pending")
    add(400.0, datetime(2026, 4, 1, 0, 0))
    db_session.commit()

    income = services.payments.get_property_income(db_session, world.property.id, date(2026, 3, 1), date(2026, 3, 31), world.org.id)
    assert income == 1050.0


@pytest.mark.parametrize("role", ["AGENT", "TENANT", "VIEWER"])
def test_ledger_writes_need_manager_role(db_session, world, services, role):
    who = world.as_role(role)

    with pytest.raises(AuthorizationError):
        services.expenses.create_expense(db_session, who, _expense(world, create_payment=True))
    with pytest.raises(AuthorizationError):
        services.payments.create_payment(
            db_session, who, PaymentCreate(property_id=world.property.id, type="rent", method="cash", amount=10.0)
        )

    assert db_session.scalar(select(func.count(Payment.id))) == 0
    assert db_session.scalar(select(func.count(Expense.id))) == 0


def test_landlord_may_write_and_agent_may_only_read(db_session, world, services):
    e = services.expenses.create_expense(db_session, world.as_role("LANDLORD"), _expense(world))
    agent = world.as_role("AGENT")

    assert [x.id for x in services.expenses.get_expenses_by_property(db_session, agent, world.property.id)] == [e.id]
    with pytest.raises(AuthorizationError):
        services.expenses.update_expense(db_session, agent, e.id, ExpenseUpdate(amount=1.0))
    with pytest.raises(AuthorizationError):
        services.expenses.delete_expense(db_session, agent, e.id)


@pytest.mark.parametrize("role", ["TENANT", "VIEWER"])
def test_ledger_reads_need_staff_role(db_session, world, services, role):
    who = world.as_role(role)
    with pytest.raises(AuthorizationError):
        services.payments.get_payments_by_organization(db_session, who)
    with pytest.raises(AuthorizationError):
        services.expenses.get_expenses_by_organization(db_session, who)
