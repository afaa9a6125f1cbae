# backend/tests/conftest.py
from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional

import pytest

# must be set before app.config is imported anywhere
_TMP = tempfile.mkdtemp(prefix="tenancy_ledger_tests_")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP, 'test.db')}"
os.environ["AUTH_MODE"] = "dev"
os.environ.pop("DOCUMENT_SERVICE_URL", None)

from app.auth import Principal  # noqa: E402
from app.db import Base, SessionLocal, engine  # noqa: E402
from app.domain.dates import today  # noqa: E402
from app import models  # noqa: E402,F401
from app.models import AppUser, OrgMembership, Organization, Property, Tenant, Unit  # noqa: E402
from app.schemas import LeaseCreate  # noqa: E402
from app.services.container import ServiceContainer  # noqa: E402


class FakeDocuments:
    """Stands in for the HTTP document service."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.calls: list[int] = []

    def generate(self, lease) -> str:
        self.calls.append(int(lease.id))
        if self.fail:
            raise RuntimeError("document service down")
        return f"https://docs.test/leases/{lease.id}.pdf"


@dataclass
class World:
    org: Organization
    other_org: Organization
    admin: Principal
    property: Property
    unit: Unit
    unit2: Unit
    tenant: Tenant
    other_property: Property
    other_unit: Unit
    other_tenant: Tenant

    def as_role(self, role: str) -> Principal:
        return Principal(
            org_id=self.admin.org_id,
            org_slug=self.admin.org_slug,
            user_id=self.admin.user_id,
            email=self.admin.email,
            role=role,
        )


@pytest.fixture()
def db_session():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def documents() -> FakeDocuments:
    return FakeDocuments()


@pytest.fixture()
def services(documents) -> ServiceContainer:
    return ServiceContainer.build(documents=documents)


def _mk_org(db, slug: str) -> Organization:
    org = Organization(slug=slug, name=slug.upper())
    db.add(org)
    db.flush()
    return org


@pytest.fixture()
def world(db_session) -> World:
    db = db_session
    org = _mk_org(db, "acme")
    other = _mk_org(db, "globex")

    user = AppUser(email="admin@acme.test", display_name="admin")
    db.add(user)
    db.flush()
    db.add(OrgMembership(org_id=org.id, user_id=user.id, role="ADMIN"))

    prop = Property(org_id=org.id, name="Riverside Court", address="12 River Rd")
    other_prop = Property(org_id=other.id, name="Globex Tower", address="1 Globex Way")
    db.add_all([prop, other_prop])
    db.flush()

    unit = Unit(org_id=org.id, property_id=prop.id, name="A1", status="vacant")
    unit2 = Unit(org_id=org.id, property_id=prop.id, name="A2", status="vacant")
    other_unit = Unit(org_id=other.id, property_id=other_prop.id, name="G1", status="vacant")
    tenant = Tenant(org_id=org.id, name="Jane Wanjiru", email="jane@tenant.test")
    other_tenant = Tenant(org_id=other.id, name="Hank Scorpio")
    db.add_all([unit, unit2, other_unit, tenant, other_tenant])
    db.commit()

    admin = Principal(org_id=org.id, org_slug=org.slug, user_id=user.id, email=user.email, role="ADMIN")
    return World(
        org=org,
        other_org=other,
        admin=admin,
        property=prop,
        unit=unit,
        unit2=unit2,
        tenant=tenant,
        other_property=other_prop,
        other_unit=other_unit,
        other_tenant=other_tenant,
    )


def lease_payload(
    unit_id: int,
    tenant_id: int,
    *,
    start: Optional[date] = None,
    end: Optional[date] = None,
    rent: float = 1000.0,
    deposit: float = 2000.0,
    **extra,
) -> LeaseCreate:
    start = start or today() - timedelta(days=30)
    end = end or start + timedelta(days=365)
    return LeaseCreate(
        unit_id=unit_id,
        tenant_id=tenant_id,
        start_date=start,
        end_date=end,
        rent_amount=rent,
        deposit_amount=deposit,
        **extra,
    )
