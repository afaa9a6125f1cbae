# backend/app/cli/seed_demo.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.db import SessionLocal
from app.models import Organization, AppUser, OrgMembership, Property, Unit, Tenant


@dataclass(frozen=True)
class SeedResult:
    org_slug: str
    user_email: str
    property_id: Optional[int]
    unit_ids: tuple[int, ...]
    tenant_id: Optional[int]


def _get_or_create_org(db: Session, slug: str, name: str) -> Organization:
    row = db.scalar(select(Organization).where(Organization.slug == slug))
    if row:
        return row
    row = Organization(slug=slug, name=name)
    db.add(row)
    db.commit()
    return row


def _get_or_create_user(db: Session, email: str, display_name: str) -> AppUser:
    row = db.scalar(select(AppUser).where(AppUser.email == email))
    if row:
        return row
    row = AppUser(email=email, display_name=display_name)
    db.add(row)
    db.commit()
    return row


def _ensure_membership(db: Session, org_id: int, user_id: int, role: str = "ADMIN") -> None:
    existing = db.scalar(
        select(OrgMembership).where(OrgMembership.org_id == int(org_id), OrgMembership.user_id == int(user_id))
    )
    if existing:
        return
    db.add(OrgMembership(org_id=int(org_id), user_id=int(user_id), role=str(role)))
    db.commit()


def seed_demo(
    *,
    org_slug: str = "demo",
    org_name: str = "demo",
    user_email: str = "admin@demo.local",
    user_name: str = "Admin",
    units: int = 3,
    create_sample_property: bool = True,
) -> SeedResult:
    """Idempotent: re-running returns the existing demo property instead of adding another."""
    db = SessionLocal()
    try:
        org = _get_or_create_org(db, org_slug, org_name)
        user = _get_or_create_user(db, user_email, user_name)
        _ensure_membership(db, org.id, user.id, role="ADMIN")

        if not create_sample_property:
            return SeedResult(org_slug=org_slug, user_email=user_email, property_id=None, unit_ids=(), tenant_id=None)

        prop = db.scalar(select(Property).where(Property.org_id == org.id).order_by(Property.id).limit(1))
        if prop is None:
            prop = Property(org_id=org.id, name="Riverside Court", address="12 River Rd")
            db.add(prop)
            db.flush()
            for i in range(1, max(units, 1) + 1):
                db.add(Unit(org_id=org.id, property_id=prop.id, name=f"A{i}", status="vacant"))
            db.add(Tenant(org_id=org.id, name="Demo Tenant", email="tenant@demo.local"))
            db.commit()

        unit_ids = tuple(db.scalars(select(Unit.id).where(Unit.property_id == prop.id).order_by(Unit.id)).all())
        tenant_id = db.scalar(select(Tenant.id).where(Tenant.org_id == org.id).order_by(Tenant.id).limit(1))
        return SeedResult(
            org_slug=org_slug,
            user_email=user_email,
            property_id=int(prop.id),
            unit_ids=unit_ids,
            tenant_id=tenant_id,
        )
    finally:
        db.close()
