# backend/tests/test_lease_access.py
from __future__ import annotations

from datetime import timedelta

import pytest

from app.auth import Principal
from app.domain.dates import today
from app.errors import AuthorizationError
from app.models import Lease
from app.schemas import LeaseRenew, LeaseTerminate, LeaseUpdate
from app.services.container import ServiceContainer
from conftest import FakeDocuments, lease_payload


def _outsider(world) -> Principal:
    return Principal(org_id=world.other_org.id, org_slug="globex", user_id=world.admin.user_id, email="x@globex.test", role="ADMIN")


def test_cross_org_lease_read_is_blocked(db_session, world, services):
    lease = services.leases.create_lease(db_session, world.admin, lease_payload(world.unit.id, world.tenant.id))

    with pytest.raises(AuthorizationError) as ei:
        services.leases.get_lease(db_session, _outsider(world), lease.id)
    assert "permission" in ei.value.message


def test_cross_org_unit_cannot_be_leased(db_session, world, services):
    with pytest.raises(AuthorizationError):
        services.leases.create_lease(db_session, world.admin, lease_payload(world.other_unit.id, world.tenant.id))
    with pytest.raises(AuthorizationError):
        services.leases.create_lease(db_session, world.admin, lease_payload(world.unit.id, world.other_tenant.id))


def test_cross_org_mutations_are_blocked(db_session, world, services):
    lease = services.leases.create_lease(db_session, world.admin, lease_payload(world.unit.id, world.tenant.id))
    outsider = _outsider(world)

    with pytest.raises(AuthorizationError):
        services.leases.update_lease(db_session, outsider, lease.id, LeaseUpdate(notes="hijack"))
    with pytest.raises(AuthorizationError):
        services.leases.terminate_lease(
            db_session, outsider, lease.id, LeaseTerminate(termination_date=today(), termination_reason="x")
        )
    with pytest.raises(AuthorizationError):
        services.leases.delete_lease(db_session, outsider, lease.id)

    assert db_session.get(Lease, lease.id).status == "active"


def test_list_is_scoped_to_caller_org(db_session, world, services):
    services.leases.create_lease(db_session, world.admin, lease_payload(world.unit.id, world.tenant.id))

    mine = services.leases.list_leases(db_session, world.admin, {"page": 1, "limit": 20})
    theirs = services.leases.list_leases(db_session, _outsider(world), {"page": 1, "limit": 20})

    assert mine["total"] == 1 and mine["pages"] == 1
    assert theirs == {"leases": [], "total": 0, "pages": 0}


def test_list_search_and_filters(db_session, world, services):
    services.leases.create_lease(db_session, world.admin, lease_payload(world.unit.id, world.tenant.id))

    hit = services.leases.list_leases(db_session, world.admin, {"search": "wanjiru", "limit": 20})
    miss = services.leases.list_leases(db_session, world.admin, {"search": "nobody", "limit": 20})
    by_prop = services.leases.list_leases(db_session, world.admin, {"property_id": world.property.id, "limit": 20})

    assert hit["total"] == 1
    assert miss["total"] == 0
    assert by_prop["total"] == 1


@pytest.mark.parametrize("role", ["TENANT", "VIEWER"])
def test_create_requires_manager_role(db_session, world, services, role):
    with pytest.raises(AuthorizationError):
        services.leases.create_lease(db_session, world.as_role(role), lease_payload(world.unit.id, world.tenant.id))


def test_agent_cannot_terminate_or_delete(db_session, world, services):
    lease = services.leases.create_lease(db_session, world.as_role("AGENT"), lease_payload(world.unit.id, world.tenant.id))

    with pytest.raises(AuthorizationError):
        services.leases.terminate_lease(
            db_session, world.as_role("AGENT"), lease.id, LeaseTerminate(termination_date=today(), termination_reason="x")
        )
    with pytest.raises(AuthorizationError):
        services.leases.delete_lease(db_session, world.as_role("AGENT"), lease.id)

    # agents may renew
    new = services.leases.renew_lease(
        db_session, world.as_role("AGENT"), lease.id, LeaseRenew(new_end_date=lease.end_date + timedelta(days=30))
    )
    assert new.status == "active"


def test_landlord_cannot_delete(db_session, world, services):
    lease = services.leases.create_lease(db_session, world.admin, lease_payload(world.unit.id, world.tenant.id))
    with pytest.raises(AuthorizationError):
        services.leases.delete_lease(db_session, world.as_role("LANDLORD"), lease.id)


def test_viewer_can_read(db_session, world, services):
    lease = services.leases.create_lease(db_session, world.admin, lease_payload(world.unit.id, world.tenant.id))
    viewer = world.as_role("VIEWER")

    assert services.leases.get_lease(db_session, viewer, lease.id).id == lease.id
    assert services.leases.get_active_lease_for_unit(db_session, viewer, world.unit.id).id == lease.id
    assert [x.id for x in services.leases.get_leases_by_tenant(db_session, viewer, world.tenant.id)] == [lease.id]


def test_document_url_stored_after_create(db_session, world, services, documents):
    lease = services.leases.create_lease(db_session, world.admin, lease_payload(world.unit.id, world.tenant.id))

    assert documents.calls == [lease.id]
    assert db_session.get(Lease, lease.id).document_url == f"https://docs.test/leases/{lease.id}.pdf"


def test_document_failure_does_not_undo_create(db_session, world, caplog):
    services = ServiceContainer.build(documents=FakeDocuments(fail=True))

    with caplog.at_level("WARNING"):
        lease = services.leases.create_lease(db_session, world.admin, lease_payload(world.unit.id, world.tenant.id))

    db_session.expire_all()
    row = db_session.get(Lease, lease.id)
    assert row.status == "active"
    assert row.document_url is None
    assert any("document generation failed" in r.getMessage() for r in caplog.records)


def test_renew_without_document(db_session, world, services, documents):
    lease = services.leases.create_lease(db_session, world.admin, lease_payload(world.unit.id, world.tenant.id))
    new = services.leases.renew_lease(
        db_session,
        world.admin,
        lease.id,
        LeaseRenew(new_end_date=lease.end_date + timedelta(days=30), generate_document=False),
    )

    assert documents.calls == [lease.id]
    assert new.document_url is None
