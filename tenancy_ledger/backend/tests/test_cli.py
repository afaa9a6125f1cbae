# backend/tests/test_cli.py
from __future__ import annotations

import json
from datetime import timedelta

import pytest

import app.cli.__main__ as cli
from app.domain.dates import today
from conftest import lease_payload


@pytest.fixture(autouse=True)
def _quiet_logging(monkeypatch):
    # the JSON handler would otherwise bind to the captured stdout
    monkeypatch.setattr(cli, "configure_logging", lambda: None)


def _json_lines(out: str) -> list[dict]:
    return [json.loads(x) for x in out.splitlines() if x.strip().startswith("{")]


def test_parser_defaults():
    args = cli.build_parser().parse_args(["expiring-leases"])
    assert args.days == 30
    assert args.org_id is None


def test_expiring_leases_prints_json_lines(db_session, world, services, capsys):
    soon = services.leases.create_lease(
        db_session,
        world.admin,
        lease_payload(world.unit.id, world.tenant.id, start=today() - timedelta(days=300), end=today() + timedelta(days=5)),
    )
    services.leases.create_lease(
        db_session,
        world.admin,
        lease_payload(world.unit2.id, world.tenant.id, start=today() - timedelta(days=10), end=today() + timedelta(days=200)),
    )

    assert cli.main(["expiring-leases", "--days", "10"]) == 0

    lines = _json_lines(capsys.readouterr().out)
    assert [x["lease_id"] for x in lines] == [soon.id]
    assert lines[0]["days_left"] == 5


def test_mark_overdue_bills_command(db_session, world, capsys):
    assert cli.main(["mark-overdue-bills", "--org-id", str(world.org.id)]) == 0
    assert _json_lines(capsys.readouterr().out) == [{"ok": True, "marked_overdue": 0}]


def test_seed_demo_is_idempotent(db_session):
    from app.cli.seed_demo import seed_demo

    first = seed_demo(org_slug="demo", units=2)
    again = seed_demo(org_slug="demo", units=2)

    assert again.property_id == first.property_id
    assert len(first.unit_ids) == 2
    assert first.tenant_id is not None
