# backend/app/cli/__main__.py
from __future__ import annotations

import argparse
import json
from typing import Optional, Sequence

from app.cli.seed_demo import seed_demo
from app.db import Base, SessionLocal, engine
from app.domain.dates import today
from app.logging_config import configure_logging
from app.services.container import ServiceContainer


def _cmd_expiring(args: argparse.Namespace, services: ServiceContainer) -> int:
    db = SessionLocal()
    try:
        leases = services.lease_repository.find_expiring_leases(db, args.days, org_id=args.org_id)
        for lease in leases:
            print(
                json.dumps(
                    {
                        "lease_id": lease.id,
                        "org_id": lease.org_id,
                        "unit_id": lease.unit_id,
                        "tenant_id": lease.tenant_id,
                        "end_date": lease.end_date.isoformat(),
                        "days_left": (lease.end_date - today()).days,
                    }
                )
            )
        return 0
    finally:
        db.close()


def _cmd_mark_overdue(args: argparse.Namespace, services: ServiceContainer) -> int:
    db = SessionLocal()
    try:
        changed = services.utility_bills.mark_overdue_bills(db, today(), org_id=args.org_id)
        print(json.dumps({"ok": True, "marked_overdue": changed}))
        return 0
    finally:
        db.close()


def _cmd_init_db(args: argparse.Namespace, services: ServiceContainer) -> int:
    # local development only; deployed databases go through alembic
    import app.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    print(json.dumps({"ok": True}))
    return 0


def _cmd_seed_demo(args: argparse.Namespace, services: ServiceContainer) -> int:
    out = seed_demo(
        org_slug=args.org_slug,
        org_name=args.org_name,
        user_email=args.user_email,
        user_name=args.user_name,
        units=args.units,
        create_sample_property=(not args.no_sample_property),
    )
    print(
        json.dumps(
            {
                "ok": True,
                "org_slug": out.org_slug,
                "user_email": out.user_email,
                "sample_property_id": out.property_id,
                "unit_ids": list(out.unit_ids),
                "tenant_id": out.tenant_id,
            }
        )
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="python -m app.cli")
    sub = p.add_subparsers(dest="command", required=True)

    exp = sub.add_parser("expiring-leases", help="print active leases ending soon, one JSON object per line")
    exp.add_argument("--days", type=int, default=30)
    exp.add_argument("--org-id", type=int, default=None)
    exp.set_defaults(func=_cmd_expiring)

    od = sub.add_parser("mark-overdue-bills", help="flip due utility bills past their due date to overdue")
    od.add_argument("--org-id", type=int, default=None)
    od.set_defaults(func=_cmd_mark_overdue)

    init = sub.add_parser("init-db", help="create all tables from the ORM metadata")
    init.set_defaults(func=_cmd_init_db)

    seed = sub.add_parser("seed-demo", help="create a demo org, admin user, property, units and tenant")
    seed.add_argument("--org-slug", default="demo")
    seed.add_argument("--org-name", default="demo")
    seed.add_argument("--user-email", default="admin@demo.local")
    seed.add_argument("--user-name", default="Admin")
    seed.add_argument("--units", type=int, default=3)
    seed.add_argument("--no-sample-property", action="store_true")
    seed.set_defaults(func=_cmd_seed_demo)
    return p


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging()
    return int(args.func(args, ServiceContainer.build()))


if __name__ == "__main__":
    raise SystemExit(main())
