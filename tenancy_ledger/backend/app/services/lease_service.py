from __future__ import annotations

import logging
import math
from typing import Any, Optional

from sqlalchemy.orm import Session

from app.auth import Principal
from app.clients.documents import LeaseDocumentGenerator
from app.config import settings
from app.db import atomic
from app.errors import NotFoundError
from app.models import Lease, Unit
from app.schemas import LeaseCreate, LeaseRenew, LeaseTerminate, LeaseUpdate
from app.services.guard import AuthorizationGuard
from app.services.lease_repository import LeaseRepository
from app.services.ownership import must_get_owned, must_get_property, must_get_tenant, must_get_unit

log = logging.getLogger(__name__)

CREATE_ROLES = ("ADMIN", "LANDLORD", "AGENT")
UPDATE_ROLES = ("ADMIN", "LANDLORD", "AGENT")
TERMINATE_ROLES = ("ADMIN", "LANDLORD")
RENEW_ROLES = ("ADMIN", "LANDLORD", "AGENT")
DELETE_ROLES = ("ADMIN",)


class LeaseService:
    """
    Role checks, organization scoping and document generation around the
    lease repository. Holds no per-request state.
    """

    def __init__(
        self,
        repository: LeaseRepository,
        guard: AuthorizationGuard,
        documents: LeaseDocumentGenerator,
    ) -> None:
        self.repository = repository
        self.guard = guard
        self.documents = documents

    # -------------------- reads --------------------

    def list_leases(self, db: Session, principal: Principal, filters: dict[str, Any]) -> dict[str, Any]:
        leases = self.repository.find_all(db, org_id=principal.org_id, filters=filters)
        total = self.repository.count(db, org_id=principal.org_id, filters=filters)
        limit = min(int(filters.get("limit") or settings.default_page_size), settings.max_page_size)
        return {"leases": leases, "total": total, "pages": math.ceil(total / limit) if total else 0}

    def get_lease(self, db: Session, principal: Principal, lease_id: int) -> Lease:
        lease = self.repository.find_by_id(db, lease_id)
        if lease is None:
            raise NotFoundError("Lease not found")
        self.guard.require_organization_match(lease, principal)
        return lease

    def get_lease_with_transactions(self, db: Session, principal: Principal, lease_id: int) -> dict[str, Any]:
        self.get_lease(db, principal, lease_id)
        return self.repository.find_with_transactions(db, lease_id)

    def get_leases_by_tenant(self, db: Session, principal: Principal, tenant_id: int) -> list[Lease]:
        must_get_tenant(db, self.guard, principal, tenant_id)
        return self.repository.find_by_tenant_id(db, tenant_id)

    def get_active_lease_for_tenant(self, db: Session, principal: Principal, tenant_id: int) -> Optional[Lease]:
        must_get_tenant(db, self.guard, principal, tenant_id)
        return self.repository.find_active_lease_for_tenant(db, tenant_id)

    def get_leases_by_unit(self, db: Session, principal: Principal, unit_id: int) -> list[Lease]:
        must_get_unit(db, self.guard, principal, unit_id)
        return self.repository.find_by_unit_id(db, unit_id)

    def get_active_lease_for_unit(self, db: Session, principal: Principal, unit_id: int) -> Optional[Lease]:
        must_get_unit(db, self.guard, principal, unit_id)
        return self.repository.find_active_lease_for_unit(db, unit_id)

    def get_leases_by_property(self, db: Session, principal: Principal, property_id: int) -> list[Lease]:
        must_get_property(db, self.guard, principal, property_id)
        return self.repository.find_by_property_id(db, property_id)

    def get_lease_stats(self, db: Session, principal: Principal, property_id: Optional[int] = None) -> dict[str, Any]:
        if property_id is not None:
            must_get_property(db, self.guard, principal, property_id)
        return self.repository.get_lease_stats(db, org_id=principal.org_id, property_id=property_id)

    def get_expiring_leases(self, db: Session, principal: Principal, days_ahead: int) -> list[Lease]:
        return self.repository.find_expiring_leases(db, days_ahead, org_id=principal.org_id)

    # -------------------- writes --------------------

    def create_lease(self, db: Session, principal: Principal, payload: LeaseCreate) -> Lease:
        self.guard.require_role(principal, CREATE_ROLES, message="You don't have permission to create leases")
        must_get_unit(db, self.guard, principal, payload.unit_id)
        must_get_tenant(db, self.guard, principal, payload.tenant_id)

        lease = self.repository.create(
            db, org_id=principal.org_id, created_by=principal.user_id, data=payload.model_dump()
        )
        self._attach_document(db, lease)
        return lease

    def update_lease(self, db: Session, principal: Principal, lease_id: int, payload: LeaseUpdate) -> Lease:
        self.guard.require_role(principal, UPDATE_ROLES, message="You don't have permission to update leases")
        self.get_lease(db, principal, lease_id)

        patch = payload.model_dump(exclude_unset=True)
        if patch.get("unit_id") is not None:
            unit = db.get(Unit, int(patch["unit_id"]))
            if unit is not None:
                self.guard.require_organization_match(unit, principal)
        if patch.get("tenant_id") is not None:
            must_get_tenant(db, self.guard, principal, patch["tenant_id"])

        return self.repository.update(db, lease_id, patch, actor_user_id=principal.user_id)

    def terminate_lease(self, db: Session, principal: Principal, lease_id: int, payload: LeaseTerminate) -> Lease:
        self.guard.require_role(principal, TERMINATE_ROLES, message="You don't have permission to terminate leases")
        self.get_lease(db, principal, lease_id)
        return self.repository.terminate(
            db,
            lease_id,
            termination_date=payload.termination_date,
            reason=payload.termination_reason,
            refund_amount=payload.refund_amount,
            actor_user_id=principal.user_id,
        )

    def renew_lease(self, db: Session, principal: Principal, lease_id: int, payload: LeaseRenew) -> Lease:
        self.guard.require_role(principal, RENEW_ROLES, message="You don't have permission to renew leases")
        self.get_lease(db, principal, lease_id)

        successor = self.repository.renew(
            db,
            lease_id,
            new_end_date=payload.new_end_date,
            new_rent_amount=payload.new_rent_amount,
            preserve_deposit=payload.preserve_deposit,
            new_deposit_amount=payload.new_deposit_amount,
            actor_user_id=principal.user_id,
        )
        if payload.generate_document:
            self._attach_document(db, successor)
        return successor

    def delete_lease(self, db: Session, principal: Principal, lease_id: int) -> None:
        self.guard.require_role(principal, DELETE_ROLES, message="Only administrators can delete leases")
        must_get_owned(db, self.guard, principal, Lease, lease_id, action="delete")
        self.repository.delete(db, lease_id, actor_user_id=principal.user_id)

    def _attach_document(self, db: Session, lease: Lease) -> None:
        """Best-effort: the lease stands even when no document can be produced."""
        try:
            url = self.documents.generate(lease)
            with atomic(db):
                lease.document_url = url
        except Exception as e:
            log.warning(
                "lease document generation failed: %s",
                e,
                extra={"org_id": lease.org_id, "lease_id": lease.id},
                exc_info=True,
            )
