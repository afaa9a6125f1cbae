# backend/app/services/guard.py
from __future__ import annotations

import logging
from typing import Any, Iterable

from ..auth import Principal
from ..errors import AuthorizationError

log = logging.getLogger(__name__)

# Ledger access: anyone who manages leases may read the books; only owners and
# admins may write them.
VIEW_FINANCIAL_ROLES = ("ADMIN", "LANDLORD", "AGENT")
MANAGE_FINANCIAL_ROLES = ("ADMIN", "LANDLORD")


class AuthorizationGuard:
    """
    The one place organization scoping and role allow-lists are checked.

    Services receive an instance at construction time and call it after the
    row is fetched and before its data is returned or mutated.
    """

    def require_organization_match(self, resource: Any, principal: Principal, *, action: str = "access") -> Any:
        return self.require_org_id(resource, principal.org_id, action=action, user_id=principal.user_id)

    def require_org_id(
        self,
        resource: Any,
        org_id: int,
        *,
        action: str = "access",
        user_id: int | None = None,
    ) -> Any:
        res_org = getattr(resource, "org_id", None)
        if res_org is None or int(res_org) != int(org_id):
            log.warning("cross-organization access blocked", extra={"org_id": org_id, "user_id": user_id})
            # vague on purpose: do not confirm the row exists elsewhere
            raise AuthorizationError(f"You don't have permission to {action} this resource")
        return resource

    def require_role(self, principal: Principal, allowed_roles: Iterable[str], *, message: str | None = None) -> Principal:
        allowed = {r.upper() for r in allowed_roles}
        if principal.role.upper() not in allowed:
            raise AuthorizationError(message or f"Requires one of roles: {', '.join(sorted(allowed))}")
        return principal
