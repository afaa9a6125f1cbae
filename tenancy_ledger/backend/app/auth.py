# backend/app/auth.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Optional

import jwt
from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy import select
from sqlalchemy.orm import Session

from .config import settings
from .db import get_db
from .domain.dates import utcnow
from .domain.enums import ROLES
from .models import Organization, AppUser, OrgMembership


@dataclass(frozen=True)
class Principal:
    """The resolved caller: every service call is scoped by `org_id`."""

    org_id: int
    org_slug: str
    user_id: int
    email: str
    role: str  # ADMIN | LANDLORD | AGENT | TENANT | VIEWER


def _normalize_role(role: Optional[str], default: str = "VIEWER") -> str:
    r = (role or "").strip().upper()
    return r if r in ROLES else default


# -------------------------
# JWT helpers
# -------------------------
def issue_token(*, user_id: int, ttl: timedelta = timedelta(days=7)) -> str:
    now = utcnow()
    payload: dict[str, Any] = {"sub": str(user_id), "iat": now, "exp": now + ttl}
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def _jwt_verify(token: str) -> dict[str, Any]:
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")


# -------------------------
# Org + membership helpers
# -------------------------
def _resolve_org(db: Session, org_slug: str) -> Organization:
    org = db.scalar(select(Organization).where(Organization.slug == org_slug))
    if org:
        return org
    raise HTTPException(status_code=401, detail="Unknown org")


def _get_membership(db: Session, org_id: int, user_id: int) -> OrgMembership | None:
    return db.scalar(select(OrgMembership).where(OrgMembership.org_id == org_id, OrgMembership.user_id == user_id))


def _principal_from_user(db: Session, *, org_slug: str, user: AppUser) -> Principal:
    org = _resolve_org(db, org_slug=org_slug)
    mem = _get_membership(db, org_id=int(org.id), user_id=int(user.id))
    if mem is None:
        raise HTTPException(status_code=403, detail="Not a member of this org")

    return Principal(
        org_id=int(org.id),
        org_slug=str(org.slug),
        user_id=int(user.id),
        email=str(user.email),
        role=_normalize_role(mem.role),
    )


def _dev_principal(db: Session, request: Request, org_slug: str) -> Principal:
    email = (request.headers.get(settings.dev_header_user_email) or "").strip().lower()
    role_hint = _normalize_role(request.headers.get(settings.dev_header_user_role), default="ADMIN")
    if not email:
        raise HTTPException(status_code=401, detail=f"Missing {settings.dev_header_user_email} for dev auth")

    provision = bool(settings.dev_auto_provision)

    org = db.scalar(select(Organization).where(Organization.slug == org_slug))
    if org is None and provision:
        org = Organization(slug=org_slug, name=org_slug)
        db.add(org)
        db.commit()

    user = db.scalar(select(AppUser).where(AppUser.email == email))
    if user is None and provision:
        user = AppUser(email=email, display_name=email.split("@")[0])
        db.add(user)
        db.commit()

    if org is None or user is None:
        raise HTTPException(status_code=401, detail="Dev auth could not provision user/org")

    mem = _get_membership(db, org_id=int(org.id), user_id=int(user.id))
    if mem is None and provision:
        mem = OrgMembership(org_id=int(org.id), user_id=int(user.id), role=role_hint)
        db.add(mem)
        db.commit()
    if mem is None:
        raise HTTPException(status_code=403, detail="Not a member of this org")

    return Principal(
        org_id=int(org.id),
        org_slug=str(org.slug),
        user_id=int(user.id),
        email=str(user.email),
        role=_normalize_role(mem.role),
    )


def get_principal(
    request: Request,
    db: Session = Depends(get_db),
    x_org_slug: Optional[str] = Header(default=None, alias="X-Org-Slug"),
    authorization: Optional[str] = Header(default=None, alias="Authorization"),
) -> Principal:
    """
    Auth modes supported (in priority order):
      1) JWT cookie (HttpOnly) OR Authorization: Bearer <token>
      2) dev header spoofing (ONLY if settings.auth_mode == "dev")
    """
    org_slug = str(x_org_slug or "").strip()
    if not org_slug:
        raise HTTPException(status_code=401, detail="Missing X-Org-Slug (active org context).")

    token = request.cookies.get(settings.jwt_cookie_name) if settings.jwt_cookie_name else None
    if not token and authorization and str(authorization).lower().startswith("bearer "):
        token = str(authorization).split(" ", 1)[1].strip()

    if token:
        claims = _jwt_verify(token)
        sub = str(claims.get("sub") or "")
        if not sub.isdigit():
            raise HTTPException(status_code=401, detail="Token missing sub")

        user = db.scalar(select(AppUser).where(AppUser.id == int(sub)))
        if user is None:
            raise HTTPException(status_code=401, detail="Unknown user")

        return _principal_from_user(db, org_slug=org_slug, user=user)

    if settings.auth_mode == "dev":
        return _dev_principal(db, request, org_slug)

    raise HTTPException(status_code=401, detail="Not authenticated")
