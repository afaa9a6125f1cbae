# backend/app/routers/leases.py
from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from ..auth import get_principal
from ..config import settings
from ..db import get_db
from ..domain.enums import LeaseStatus
from ..schemas import (
    LeaseCreate,
    LeaseListOut,
    LeaseOut,
    LeaseRenew,
    LeaseStatsOut,
    LeaseTerminate,
    LeaseUpdate,
    LeaseWithTransactionsOut,
    PaymentOut,
    UtilityBillOut,
)
from ..services.container import ServiceContainer, get_services

router = APIRouter(prefix="/leases", tags=["leases"])


@router.get("", response_model=LeaseListOut)
def list_leases(
    property_id: Optional[int] = Query(default=None),
    unit_id: Optional[int] = Query(default=None),
    tenant_id: Optional[int] = Query(default=None),
    status: Optional[LeaseStatus] = Query(default=None),
    search: Optional[str] = Query(default=None),
    start_date_from: Optional[date] = Query(default=None),
    start_date_to: Optional[date] = Query(default=None),
    end_date_from: Optional[date] = Query(default=None),
    end_date_to: Optional[date] = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=settings.default_page_size, ge=1, le=settings.max_page_size),
    db: Session = Depends(get_db),
    p=Depends(get_principal),
    services: ServiceContainer = Depends(get_services),
):
    filters = {
        "property_id": property_id,
        "unit_id": unit_id,
        "tenant_id": tenant_id,
        "status": status,
        "search": search,
        "start_date_from": start_date_from,
        "start_date_to": start_date_to,
        "end_date_from": end_date_from,
        "end_date_to": end_date_to,
        "page": page,
        "limit": limit,
    }
    return services.leases.list_leases(db, p, filters)


@router.post("", response_model=LeaseOut, status_code=201)
def create_lease(
    payload: LeaseCreate,
    db: Session = Depends(get_db),
    p=Depends(get_principal),
    services: ServiceContainer = Depends(get_services),
):
    return services.leases.create_lease(db, p, payload)


@router.get("/stats", response_model=LeaseStatsOut)
def lease_stats(
    property_id: Optional[int] = Query(default=None),
    db: Session = Depends(get_db),
    p=Depends(get_principal),
    services: ServiceContainer = Depends(get_services),
):
    return services.leases.get_lease_stats(db, p, property_id=property_id)


@router.get("/expiring", response_model=list[LeaseOut])
def expiring_leases(
    days_ahead: int = Query(default=settings.lease_expiry_window_days, ge=1, le=3650),
    db: Session = Depends(get_db),
    p=Depends(get_principal),
    services: ServiceContainer = Depends(get_services),
):
    return services.leases.get_expiring_leases(db, p, days_ahead)


@router.get("/by-tenant/{tenant_id}", response_model=list[LeaseOut])
def leases_by_tenant(
    tenant_id: int,
    db: Session = Depends(get_db),
    p=Depends(get_principal),
    services: ServiceContainer = Depends(get_services),
):
    return services.leases.get_leases_by_tenant(db, p, tenant_id)


@router.get("/by-tenant/{tenant_id}/active", response_model=Optional[LeaseOut])
def active_lease_for_tenant(
    tenant_id: int,
    db: Session = Depends(get_db),
    p=Depends(get_principal),
    services: ServiceContainer = Depends(get_services),
):
    return services.leases.get_active_lease_for_tenant(db, p, tenant_id)


@router.get("/by-unit/{unit_id}", response_model=list[LeaseOut])
def leases_by_unit(
    unit_id: int,
    db: Session = Depends(get_db),
    p=Depends(get_principal),
    services: ServiceContainer = Depends(get_services),
):
    return services.leases.get_leases_by_unit(db, p, unit_id)


@router.get("/by-unit/{unit_id}/active", response_model=Optional[LeaseOut])
def active_lease_for_unit(
    unit_id: int,
    db: Session = Depends(get_db),
    p=Depends(get_principal),
    services: ServiceContainer = Depends(get_services),
):
    return services.leases.get_active_lease_for_unit(db, p, unit_id)


@router.get("/by-property/{property_id}", response_model=list[LeaseOut])
def leases_by_property(
    property_id: int,
    db: Session = Depends(get_db),
    p=Depends(get_principal),
    services: ServiceContainer = Depends(get_services),
):
    return services.leases.get_leases_by_property(db, p, property_id)


@router.get("/{lease_id}", response_model=None)
def get_lease(
    lease_id: int,
    with_transactions: bool = Query(default=False),
    db: Session = Depends(get_db),
    p=Depends(get_principal),
    services: ServiceContainer = Depends(get_services),
):
    if not with_transactions:
        return LeaseOut.model_validate(services.leases.get_lease(db, p, lease_id))

    bundle = services.leases.get_lease_with_transactions(db, p, lease_id)
    return LeaseWithTransactionsOut(
        **LeaseOut.model_validate(bundle["lease"]).model_dump(),
        payments=[PaymentOut.model_validate(x) for x in bundle["payments"]],
        utility_bills=[UtilityBillOut.model_validate(x) for x in bundle["utility_bills"]],
    )


@router.patch("/{lease_id}", response_model=LeaseOut)
def update_lease(
    lease_id: int,
    payload: LeaseUpdate,
    db: Session = Depends(get_db),
    p=Depends(get_principal),
    services: ServiceContainer = Depends(get_services),
):
    return services.leases.update_lease(db, p, lease_id, payload)


@router.post("/{lease_id}/terminate", response_model=LeaseOut)
def terminate_lease(
    lease_id: int,
    payload: LeaseTerminate,
    db: Session = Depends(get_db),
    p=Depends(get_principal),
    services: ServiceContainer = Depends(get_services),
):
    return services.leases.terminate_lease(db, p, lease_id, payload)


@router.post("/{lease_id}/renew", response_model=LeaseOut, status_code=201)
def renew_lease(
    lease_id: int,
    payload: LeaseRenew,
    db: Session = Depends(get_db),
    p=Depends(get_principal),
    services: ServiceContainer = Depends(get_services),
):
    return services.leases.renew_lease(db, p, lease_id, payload)


@router.delete("/{lease_id}", status_code=204)
def delete_lease(
    lease_id: int,
    db: Session = Depends(get_db),
    p=Depends(get_principal),
    services: ServiceContainer = Depends(get_services),
):
    services.leases.delete_lease(db, p, lease_id)
    return Response(status_code=204)
