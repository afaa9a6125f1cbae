# backend/app/routers/payments.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from ..auth import get_principal
from ..db import get_db
from ..schemas import PaymentCreate, PaymentOut, PaymentUpdate
from ..services.container import ServiceContainer, get_services

router = APIRouter(prefix="/payments", tags=["payments"])


@router.get("", response_model=list[PaymentOut])
def list_payments(
    db: Session = Depends(get_db),
    p=Depends(get_principal),
    services: ServiceContainer = Depends(get_services),
):
    return services.payments.get_payments_by_organization(db, p)


@router.post("", response_model=PaymentOut, status_code=201)
def create_payment(
    payload: PaymentCreate,
    db: Session = Depends(get_db),
    p=Depends(get_principal),
    services: ServiceContainer = Depends(get_services),
):
    return services.payments.create_payment(db, p, payload)


@router.get("/by-property/{property_id}", response_model=list[PaymentOut])
def payments_by_property(
    property_id: int,
    db: Session = Depends(get_db),
    p=Depends(get_principal),
    services: ServiceContainer = Depends(get_services),
):
    return services.payments.get_payments_by_property(db, p, property_id)


@router.get("/by-lease/{lease_id}", response_model=list[PaymentOut])
def payments_by_lease(
    lease_id: int,
    db: Session = Depends(get_db),
    p=Depends(get_principal),
    services: ServiceContainer = Depends(get_services),
):
    return services.payments.get_payments_by_lease(db, p, lease_id)


@router.get("/by-tenant/{tenant_id}", response_model=list[PaymentOut])
def payments_by_tenant(
    tenant_id: int,
    db: Session = Depends(get_db),
    p=Depends(get_principal),
    services: ServiceContainer = Depends(get_services),
):
    return services.payments.get_payments_by_tenant(db, p, tenant_id)


@router.get("/{payment_id}", response_model=PaymentOut)
def get_payment(
    payment_id: int,
    db: Session = Depends(get_db),
    p=Depends(get_principal),
    services: ServiceContainer = Depends(get_services),
):
    return services.payments.get_payment_by_id(db, p, payment_id)


@router.patch("/{payment_id}", response_model=PaymentOut)
def update_payment(
    payment_id: int,
    payload: PaymentUpdate,
    db: Session = Depends(get_db),
    p=Depends(get_principal),
    services: ServiceContainer = Depends(get_services),
):
    return services.payments.update_payment(db, p, payment_id, payload)


@router.delete("/{payment_id}", status_code=204)
def delete_payment(
    payment_id: int,
    db: Session = Depends(get_db),
    p=Depends(get_principal),
    services: ServiceContainer = Depends(get_services),
):
    services.payments.delete_payment(db, p, payment_id)
    return Response(status_code=204)
