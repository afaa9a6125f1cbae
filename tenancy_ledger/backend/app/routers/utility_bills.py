# backend/app/routers/utility_bills.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from ..auth import get_principal
from ..db import get_db
from ..schemas import PaymentOut, UtilityBillCreate, UtilityBillOut, UtilityBillPay, UtilityBillUpdate
from ..services.container import ServiceContainer, get_services
from ..services.guard import MANAGE_FINANCIAL_ROLES

router = APIRouter(prefix="/utility-bills", tags=["utility-bills"])


@router.get("", response_model=list[UtilityBillOut])
def list_utility_bills(
    db: Session = Depends(get_db),
    p=Depends(get_principal),
    services: ServiceContainer = Depends(get_services),
):
    return services.utility_bills.get_utility_bills_by_organization(db, p)


@router.post("", response_model=UtilityBillOut, status_code=201)
def create_utility_bill(
    payload: UtilityBillCreate,
    db: Session = Depends(get_db),
    p=Depends(get_principal),
    services: ServiceContainer = Depends(get_services),
):
    return services.utility_bills.create_utility_bill(db, p, payload)


@router.get("/by-property/{property_id}", response_model=list[UtilityBillOut])
def bills_by_property(
    property_id: int,
    db: Session = Depends(get_db),
    p=Depends(get_principal),
    services: ServiceContainer = Depends(get_services),
):
    return services.utility_bills.get_utility_bills_by_property(db, p, property_id)


@router.get("/by-unit/{unit_id}", response_model=list[UtilityBillOut])
def bills_by_unit(
    unit_id: int,
    db: Session = Depends(get_db),
    p=Depends(get_principal),
    services: ServiceContainer = Depends(get_services),
):
    return services.utility_bills.get_utility_bills_by_unit(db, p, unit_id)


@router.get("/{bill_id}", response_model=UtilityBillOut)
def get_utility_bill(
    bill_id: int,
    db: Session = Depends(get_db),
    p=Depends(get_principal),
    services: ServiceContainer = Depends(get_services),
):
    return services.utility_bills.get_utility_bill_by_id(db, p, bill_id)


@router.patch("/{bill_id}", response_model=UtilityBillOut)
def update_utility_bill(
    bill_id: int,
    payload: UtilityBillUpdate,
    db: Session = Depends(get_db),
    p=Depends(get_principal),
    services: ServiceContainer = Depends(get_services),
):
    return services.utility_bills.update_utility_bill(db, p, bill_id, payload)


@router.delete("/{bill_id}", status_code=204)
def delete_utility_bill(
    bill_id: int,
    db: Session = Depends(get_db),
    p=Depends(get_principal),
    services: ServiceContainer = Depends(get_services),
):
    services.utility_bills.delete_utility_bill(db, p, bill_id)
    return Response(status_code=204)


@router.post("/{bill_id}/pay")
def pay_utility_bill(
    bill_id: int,
    payload: UtilityBillPay,
    db: Session = Depends(get_db),
    p=Depends(get_principal),
    services: ServiceContainer = Depends(get_services),
):
    services.guard.require_role(p, MANAGE_FINANCIAL_ROLES)
    res = services.utility_bills.pay_utility_bill(
        db,
        bill_id,
        p.org_id,
        amount=payload.amount,
        method=payload.payment_method,
        reference_id=payload.reference_id,
        paid_date=payload.paid_date,
        notes=payload.notes,
        recorded_by=p.user_id,
    )
    return {
        "bill": UtilityBillOut.model_validate(res["bill"]).model_dump(mode="json"),
        "payment": PaymentOut.model_validate(res["payment"]).model_dump(mode="json"),
    }
