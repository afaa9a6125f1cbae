# backend/app/routers/expenses.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from ..auth import get_principal
from ..db import get_db
from ..schemas import ExpenseCreate, ExpenseOut, ExpenseUpdate
from ..services.container import ServiceContainer, get_services

router = APIRouter(prefix="/expenses", tags=["expenses"])


@router.get("", response_model=list[ExpenseOut])
def list_expenses(
    db: Session = Depends(get_db),
    p=Depends(get_principal),
    services: ServiceContainer = Depends(get_services),
):
    return services.expenses.get_expenses_by_organization(db, p)


@router.post("", response_model=ExpenseOut, status_code=201)
def create_expense(
    payload: ExpenseCreate,
    db: Session = Depends(get_db),
    p=Depends(get_principal),
    services: ServiceContainer = Depends(get_services),
):
    return services.expenses.create_expense(db, p, payload)


@router.get("/by-property/{property_id}", response_model=list[ExpenseOut])
def expenses_by_property(
    property_id: int,
    db: Session = Depends(get_db),
    p=Depends(get_principal),
    services: ServiceContainer = Depends(get_services),
):
    return services.expenses.get_expenses_by_property(db, p, property_id)


@router.get("/{expense_id}", response_model=ExpenseOut)
def get_expense(
    expense_id: int,
    db: Session = Depends(get_db),
    p=Depends(get_principal),
    services: ServiceContainer = Depends(get_services),
):
    return services.expenses.get_expense_by_id(db, p, expense_id)


@router.patch("/{expense_id}", response_model=ExpenseOut)
def update_expense(
    expense_id: int,
    payload: ExpenseUpdate,
    db: Session = Depends(get_db),
    p=Depends(get_principal),
    services: ServiceContainer = Depends(get_services),
):
    return services.expenses.update_expense(db, p, expense_id, payload)


@router.delete("/{expense_id}", status_code=204)
def delete_expense(
    expense_id: int,
    db: Session = Depends(get_db),
    p=Depends(get_principal),
    services: ServiceContainer = Depends(get_services),
):
    services.expenses.delete_expense(db, p, expense_id)
    return Response(status_code=204)
