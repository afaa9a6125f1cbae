# backend/app/routers/finance.py
from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth import get_principal
from ..db import get_db
from ..domain.enums import FinancialPeriod
from ..schemas import FinancialSummaryOut
from ..services.container import ServiceContainer, get_services

router = APIRouter(prefix="/finance", tags=["finance"])


@router.get("/properties/{property_id}/summary", response_model=FinancialSummaryOut)
def property_financial_summary(
    property_id: int,
    period: FinancialPeriod = Query(default="month"),
    start_date: Optional[date] = Query(default=None),
    end_date: Optional[date] = Query(default=None),
    db: Session = Depends(get_db),
    p=Depends(get_principal),
    services: ServiceContainer = Depends(get_services),
):
    return services.finance.get_property_financial_summary(
        db, p, property_id, period=period, start=start_date, end=end_date
    )
