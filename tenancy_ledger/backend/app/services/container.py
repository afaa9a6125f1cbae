from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from app.clients.documents import LeaseDocumentGenerator
from app.services.expenses_service import ExpensesService
from app.services.financial_service import FinancialService
from app.services.guard import AuthorizationGuard
from app.services.lease_repository import LeaseRepository
from app.services.lease_service import LeaseService
from app.services.payments_service import PaymentsService
from app.services.utility_bills_service import UtilityBillsService


@dataclass
class ServiceContainer:
    guard: AuthorizationGuard
    lease_repository: LeaseRepository
    leases: LeaseService
    payments: PaymentsService
    expenses: ExpensesService
    utility_bills: UtilityBillsService
    finance: FinancialService

    @classmethod
    def build(
        cls,
        *,
        guard: Optional[AuthorizationGuard] = None,
        documents: Optional[LeaseDocumentGenerator] = None,
    ) -> "ServiceContainer":
        guard = guard or AuthorizationGuard()
        repo = LeaseRepository()
        payments = PaymentsService(guard)
        expenses = ExpensesService(guard)
        return cls(
            guard=guard,
            lease_repository=repo,
            leases=LeaseService(repo, guard, documents or LeaseDocumentGenerator()),
            payments=payments,
            expenses=expenses,
            utility_bills=UtilityBillsService(guard),
            finance=FinancialService(guard, payments, expenses),
        )


def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services
