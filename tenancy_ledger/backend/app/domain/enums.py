# backend/app/domain/enums.py
from __future__ import annotations

from typing import Literal, get_args

# -----------------------------
# Closed value sets shared by models (check constraints) and schemas (Literal).
# -----------------------------

Role = Literal["ADMIN", "LANDLORD", "AGENT", "TENANT", "VIEWER"]

UnitStatus = Literal["vacant", "occupied", "notice_given", "under_maintenance"]

LeaseStatus = Literal["active", "pending", "expired", "terminated", "renewed"]
PaymentFrequency = Literal["monthly", "weekly", "bi-weekly", "quarterly", "yearly"]
BillingType = Literal["landlord_pays", "tenant_pays", "split", "fixed_amount"]

PaymentType = Literal[
    "rent",
    "deposit",
    "late_fee",
    "utility",
    "maintenance",
    "management_fee",
    "other_income",
    "owner_payout",
    "expense_reimbursement",
    "refund",
]
PaymentStatus = Literal["pending", "successful", "failed", "refunded", "partially_refunded", "disputed"]
PaymentMethod = Literal[
    "cash",
    "bank_transfer",
    "mpesa",
    "credit_card",
    "debit_card",
    "cheque",
    "online_portal",
    "other",
]

ExpenseCategory = Literal[
    "maintenance_repair",
    "utilities",
    "property_tax",
    "insurance",
    "management_fee",
    "advertising",
    "supplies",
    "capital_improvement",
    "other",
]

UtilityType = Literal["water", "electricity", "gas", "internet", "trash", "sewer", "other"]
UtilityBillStatus = Literal["due", "paid", "overdue", "canceled"]

FinancialPeriod = Literal["month", "quarter", "year", "custom"]

ROLES: tuple[str, ...] = get_args(Role)
UNIT_STATUSES: tuple[str, ...] = get_args(UnitStatus)
LEASE_STATUSES: tuple[str, ...] = get_args(LeaseStatus)
PAYMENT_FREQUENCIES: tuple[str, ...] = get_args(PaymentFrequency)
BILLING_TYPES: tuple[str, ...] = get_args(BillingType)
PAYMENT_TYPES: tuple[str, ...] = get_args(PaymentType)
PAYMENT_STATUSES: tuple[str, ...] = get_args(PaymentStatus)
PAYMENT_METHODS: tuple[str, ...] = get_args(PaymentMethod)
EXPENSE_CATEGORIES: tuple[str, ...] = get_args(ExpenseCategory)
UTILITY_TYPES: tuple[str, ...] = get_args(UtilityType)
UTILITY_BILL_STATUSES: tuple[str, ...] = get_args(UtilityBillStatus)

# Lease lifecycle: nothing leaves these.
TERMINAL_LEASE_STATUSES = frozenset({"expired", "terminated", "renewed"})

# "available" is a legacy synonym for vacant that older unit rows may still carry.
LEASABLE_UNIT_STATUSES = frozenset({"vacant", "available"})

UTILITIES: tuple[str, ...] = ("water", "electricity", "gas", "internet")
