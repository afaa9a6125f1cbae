# backend/app/schemas.py
from __future__ import annotations

from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, ConfigDict, model_validator

from .domain.enums import (
    BillingType,
    ExpenseCategory,
    LeaseStatus,
    PaymentFrequency,
    PaymentMethod,
    PaymentStatus,
    PaymentType,
    UTILITIES,
    UtilityBillStatus,
    UtilityType,
)
from .services.lease_rules import fixed_amount_errors


def _reject_nulls(model: BaseModel, fields: tuple[str, ...]) -> None:
    """Partial updates may omit a NOT NULL field but never send it as null."""
    nulls = sorted(f for f in fields if f in model.model_fields_set and getattr(model, f) is None)
    if nulls:
        raise ValueError(f"Cannot be null: {', '.join(nulls)}")


# -------------------- Leases --------------------

class LeaseTerms(BaseModel):
    """Fields shared by create and read models."""

    unit_id: int
    tenant_id: int
    start_date: date
    end_date: date
    rent_amount: float = Field(gt=0)
    deposit_amount: float = Field(default=0.0, ge=0)
    payment_day: int = Field(default=1, ge=1, le=31)
    payment_frequency: PaymentFrequency = "monthly"

    includes_water: bool = False
    includes_electricity: bool = False
    includes_gas: bool = False
    includes_internet: bool = False

    water_billing_type: BillingType = "tenant_pays"
    electricity_billing_type: BillingType = "tenant_pays"
    gas_billing_type: BillingType = "tenant_pays"
    internet_billing_type: BillingType = "tenant_pays"

    water_fixed_amount: Optional[float] = Field(default=None, ge=0)
    electricity_fixed_amount: Optional[float] = Field(default=None, ge=0)
    gas_fixed_amount: Optional[float] = Field(default=None, ge=0)
    internet_fixed_amount: Optional[float] = Field(default=None, ge=0)

    document_url: Optional[str] = None
    notes: Optional[str] = None


class LeaseCreate(LeaseTerms):
    status: LeaseStatus = "active"

    @model_validator(mode="after")
    def _check_terms(self) -> "LeaseCreate":
        if self.start_date >= self.end_date:
            raise ValueError("Start date must be before end date")
        if self.status not in ("active", "pending"):
            raise ValueError("New leases must start as active or pending")
        errors = fixed_amount_errors(self.model_dump())
        if errors:
            raise ValueError("; ".join(errors))
        return self


_LEASE_NOT_NULL = (
    "unit_id",
    "tenant_id",
    "start_date",
    "end_date",
    "rent_amount",
    "deposit_amount",
    "status",
    "payment_day",
    "payment_frequency",
    *[f"includes_{u}" for u in UTILITIES],
    *[f"{u}_billing_type" for u in UTILITIES],
)


class LeaseUpdate(BaseModel):
    """Partial update; only fields that were sent are applied."""

    unit_id: Optional[int] = None
    tenant_id: Optional[int] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    rent_amount: Optional[float] = Field(default=None, gt=0)
    deposit_amount: Optional[float] = Field(default=None, ge=0)
    status: Optional[LeaseStatus] = None
    payment_day: Optional[int] = Field(default=None, ge=1, le=31)
    payment_frequency: Optional[PaymentFrequency] = None

    includes_water: Optional[bool] = None
    includes_electricity: Optional[bool] = None
    includes_gas: Optional[bool] = None
    includes_internet: Optional[bool] = None

    water_billing_type: Optional[BillingType] = None
    electricity_billing_type: Optional[BillingType] = None
    gas_billing_type: Optional[BillingType] = None
    internet_billing_type: Optional[BillingType] = None

    water_fixed_amount: Optional[float] = Field(default=None, ge=0)
    electricity_fixed_amount: Optional[float] = Field(default=None, ge=0)
    gas_fixed_amount: Optional[float] = Field(default=None, ge=0)
    internet_fixed_amount: Optional[float] = Field(default=None, ge=0)

    document_url: Optional[str] = None
    notes: Optional[str] = None

    @model_validator(mode="after")
    def _check_dates(self) -> "LeaseUpdate":
        _reject_nulls(self, _LEASE_NOT_NULL)
        if self.start_date and self.end_date and self.start_date >= self.end_date:
            raise ValueError("Start date must be before end date")
        return self


class LeaseTerminate(BaseModel):
    termination_date: date
    termination_reason: str = Field(min_length=1)
    refund_amount: float = Field(default=0.0, ge=0)


class LeaseRenew(BaseModel):
    new_end_date: date
    new_rent_amount: Optional[float] = Field(default=None, gt=0)
    preserve_deposit: bool = True
    new_deposit_amount: Optional[float] = Field(default=None, ge=0)
    generate_document: bool = True


class LeaseOut(LeaseTerms):
    id: int
    org_id: int
    status: LeaseStatus
    created_by: Optional[int] = None
    renewed_from_lease_id: Optional[int] = None
    renewed_to_lease_id: Optional[int] = None
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)


class LeaseListOut(BaseModel):
    leases: list[LeaseOut]
    total: int
    pages: int


class LeaseStatusCount(BaseModel):
    status: str
    count: int


class LeaseStatsOut(BaseModel):
    total_leases: int
    active_leases: int
    expiring_next_30_days: int
    leases_by_status: list[LeaseStatusCount]
    average_rent: float
    total_monthly_rent: float


# -------------------- Payments --------------------

class PaymentCreate(BaseModel):
    property_id: Optional[int] = None
    unit_id: Optional[int] = None
    lease_id: Optional[int] = None
    tenant_id: Optional[int] = None
    type: PaymentType
    method: PaymentMethod
    amount: float = Field(gt=0)
    currency: Optional[str] = None
    transaction_date: Optional[datetime] = None
    due_date: Optional[date] = None
    paid_date: Optional[datetime] = None
    description: Optional[str] = None
    notes: Optional[str] = None
    reference_id: Optional[str] = None


class PaymentUpdate(BaseModel):
    status: Optional[PaymentStatus] = None
    method: Optional[PaymentMethod] = None
    amount: Optional[float] = Field(default=None, gt=0)
    transaction_date: Optional[datetime] = None
    due_date: Optional[date] = None
    paid_date: Optional[datetime] = None
    description: Optional[str] = None
    notes: Optional[str] = None
    reference_id: Optional[str] = None

    @model_validator(mode="after")
    def _no_nulls(self) -> "PaymentUpdate":
        _reject_nulls(self, ("status", "amount", "transaction_date"))
        return self


class PaymentOut(BaseModel):
    id: int
    org_id: int
    property_id: Optional[int] = None
    unit_id: Optional[int] = None
    lease_id: Optional[int] = None
    tenant_id: Optional[int] = None
    type: str
    status: str
    method: Optional[str] = None
    amount: float
    currency: str
    transaction_date: datetime
    due_date: Optional[date] = None
    paid_date: Optional[datetime] = None
    description: Optional[str] = None
    notes: Optional[str] = None
    reference_id: Optional[str] = None
    recorded_by: Optional[int] = None
    model_config = ConfigDict(from_attributes=True)


# -------------------- Expenses --------------------

class ExpenseCreate(BaseModel):
    property_id: Optional[int] = None
    unit_id: Optional[int] = None
    category: ExpenseCategory
    amount: float = Field(gt=0)
    expense_date: date
    description: str = Field(min_length=1)
    vendor: Optional[str] = None
    notes: Optional[str] = None
    create_payment: bool = False


class ExpenseUpdate(BaseModel):
    category: Optional[ExpenseCategory] = None
    amount: Optional[float] = Field(default=None, gt=0)
    expense_date: Optional[date] = None
    description: Optional[str] = None
    vendor: Optional[str] = None
    notes: Optional[str] = None

    @model_validator(mode="after")
    def _no_nulls(self) -> "ExpenseUpdate":
        _reject_nulls(self, ("category", "amount", "expense_date", "description"))
        return self


class ExpenseOut(BaseModel):
    id: int
    org_id: int
    property_id: Optional[int] = None
    unit_id: Optional[int] = None
    category: str
    amount: float
    expense_date: date
    description: str
    vendor: Optional[str] = None
    notes: Optional[str] = None
    payment_id: Optional[int] = None
    recorded_by: Optional[int] = None
    model_config = ConfigDict(from_attributes=True)


# -------------------- Utility bills --------------------

class UtilityBillCreate(BaseModel):
    property_id: int
    unit_id: int
    lease_id: Optional[int] = None
    tenant_id: Optional[int] = None
    utility_type: UtilityType
    billing_period_start: date
    billing_period_end: date
    due_date: date
    amount: float = Field(gt=0)
    status: UtilityBillStatus = "due"
    meter_reading_start: Optional[float] = None
    meter_reading_end: Optional[float] = None
    consumption: Optional[float] = None
    rate: Optional[float] = None
    notes: Optional[str] = None

    @model_validator(mode="after")
    def _check_period(self) -> "UtilityBillCreate":
        if self.billing_period_start > self.billing_period_end:
            raise ValueError("Billing period start must not be after its end")
        if self.status == "paid":
            raise ValueError("Bills are marked paid by recording a payment, not on creation")
        return self


class UtilityBillUpdate(BaseModel):
    # "paid" is reachable only through the pay operation
    status: Optional[Literal["due", "overdue", "canceled"]] = None
    meter_reading_start: Optional[float] = None
    meter_reading_end: Optional[float] = None
    consumption: Optional[float] = None
    rate: Optional[float] = None
    amount: Optional[float] = Field(default=None, gt=0)
    notes: Optional[str] = None
    due_date: Optional[date] = None
    billing_period_start: Optional[date] = None
    billing_period_end: Optional[date] = None

    @model_validator(mode="after")
    def _no_nulls(self) -> "UtilityBillUpdate":
        _reject_nulls(self, ("status", "amount", "due_date", "billing_period_start", "billing_period_end"))
        return self


class UtilityBillPay(BaseModel):
    amount: float = Field(gt=0)
    payment_method: PaymentMethod
    reference_id: Optional[str] = None
    paid_date: Optional[datetime] = None
    notes: Optional[str] = None


class UtilityBillOut(BaseModel):
    id: int
    org_id: int
    property_id: int
    unit_id: int
    lease_id: Optional[int] = None
    tenant_id: Optional[int] = None
    utility_type: str
    billing_period_start: date
    billing_period_end: date
    due_date: date
    amount: float
    status: str
    meter_reading_start: Optional[float] = None
    meter_reading_end: Optional[float] = None
    consumption: Optional[float] = None
    rate: Optional[float] = None
    payment_id: Optional[int] = None
    notes: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class LeaseWithTransactionsOut(LeaseOut):
    payments: list[PaymentOut] = []
    utility_bills: list[UtilityBillOut] = []


# -------------------- Finance --------------------

class PeriodOut(BaseModel):
    start: date
    end: date


class FinancialSummaryOut(BaseModel):
    property_id: int
    period: PeriodOut
    income: float
    expenses: float
    net_income: float
    rent_collection_rate: float
    rent_collection_rate_is_placeholder: bool
    currency: str
    occupancy_rate: float
    total_units: int
    occupied_units: int
