"""init schema: orgs, portfolio, leases, money

Revision ID: 0001_init
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa


revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


LEASE_STATUSES = ("active", "pending", "expired", "terminated", "renewed")
PAYMENT_FREQUENCIES = ("monthly", "weekly", "bi-weekly", "quarterly", "yearly")
BILLING_TYPES = ("landlord_pays", "tenant_pays", "split", "fixed_amount")
PAYMENT_TYPES = (
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
)
PAYMENT_STATUSES = ("pending", "successful", "failed", "refunded", "partially_refunded", "disputed")
PAYMENT_METHODS = (
    "cash",
    "bank_transfer",
    "mpesa",
    "credit_card",
    "debit_card",
    "cheque",
    "online_portal",
    "other",
)
EXPENSE_CATEGORIES = (
    "maintenance_repair",
    "utilities",
    "property_tax",
    "insurance",
    "management_fee",
    "advertising",
    "supplies",
    "capital_improvement",
    "other",
)
UTILITY_TYPES = ("water", "electricity", "gas", "internet", "trash", "sewer", "other")
UTILITY_BILL_STATUSES = ("due", "paid", "overdue", "canceled")


def _one_of(column: str, values: tuple, name: str) -> sa.CheckConstraint:
    quoted = ", ".join(f"'{v}'" for v in values)
    return sa.CheckConstraint(f"{column} IN ({quoted})", name=name)


def upgrade():
    op.create_table(
        "organizations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("slug", sa.String(length=80), nullable=False),
        sa.Column("name", sa.String(length=160), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_organizations_slug", "organizations", ["slug"], unique=True)

    op.create_table(
        "app_users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(length=200), nullable=False),
        sa.Column("display_name", sa.String(length=160), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_app_users_email", "app_users", ["email"], unique=True)

    op.create_table(
        "org_memberships",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("org_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=False),
        sa.Column("role", sa.String(length=20), nullable=False, server_default="VIEWER"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("org_id", "user_id", name="uq_org_memberships_org_user"),
    )
    op.create_index("ix_org_memberships_org_id", "org_memberships", ["org_id"])
    op.create_index("ix_org_memberships_user_id", "org_memberships", ["user_id"])

    op.create_table(
        "audit_events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("org_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("actor_user_id", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=True),
        sa.Column("action", sa.String(length=80), nullable=False),
        sa.Column("entity_type", sa.String(length=80), nullable=False),
        sa.Column("entity_id", sa.String(length=80), nullable=False),
        sa.Column("before_json", sa.Text(), nullable=True),
        sa.Column("after_json", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_audit_events_org_id", "audit_events", ["org_id"])

    op.create_table(
        "properties",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("org_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("name", sa.String(length=160), nullable=False),
        sa.Column("address", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_properties_org_id", "properties", ["org_id"])

    op.create_table(
        "units",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("org_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("property_id", sa.Integer(), sa.ForeignKey("properties.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("status", sa.String(length=30), nullable=False, server_default="vacant"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_units_org_id", "units", ["org_id"])
    op.create_index("ix_units_property_id", "units", ["property_id"])

    op.create_table(
        "tenants",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("org_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=200), nullable=True),
        sa.Column("phone", sa.String(length=40), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_tenants_org_id", "tenants", ["org_id"])

    utility_cols = []
    for u in ("water", "electricity", "gas", "internet"):
        utility_cols.append(sa.Column(f"includes_{u}", sa.Boolean(), nullable=False, server_default=sa.false()))
    for u in ("water", "electricity", "gas", "internet"):
        utility_cols.append(
            sa.Column(f"{u}_billing_type", sa.String(length=20), nullable=False, server_default="tenant_pays")
        )
    for u in ("water", "electricity", "gas", "internet"):
        utility_cols.append(sa.Column(f"{u}_fixed_amount", sa.Float(), nullable=True))

    op.create_table(
        "leases",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("org_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("unit_id", sa.Integer(), sa.ForeignKey("units.id"), nullable=False),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("rent_amount", sa.Float(), nullable=False),
        sa.Column("deposit_amount", sa.Float(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
        sa.Column("payment_day", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("payment_frequency", sa.String(length=20), nullable=False, server_default="monthly"),
        *utility_cols,
        sa.Column("document_url", sa.String(length=500), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=True),
        sa.Column("renewed_from_lease_id", sa.Integer(), sa.ForeignKey("leases.id"), nullable=True),
        sa.Column("renewed_to_lease_id", sa.Integer(), sa.ForeignKey("leases.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        _one_of("status", LEASE_STATUSES, "ck_leases_status"),
        _one_of("payment_frequency", PAYMENT_FREQUENCIES, "ck_leases_payment_frequency"),
        _one_of("water_billing_type", BILLING_TYPES, "ck_leases_water_billing_type"),
        _one_of("electricity_billing_type", BILLING_TYPES, "ck_leases_electricity_billing_type"),
        _one_of("gas_billing_type", BILLING_TYPES, "ck_leases_gas_billing_type"),
        _one_of("internet_billing_type", BILLING_TYPES, "ck_leases_internet_billing_type"),
        sa.CheckConstraint("start_date < end_date", name="ck_leases_dates"),
        sa.CheckConstraint("rent_amount > 0", name="ck_leases_rent_positive"),
        sa.CheckConstraint("deposit_amount >= 0", name="ck_leases_deposit_non_negative"),
        sa.CheckConstraint("payment_day BETWEEN 1 AND 31", name="ck_leases_payment_day"),
    )
    op.create_index("ix_leases_org_id", "leases", ["org_id"])
    op.create_index("ix_leases_unit_id", "leases", ["unit_id"])
    op.create_index("ix_leases_tenant_id", "leases", ["tenant_id"])
    op.create_index("ix_leases_end_date", "leases", ["end_date"])
    op.create_index("ix_leases_status", "leases", ["status"])
    op.create_index(
        "uq_leases_one_active_per_unit",
        "leases",
        ["unit_id"],
        unique=True,
        postgresql_where=sa.text("status = 'active'"),
        sqlite_where=sa.text("status = 'active'"),
    )

    op.create_table(
        "payments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("org_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("property_id", sa.Integer(), sa.ForeignKey("properties.id"), nullable=True),
        sa.Column("unit_id", sa.Integer(), sa.ForeignKey("units.id"), nullable=True),
        sa.Column("lease_id", sa.Integer(), sa.ForeignKey("leases.id"), nullable=True),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id"), nullable=True),
        sa.Column("type", sa.String(length=40), nullable=False),
        sa.Column("status", sa.String(length=30), nullable=False, server_default="pending"),
        sa.Column("method", sa.String(length=30), nullable=True),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("currency", sa.String(length=8), nullable=False),
        sa.Column("transaction_date", sa.DateTime(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("paid_date", sa.DateTime(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("reference_id", sa.String(length=120), nullable=True),
        sa.Column("recorded_by", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        _one_of("type", PAYMENT_TYPES, "ck_payments_type"),
        _one_of("status", PAYMENT_STATUSES, "ck_payments_status"),
        _one_of("method", PAYMENT_METHODS, "ck_payments_method"),
        sa.CheckConstraint("amount > 0", name="ck_payments_amount_positive"),
    )
    op.create_index("ix_payments_org_id", "payments", ["org_id"])
    op.create_index("ix_payments_lease_id", "payments", ["lease_id"])
    op.create_index("ix_payments_tenant_id", "payments", ["tenant_id"])
    op.create_index("ix_payments_org_property_date", "payments", ["org_id", "property_id", "transaction_date"])

    op.create_table(
        "expenses",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("org_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("property_id", sa.Integer(), sa.ForeignKey("properties.id"), nullable=True),
        sa.Column("unit_id", sa.Integer(), sa.ForeignKey("units.id"), nullable=True),
        sa.Column("category", sa.String(length=40), nullable=False),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("expense_date", sa.Date(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("vendor", sa.String(length=200), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("payment_id", sa.Integer(), sa.ForeignKey("payments.id"), nullable=True),
        sa.Column("recorded_by", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        _one_of("category", EXPENSE_CATEGORIES, "ck_expenses_category"),
        sa.CheckConstraint("amount > 0", name="ck_expenses_amount_positive"),
    )
    op.create_index("ix_expenses_org_id", "expenses", ["org_id"])
    op.create_index("ix_expenses_org_property_date", "expenses", ["org_id", "property_id", "expense_date"])

    op.create_table(
        "utility_bills",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("org_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("property_id", sa.Integer(), sa.ForeignKey("properties.id"), nullable=False),
        sa.Column("unit_id", sa.Integer(), sa.ForeignKey("units.id"), nullable=False),
        sa.Column("lease_id", sa.Integer(), sa.ForeignKey("leases.id"), nullable=True),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id"), nullable=True),
        sa.Column("utility_type", sa.String(length=20), nullable=False),
        sa.Column("billing_period_start", sa.Date(), nullable=False),
        sa.Column("billing_period_end", sa.Date(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="due"),
        sa.Column("meter_reading_start", sa.Float(), nullable=True),
        sa.Column("meter_reading_end", sa.Float(), nullable=True),
        sa.Column("consumption", sa.Float(), nullable=True),
        sa.Column("rate", sa.Float(), nullable=True),
        sa.Column("payment_id", sa.Integer(), sa.ForeignKey("payments.id"), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        _one_of("utility_type", UTILITY_TYPES, "ck_utility_bills_type"),
        _one_of("status", UTILITY_BILL_STATUSES, "ck_utility_bills_status"),
        sa.CheckConstraint("amount > 0", name="ck_utility_bills_amount_positive"),
    )
    op.create_index("ix_utility_bills_org_id", "utility_bills", ["org_id"])
    op.create_index("ix_utility_bills_property_id", "utility_bills", ["property_id"])
    op.create_index("ix_utility_bills_unit_id", "utility_bills", ["unit_id"])
    op.create_index("ix_utility_bills_lease_id", "utility_bills", ["lease_id"])


def downgrade():
    op.drop_table("utility_bills")
    op.drop_table("expenses")
    op.drop_table("payments")
    op.drop_index("uq_leases_one_active_per_unit", table_name="leases")
    op.drop_table("leases")
    op.drop_table("tenants")
    op.drop_table("units")
    op.drop_table("properties")
    op.drop_table("audit_events")
    op.drop_table("org_memberships")
    op.drop_table("app_users")
    op.drop_table("organizations")
