"""initial schema - businesses, staff, production configs, staff records, ledger, orders, invoices, crp

Revision ID: 001
Revises:
Create Date: 2026-10-17

"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    ]


def _business_fk():
    return sa.Column("business_id", sa.Integer(), sa.ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False)


def upgrade() -> None:
    op.create_table(
        "businesses",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("person", sa.String(120), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "staff",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        _business_fk(),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("joining_date", sa.Date(), nullable=False),
        sa.Column("salary", sa.Numeric(14, 2), nullable=True),
        sa.Column("opening_balance", sa.Numeric(14, 2), nullable=True),
        sa.Column("category", sa.String(30), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_staff_business_id"), "staff", ["business_id"], unique=False)

    op.create_table(
        "production_configs",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        _business_fk(),
        sa.Column("stitch_rate", sa.Numeric(14, 4), nullable=True),
        sa.Column("applique_rate", sa.Numeric(14, 4), nullable=True),
        sa.Column("on_target_pct", sa.Numeric(10, 4), nullable=True),
        sa.Column("after_target_pct", sa.Numeric(10, 4), nullable=True),
        sa.Column("pcs_per_round", sa.Numeric(10, 2), nullable=True),
        sa.Column("target_amount", sa.Numeric(14, 2), nullable=True),
        sa.Column("off_amount", sa.Numeric(14, 2), nullable=True),
        sa.Column("bonus_rate", sa.Numeric(14, 2), nullable=True),
        sa.Column("allowance", sa.Numeric(14, 2), nullable=True),
        sa.Column("stitch_formula_enabled", sa.Boolean(), nullable=True),
        sa.Column("stitch_formula_rules", sa.JSON(), nullable=True),
        sa.Column("effective_date", sa.Date(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("business_id", "effective_date", name="uq_production_config_business_effective"),
    )
    op.create_index(op.f("ix_production_configs_business_id"), "production_configs", ["business_id"], unique=False)
    op.create_index(op.f("ix_production_configs_effective_date"), "production_configs", ["effective_date"], unique=False)

    op.create_table(
        "staff_records",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        _business_fk(),
        sa.Column("staff_id", sa.Integer(), sa.ForeignKey("staff.id", ondelete="CASCADE"), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("month", sa.String(7), nullable=False),
        sa.Column("attendance", sa.String(10), nullable=False),
        sa.Column("production", sa.JSON(), nullable=True),
        sa.Column("totals", sa.JSON(), nullable=True),
        sa.Column("base_amount", sa.Numeric(18, 6), nullable=True),
        sa.Column("bonus_qty", sa.Numeric(12, 2), nullable=True),
        sa.Column("bonus_rate", sa.Numeric(14, 2), nullable=True),
        sa.Column("bonus_amount", sa.Numeric(18, 6), nullable=True),
        sa.Column("fix_amount", sa.Numeric(18, 6), nullable=True),
        sa.Column("final_amount", sa.Numeric(18, 6), nullable=True),
        sa.Column("config_snapshot", sa.JSON(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("staff_id", "date", name="uq_staff_record_staff_date"),
    )
    op.create_index(op.f("ix_staff_records_business_id"), "staff_records", ["business_id"], unique=False)
    op.create_index(op.f("ix_staff_records_staff_id"), "staff_records", ["staff_id"], unique=False)
    op.create_index(op.f("ix_staff_records_month"), "staff_records", ["month"], unique=False)
    op.create_index("ix_staff_records_business_date", "staff_records", ["business_id", "date"], unique=False)

    op.create_table(
        "staff_payments",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        _business_fk(),
        sa.Column("staff_id", sa.Integer(), sa.ForeignKey("staff.id", ondelete="CASCADE"), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("month", sa.String(7), nullable=False),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("amount", sa.Numeric(14, 2), nullable=True),
        sa.Column("remarks", sa.String(500), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_staff_payments_business_id"), "staff_payments", ["business_id"], unique=False)
    op.create_index(op.f("ix_staff_payments_staff_id"), "staff_payments", ["staff_id"], unique=False)
    op.create_index(op.f("ix_staff_payments_month"), "staff_payments", ["month"], unique=False)
    op.create_index("ix_staff_payments_business_date", "staff_payments", ["business_id", "date"], unique=False)

    op.create_table(
        "customers",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        _business_fk(),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("person", sa.String(120), nullable=False),
        sa.Column("rate", sa.Numeric(14, 4), nullable=True),
        sa.Column("opening_balance", sa.Numeric(14, 2), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_customers_business_id"), "customers", ["business_id"], unique=False)

    op.create_table(
        "invoices",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        _business_fk(),
        sa.Column("customer_id", sa.Integer(), sa.ForeignKey("customers.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("customer_name", sa.String(120), nullable=False),
        sa.Column("customer_person", sa.String(120), nullable=True),
        sa.Column("order_ids", sa.JSON(), nullable=True),
        sa.Column("order_count", sa.Integer(), nullable=True),
        sa.Column("total_amount", sa.Numeric(16, 2), nullable=True),
        sa.Column("invoice_date", sa.Date(), nullable=False),
        sa.Column("note", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_invoices_business_id"), "invoices", ["business_id"], unique=False)
    op.create_index(op.f("ix_invoices_customer_id"), "invoices", ["customer_id"], unique=False)
    op.create_index("ix_invoices_business_date", "invoices", ["business_id", "invoice_date"], unique=False)

    op.create_table(
        "orders",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        _business_fk(),
        sa.Column("customer_id", sa.Integer(), sa.ForeignKey("customers.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("customer_name", sa.String(120), nullable=False),
        sa.Column("customer_base_rate", sa.Numeric(14, 4), nullable=True),
        sa.Column("description", sa.String(500), nullable=True),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("machine_no", sa.String(30), nullable=False),
        sa.Column("lot_no", sa.String(60), nullable=True),
        sa.Column("unit", sa.String(5), nullable=True),
        sa.Column("quantity", sa.Numeric(14, 2), nullable=True),
        sa.Column("qt_pcs", sa.Numeric(14, 2), nullable=True),
        sa.Column("actual_stitches", sa.Numeric(14, 2), nullable=True),
        sa.Column("design_stitches", sa.Numeric(16, 4), nullable=True),
        sa.Column("apq", sa.Integer(), nullable=True),
        sa.Column("apq_chr", sa.Numeric(14, 2), nullable=True),
        sa.Column("reverse_mode", sa.Boolean(), nullable=True),
        sa.Column("two_side", sa.Boolean(), nullable=True),
        sa.Column("rate_input", sa.Numeric(14, 2), nullable=True),
        sa.Column("rate", sa.Numeric(14, 2), nullable=True),
        sa.Column("calculated_rate", sa.Numeric(14, 2), nullable=True),
        sa.Column("stitch_rate", sa.Numeric(14, 2), nullable=True),
        sa.Column("total_amount", sa.Numeric(16, 2), nullable=True),
        sa.Column("invoice_id", sa.Integer(), sa.ForeignKey("invoices.id", ondelete="SET NULL"), nullable=True),
        sa.Column("invoiced_at", sa.Date(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_orders_business_id"), "orders", ["business_id"], unique=False)
    op.create_index(op.f("ix_orders_customer_id"), "orders", ["customer_id"], unique=False)
    op.create_index(op.f("ix_orders_invoice_id"), "orders", ["invoice_id"], unique=False)
    op.create_index("ix_orders_business_date", "orders", ["business_id", "date"], unique=False)

    op.create_table(
        "customer_payments",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        _business_fk(),
        sa.Column("customer_id", sa.Integer(), sa.ForeignKey("customers.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("customer_name", sa.String(120), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("month", sa.String(7), nullable=False),
        sa.Column("method", sa.String(20), nullable=False),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("reference_no", sa.String(60), nullable=True),
        sa.Column("bank_name", sa.String(120), nullable=True),
        sa.Column("party_name", sa.String(120), nullable=True),
        sa.Column("cheque_date", sa.Date(), nullable=True),
        sa.Column("clear_date", sa.Date(), nullable=True),
        sa.Column("remarks", sa.String(500), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_customer_payments_business_id"), "customer_payments", ["business_id"], unique=False)
    op.create_index(op.f("ix_customer_payments_customer_id"), "customer_payments", ["customer_id"], unique=False)
    op.create_index(op.f("ix_customer_payments_method"), "customer_payments", ["method"], unique=False)
    op.create_index("ix_customer_payments_business_date", "customer_payments", ["business_id", "date"], unique=False)

    op.create_table(
        "suppliers",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        _business_fk(),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("opening_balance", sa.Numeric(14, 2), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_suppliers_business_id"), "suppliers", ["business_id"], unique=False)

    op.create_table(
        "expenses",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        _business_fk(),
        sa.Column("expense_type", sa.String(20), nullable=True),
        sa.Column("item_name", sa.String(120), nullable=False),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("month", sa.String(7), nullable=False),
        sa.Column("reference_no", sa.String(60), nullable=True),
        sa.Column("remarks", sa.String(500), nullable=True),
        sa.Column("supplier_id", sa.Integer(), sa.ForeignKey("suppliers.id", ondelete="SET NULL"), nullable=True),
        sa.Column("supplier_name", sa.String(120), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_expenses_business_id"), "expenses", ["business_id"], unique=False)
    op.create_index(op.f("ix_expenses_expense_type"), "expenses", ["expense_type"], unique=False)
    op.create_index(op.f("ix_expenses_supplier_id"), "expenses", ["supplier_id"], unique=False)
    op.create_index("ix_expenses_business_date", "expenses", ["business_id", "date"], unique=False)

    op.create_table(
        "expense_items",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        _business_fk(),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("expense_type", sa.String(20), nullable=True),
        sa.Column("default_amount", sa.Numeric(14, 2), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_expense_items_business_id"), "expense_items", ["business_id"], unique=False)
    op.create_index(op.f("ix_expense_items_expense_type"), "expense_items", ["expense_type"], unique=False)
    op.create_index(op.f("ix_expense_items_is_active"), "expense_items", ["is_active"], unique=False)
    op.create_index(
        "ix_expense_items_business_type_name", "expense_items", ["business_id", "expense_type", "name"], unique=False
    )

    op.create_table(
        "supplier_payments",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        _business_fk(),
        sa.Column("supplier_id", sa.Integer(), sa.ForeignKey("suppliers.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("supplier_name", sa.String(120), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("month", sa.String(7), nullable=False),
        sa.Column("method", sa.String(20), nullable=False),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("reference_no", sa.String(60), nullable=True),
        sa.Column("remarks", sa.String(500), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_supplier_payments_business_id"), "supplier_payments", ["business_id"], unique=False)
    op.create_index(op.f("ix_supplier_payments_supplier_id"), "supplier_payments", ["supplier_id"], unique=False)
    op.create_index("ix_supplier_payments_business_date", "supplier_payments", ["business_id", "date"], unique=False)

    op.create_table(
        "crp_rate_configs",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        _business_fk(),
        sa.Column("category", sa.String(20), nullable=False),
        sa.Column("type_name", sa.String(60), nullable=False),
        sa.Column("rate", sa.Numeric(14, 2), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("business_id", "category", "type_name", name="uq_crp_rate_business_category_type"),
    )
    op.create_index(op.f("ix_crp_rate_configs_business_id"), "crp_rate_configs", ["business_id"], unique=False)
    op.create_index(op.f("ix_crp_rate_configs_category"), "crp_rate_configs", ["category"], unique=False)
    op.create_index(op.f("ix_crp_rate_configs_is_active"), "crp_rate_configs", ["is_active"], unique=False)

    op.create_table(
        "crp_staff_records",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        _business_fk(),
        sa.Column("order_id", sa.Integer(), sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False),
        sa.Column("order_date", sa.Date(), nullable=False),
        sa.Column("order_description", sa.String(500), nullable=True),
        sa.Column("quantity_dzn", sa.Numeric(14, 4), nullable=False),
        sa.Column("staff_id", sa.Integer(), sa.ForeignKey("staff.id", ondelete="CASCADE"), nullable=False),
        sa.Column("staff_name", sa.String(120), nullable=False),
        sa.Column("category", sa.String(20), nullable=False),
        sa.Column("type_name", sa.String(60), nullable=False),
        sa.Column("rate", sa.Numeric(14, 2), nullable=False),
        sa.Column("total_amount", sa.Numeric(16, 4), nullable=False),
        sa.Column("month", sa.String(7), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("business_id", "order_id", name="uq_crp_record_business_order"),
    )
    op.create_index(op.f("ix_crp_staff_records_business_id"), "crp_staff_records", ["business_id"], unique=False)
    op.create_index(op.f("ix_crp_staff_records_order_id"), "crp_staff_records", ["order_id"], unique=False)
    op.create_index(op.f("ix_crp_staff_records_order_date"), "crp_staff_records", ["order_date"], unique=False)
    op.create_index(op.f("ix_crp_staff_records_staff_id"), "crp_staff_records", ["staff_id"], unique=False)
    op.create_index(op.f("ix_crp_staff_records_category"), "crp_staff_records", ["category"], unique=False)
    op.create_index(op.f("ix_crp_staff_records_month"), "crp_staff_records", ["month"], unique=False)


def downgrade() -> None:
    for table in (
        "crp_staff_records",
        "crp_rate_configs",
        "supplier_payments",
        "expense_items",
        "expenses",
        "suppliers",
        "customer_payments",
        "orders",
        "invoices",
        "customers",
        "staff_payments",
        "staff_records",
        "production_configs",
        "staff",
        "businesses",
    ):
        op.drop_table(table)
