"""Billing items, collector summaries and tenant invoices."""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "20261001_0001"
down_revision = None
branch_labels = None
depends_on = None


SQLITE_UUID_DEFAULT = sa.text(
    "lower(hex(randomblob(4)) || '-' || hex(randomblob(2)) || '-4' || "
    "substr(hex(randomblob(2)), 2) || '-' || substr('89ab', abs(random()) % 4 + 1, 1) || "
    "substr(hex(randomblob(2)), 2) || '-' || hex(randomblob(6)))"
)

BILLING_ITEM_STATUSES = ("DRAFT", "APPROVED", "PAID")
COMMISSION_TYPES = ("PERCENTAGE", "FIXED_AMOUNT", "MANUAL")
BILLING_SUMMARY_STATUSES = ("DRAFT", "SUBMITTED", "APPROVED", "REJECTED")
TENANT_INVOICE_STATUSES = ("DRAFT", "LOCKED", "ISSUED", "PAID")
TENANT_INVOICE_ITEM_TYPES = ("COLLECTOR_BILLING", "COMMISSION")


def _dialect_settings():
    bind = op.get_bind()
    dialect = bind.dialect.name if bind else "sqlite"

    uuid_type = sa.String(length=36)
    uuid_default = SQLITE_UUID_DEFAULT

    if dialect == "postgresql":
        uuid_type = postgresql.UUID(as_uuid=True)
        uuid_default = sa.text("gen_random_uuid()")
        op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto")

    return uuid_type, uuid_default


def _status_enum(name: str, values: tuple[str, ...]) -> sa.Enum:
    return sa.Enum(*values, name=name, native_enum=False, create_constraint=True)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def _money(name: str) -> sa.Column:
    return sa.Column(name, sa.Numeric(14, 2), nullable=False, server_default="0")


def upgrade() -> None:
    uuid_type, uuid_default = _dialect_settings()

    bind = op.get_bind()
    inspector = sa.inspect(bind)

    if not inspector.has_table("billing_items"):
        op.create_table(
            "billing_items",
            sa.Column("id", uuid_type, primary_key=True, server_default=uuid_default),
            sa.Column("org_id", uuid_type, nullable=False),
            sa.Column("collector_id", uuid_type, nullable=True),
            sa.Column("billing_month", sa.Date(), nullable=False),
            sa.Column("item_name", sa.String(length=255), nullable=False),
            sa.Column("amount", sa.Numeric(12, 2), nullable=False),
            sa.Column(
                "commission_type",
                _status_enum("commission_type_enum", COMMISSION_TYPES),
                nullable=True,
            ),
            sa.Column("commission_amount", sa.Numeric(12, 2), nullable=True),
            sa.Column(
                "status",
                _status_enum("billing_item_status_enum", BILLING_ITEM_STATUSES),
                nullable=False,
                server_default="DRAFT",
            ),
            sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("approved_by", uuid_type, nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            *_timestamps(),
            sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
            sa.CheckConstraint("amount >= 0", name="ck_billing_items_amount_non_negative"),
            sa.CheckConstraint(
                "commission_amount IS NULL OR commission_amount >= 0",
                name="ck_billing_items_commission_non_negative",
            ),
        )
        op.create_index(
            "billing_items_org_month_idx", "billing_items", ["org_id", "billing_month"], unique=False
        )
        op.create_index("billing_items_status_idx", "billing_items", ["status"], unique=False)

    if not inspector.has_table("billing_summaries"):
        op.create_table(
            "billing_summaries",
            sa.Column("id", uuid_type, primary_key=True, server_default=uuid_default),
            sa.Column("org_id", uuid_type, nullable=False),
            sa.Column("collector_id", uuid_type, nullable=False),
            sa.Column("billing_month", sa.Date(), nullable=False),
            sa.Column("subtotal_amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
            sa.Column("tax_amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
            sa.Column("total_amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
            sa.Column(
                "status",
                _status_enum("billing_summary_status_enum", BILLING_SUMMARY_STATUSES),
                nullable=False,
                server_default="DRAFT",
            ),
            sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("submitted_by", uuid_type, nullable=True),
            sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("approved_by", uuid_type, nullable=True),
            sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("rejected_by", uuid_type, nullable=True),
            sa.Column("rejection_reason", sa.String(length=500), nullable=True),
            *_timestamps(),
            sa.Column("updated_by", uuid_type, nullable=True),
            sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
            sa.UniqueConstraint(
                "org_id",
                "collector_id",
                "billing_month",
                name="billing_summaries_org_collector_month_key",
            ),
        )

    if not inspector.has_table("tenant_invoices"):
        op.create_table(
            "tenant_invoices",
            sa.Column("id", uuid_type, primary_key=True, server_default=uuid_default),
            sa.Column("org_id", uuid_type, nullable=False),
            sa.Column("billing_month", sa.Date(), nullable=False),
            sa.Column("invoice_number", sa.String(length=50), nullable=False),
            sa.Column(
                "status",
                _status_enum("tenant_invoice_status_enum", TENANT_INVOICE_STATUSES),
                nullable=False,
                server_default="DRAFT",
            ),
            _money("collectors_subtotal"),
            _money("collectors_tax"),
            _money("collectors_total"),
            _money("commission_subtotal"),
            _money("commission_tax"),
            _money("commission_total"),
            _money("grand_subtotal"),
            _money("grand_tax"),
            _money("grand_total"),
            sa.Column("locked_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("locked_by", uuid_type, nullable=True),
            sa.Column("issued_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
            *_timestamps(),
            sa.Column("created_by", uuid_type, nullable=True),
            sa.Column("updated_by", uuid_type, nullable=True),
            sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
            sa.UniqueConstraint("org_id", "billing_month", name="tenant_invoices_org_month_key"),
        )

    if not inspector.has_table("tenant_invoice_items"):
        op.create_table(
            "tenant_invoice_items",
            sa.Column("id", uuid_type, primary_key=True, server_default=uuid_default),
            sa.Column(
                "tenant_invoice_id",
                uuid_type,
                sa.ForeignKey("tenant_invoices.id", ondelete="CASCADE"),
                nullable=False,
            ),
            sa.Column(
                "item_type",
                _status_enum("tenant_invoice_item_type_enum", TENANT_INVOICE_ITEM_TYPES),
                nullable=False,
            ),
            sa.Column(
                "billing_summary_id",
                uuid_type,
                sa.ForeignKey("billing_summaries.id", ondelete="SET NULL"),
                nullable=True,
            ),
            sa.Column("collector_id", uuid_type, nullable=True),
            sa.Column("item_name", sa.String(length=255), nullable=False),
            _money("base_amount"),
            _money("commission_amount"),
            _money("subtotal"),
            sa.Column("tax_rate", sa.Numeric(5, 2), nullable=False, server_default="10"),
            _money("tax_amount"),
            _money("total_amount"),
            sa.Column("is_auto_calculated", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("display_order", sa.Integer(), nullable=False, server_default="0"),
            *_timestamps(),
        )
        op.create_index(
            "tenant_invoice_items_invoice_idx",
            "tenant_invoice_items",
            ["tenant_invoice_id"],
            unique=False,
        )


def downgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    if inspector.has_table("tenant_invoice_items"):
        op.drop_index("tenant_invoice_items_invoice_idx", table_name="tenant_invoice_items")
        op.drop_table("tenant_invoice_items")
    if inspector.has_table("tenant_invoices"):
        op.drop_table("tenant_invoices")
    if inspector.has_table("billing_summaries"):
        op.drop_table("billing_summaries")
    if inspector.has_table("billing_items"):
        op.drop_index("billing_items_status_idx", table_name="billing_items")
        op.drop_index("billing_items_org_month_idx", table_name="billing_items")
        op.drop_table("billing_items")
