"""Models for invoices issued to tenant organizations."""

from __future__ import annotations

import enum

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..database import Base
from ..db_types import RecordId, new_record_id


class TenantInvoiceStatus(str, enum.Enum):
    """Strictly ordered lifecycle of a tenant invoice."""

    DRAFT = "DRAFT"
    LOCKED = "LOCKED"
    ISSUED = "ISSUED"
    PAID = "PAID"


class TenantInvoiceItemType(str, enum.Enum):
    """Origin of a tenant invoice line."""

    COLLECTOR_BILLING = "COLLECTOR_BILLING"
    COMMISSION = "COMMISSION"


TENANT_INVOICE_STATUS_ENUM = SAEnum(
    TenantInvoiceStatus,
    name="tenant_invoice_status_enum",
    values_callable=lambda enum_cls: [member.value for member in enum_cls],
    native_enum=False,
    validate_strings=True,
)

TENANT_INVOICE_ITEM_TYPE_ENUM = SAEnum(
    TenantInvoiceItemType,
    name="tenant_invoice_item_type_enum",
    values_callable=lambda enum_cls: [member.value for member in enum_cls],
    native_enum=False,
    validate_strings=True,
)


def _money_column() -> Column:
    return Column(Numeric(14, 2), nullable=False, default=0)


class TenantInvoice(Base):
    """Monthly invoice billed to a tenant organization."""

    __tablename__ = "tenant_invoices"
    __table_args__ = (
        UniqueConstraint("org_id", "billing_month", name="tenant_invoices_org_month_key"),
    )

    id = Column(RecordId(), primary_key=True, default=new_record_id)
    org_id = Column(RecordId(), nullable=False)
    billing_month = Column(Date, nullable=False)
    invoice_number = Column(String(50), nullable=False)
    status = Column(
        TENANT_INVOICE_STATUS_ENUM, nullable=False, default=TenantInvoiceStatus.DRAFT
    )

    collectors_subtotal = _money_column()
    collectors_tax = _money_column()
    collectors_total = _money_column()
    commission_subtotal = _money_column()
    commission_tax = _money_column()
    commission_total = _money_column()
    grand_subtotal = _money_column()
    grand_tax = _money_column()
    grand_total = _money_column()

    locked_at = Column(DateTime(timezone=True), nullable=True)
    locked_by = Column(RecordId(), nullable=True)
    issued_at = Column(DateTime(timezone=True), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    created_by = Column(RecordId(), nullable=True)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
    updated_by = Column(RecordId(), nullable=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    items = relationship(
        "TenantInvoiceItem",
        back_populates="invoice",
        order_by="TenantInvoiceItem.display_order",
        cascade="all, delete-orphan",
    )


class TenantInvoiceItem(Base):
    """Editable line of a tenant invoice while it is still a draft."""

    __tablename__ = "tenant_invoice_items"
    __table_args__ = (Index("tenant_invoice_items_invoice_idx", "tenant_invoice_id"),)

    id = Column(RecordId(), primary_key=True, default=new_record_id)
    tenant_invoice_id = Column(
        RecordId(), ForeignKey("tenant_invoices.id", ondelete="CASCADE"), nullable=False
    )
    item_type = Column(TENANT_INVOICE_ITEM_TYPE_ENUM, nullable=False)
    billing_summary_id = Column(
        RecordId(), ForeignKey("billing_summaries.id", ondelete="SET NULL"), nullable=True
    )
    collector_id = Column(RecordId(), nullable=True)
    item_name = Column(String(255), nullable=False)
    base_amount = _money_column()
    commission_amount = _money_column()
    subtotal = _money_column()
    tax_rate = Column(Numeric(5, 2), nullable=False, default=10)
    tax_amount = _money_column()
    total_amount = _money_column()
    is_auto_calculated = Column(Boolean, nullable=False, default=True)
    notes = Column(Text, nullable=True)
    display_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    invoice = relationship("TenantInvoice", back_populates="items")
