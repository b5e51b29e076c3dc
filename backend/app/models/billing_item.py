"""SQLAlchemy model for chargeable billing items."""

from __future__ import annotations

import enum

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Enum as SAEnum,
    Index,
    Numeric,
    String,
    Text,
)
from sqlalchemy.sql import func

from ..database import Base
from ..db_types import RecordId, new_record_id


class BillingItemStatus(str, enum.Enum):
    """Lifecycle of a billing item."""

    DRAFT = "DRAFT"
    APPROVED = "APPROVED"
    PAID = "PAID"


class CommissionType(str, enum.Enum):
    """How the commission of a billing item was computed."""

    PERCENTAGE = "PERCENTAGE"
    FIXED_AMOUNT = "FIXED_AMOUNT"
    MANUAL = "MANUAL"


BILLING_ITEM_STATUS_ENUM = SAEnum(
    BillingItemStatus,
    name="billing_item_status_enum",
    values_callable=lambda enum_cls: [member.value for member in enum_cls],
    native_enum=False,
    validate_strings=True,
)

COMMISSION_TYPE_ENUM = SAEnum(
    CommissionType,
    name="commission_type_enum",
    values_callable=lambda enum_cls: [member.value for member in enum_cls],
    native_enum=False,
    validate_strings=True,
)


class BillingItem(Base):
    """One chargeable line for an organization within a billing month."""

    __tablename__ = "billing_items"
    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_billing_items_amount_non_negative"),
        CheckConstraint(
            "commission_amount IS NULL OR commission_amount >= 0",
            name="ck_billing_items_commission_non_negative",
        ),
        Index("billing_items_org_month_idx", "org_id", "billing_month"),
        Index("billing_items_status_idx", "status"),
    )

    id = Column(RecordId(), primary_key=True, default=new_record_id)
    org_id = Column(RecordId(), nullable=False)
    collector_id = Column(RecordId(), nullable=True)
    billing_month = Column(Date, nullable=False)
    item_name = Column(String(255), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    commission_type = Column(COMMISSION_TYPE_ENUM, nullable=True)
    commission_amount = Column(Numeric(12, 2), nullable=True)
    status = Column(BILLING_ITEM_STATUS_ENUM, nullable=False, default=BillingItemStatus.DRAFT)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    approved_by = Column(RecordId(), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
    deleted_at = Column(DateTime(timezone=True), nullable=True)
