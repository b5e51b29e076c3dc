"""SQLAlchemy model for collector billing summaries."""

from __future__ import annotations

import enum

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    Enum as SAEnum,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.sql import func

from ..database import Base
from ..db_types import RecordId, new_record_id


class BillingSummaryStatus(str, enum.Enum):
    """Review workflow for a collector's monthly summary."""

    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


BILLING_SUMMARY_STATUS_ENUM = SAEnum(
    BillingSummaryStatus,
    name="billing_summary_status_enum",
    values_callable=lambda enum_cls: [member.value for member in enum_cls],
    native_enum=False,
    validate_strings=True,
)


class BillingSummary(Base):
    """Aggregate of billing items per collector and billing month."""

    __tablename__ = "billing_summaries"
    __table_args__ = (
        UniqueConstraint(
            "org_id",
            "collector_id",
            "billing_month",
            name="billing_summaries_org_collector_month_key",
        ),
    )

    id = Column(RecordId(), primary_key=True, default=new_record_id)
    org_id = Column(RecordId(), nullable=False)
    collector_id = Column(RecordId(), nullable=False)
    billing_month = Column(Date, nullable=False)
    subtotal_amount = Column(Numeric(12, 2), nullable=False, default=0)
    tax_amount = Column(Numeric(12, 2), nullable=False, default=0)
    total_amount = Column(Numeric(12, 2), nullable=False, default=0)
    status = Column(
        BILLING_SUMMARY_STATUS_ENUM, nullable=False, default=BillingSummaryStatus.DRAFT
    )
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    submitted_by = Column(RecordId(), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    approved_by = Column(RecordId(), nullable=True)
    rejected_at = Column(DateTime(timezone=True), nullable=True)
    rejected_by = Column(RecordId(), nullable=True)
    rejection_reason = Column(String(500), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
    updated_by = Column(RecordId(), nullable=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True)
