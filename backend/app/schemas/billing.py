"""Pydantic schemas for billing items and billing summaries."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Generic, Optional, Sequence, TypeVar

from pydantic import AfterValidator, BaseModel, ConfigDict, Field

from ..models.billing_item import BillingItemStatus, CommissionType
from ..models.billing_summary import BillingSummaryStatus
from ..repositories import is_uuid

RowT = TypeVar("RowT")


def _canonical_record_id(value: str) -> str:
    if not is_uuid(value):
        raise ValueError("must be a UUID in 8-4-4-4-12 form")
    return value.lower()


BillingRecordId = Annotated[str, AfterValidator(_canonical_record_id)]


class PaginatedResponse(BaseModel, Generic[RowT]):
    """One page of a billing listing and the size of the full result."""

    items: Sequence[RowT]
    total: int = Field(..., ge=0)
    limit: int = Field(..., ge=1)
    skip: int = Field(..., ge=0)


class BillingItemApproveRequest(BaseModel):
    """Identifiers of the billing items to approve."""

    item_ids: list[BillingRecordId] = Field(..., min_length=1)


class BillingItemApproveResponse(BaseModel):
    success: bool = True
    count: int = Field(..., ge=0)
    message: str


class BillingItemUpdate(BaseModel):
    """Editable fields of a billing item; business fields only while DRAFT."""

    item_name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    amount: Optional[Decimal] = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    commission_type: Optional[CommissionType] = None
    commission_amount: Optional[Decimal] = Field(
        default=None, ge=0, max_digits=12, decimal_places=2
    )
    notes: Optional[str] = Field(default=None, max_length=500)


class BillingItemRead(BaseModel):
    id: str
    org_id: str
    collector_id: Optional[str] = None
    billing_month: date
    item_name: str
    amount: Decimal
    commission_type: Optional[CommissionType] = None
    commission_amount: Optional[Decimal] = None
    status: BillingItemStatus
    approved_at: Optional[datetime] = None
    approved_by: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class BillingItemListResponse(PaginatedResponse[BillingItemRead]):
    """Paginated billing item listing."""


class BillingSummarySubmitRequest(BaseModel):
    """Identifiers of the billing summaries targeted by a review command."""

    billing_summary_ids: list[BillingRecordId] = Field(..., min_length=1)


class BillingSummaryRejectRequest(BillingSummarySubmitRequest):
    rejection_reason: str = Field(..., min_length=1, max_length=500)


class BillingSummaryCountResponse(BaseModel):
    message: str
    count: int = Field(..., ge=0)


class BillingSummaryRead(BaseModel):
    id: str
    org_id: str
    collector_id: str
    billing_month: date
    subtotal_amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    status: BillingSummaryStatus
    submitted_at: Optional[datetime] = None
    submitted_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    approved_by: Optional[str] = None
    rejected_at: Optional[datetime] = None
    rejected_by: Optional[str] = None
    rejection_reason: Optional[str] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class BillingSummaryListResponse(PaginatedResponse[BillingSummaryRead]):
    """Paginated billing summary listing."""
