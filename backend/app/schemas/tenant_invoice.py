"""Pydantic schemas for tenant invoices."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ..models.tenant_invoice import TenantInvoiceItemType, TenantInvoiceStatus


class TenantInvoiceItemRead(BaseModel):
    id: str
    tenant_invoice_id: str
    item_type: TenantInvoiceItemType
    billing_summary_id: Optional[str] = None
    collector_id: Optional[str] = None
    item_name: str
    base_amount: Decimal
    commission_amount: Decimal
    subtotal: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    is_auto_calculated: bool
    notes: Optional[str] = None
    display_order: int

    model_config = ConfigDict(from_attributes=True)


class TenantInvoiceItemUpdate(BaseModel):
    """Manual adjustment of a draft invoice line."""

    subtotal: Optional[Decimal] = Field(default=None, ge=0, max_digits=14, decimal_places=2)
    tax_rate: Optional[Decimal] = Field(default=None, ge=0, le=100)
    notes: Optional[str] = Field(default=None, max_length=1000)


class TenantInvoiceRead(BaseModel):
    id: str
    org_id: str
    billing_month: date
    invoice_number: str
    status: TenantInvoiceStatus
    collectors_subtotal: Decimal
    collectors_tax: Decimal
    collectors_total: Decimal
    commission_subtotal: Decimal
    commission_tax: Decimal
    commission_total: Decimal
    grand_subtotal: Decimal
    grand_tax: Decimal
    grand_total: Decimal
    locked_at: Optional[datetime] = None
    locked_by: Optional[str] = None
    issued_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    updated_by: Optional[str] = None
    items: list[TenantInvoiceItemRead] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class TenantInvoiceTransitionResponse(BaseModel):
    """Result of a lifecycle transition."""

    message: str
    data: TenantInvoiceRead


class TenantInvoiceResponse(BaseModel):
    data: TenantInvoiceRead


class TenantInvoiceListResponse(BaseModel):
    data: list[TenantInvoiceRead]


class TenantInvoiceItemResponse(BaseModel):
    data: TenantInvoiceItemRead
