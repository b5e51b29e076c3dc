"""Expose SQLAlchemy models for convenient imports."""

from .billing_item import BillingItem, BillingItemStatus, CommissionType
from .billing_summary import BillingSummary, BillingSummaryStatus
from .tenant_invoice import (
    TenantInvoice,
    TenantInvoiceItem,
    TenantInvoiceItemType,
    TenantInvoiceStatus,
)

__all__ = [
    "BillingItem",
    "BillingItemStatus",
    "CommissionType",
    "BillingSummary",
    "BillingSummaryStatus",
    "TenantInvoice",
    "TenantInvoiceItem",
    "TenantInvoiceItemType",
    "TenantInvoiceStatus",
]
