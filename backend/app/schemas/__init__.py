"""Expose Pydantic schemas for convenient imports."""

from .auth import AdminLoginRequest, TokenResponse
from .billing import (
    BillingItemApproveRequest,
    BillingItemApproveResponse,
    BillingItemListResponse,
    BillingItemRead,
    BillingItemUpdate,
    BillingSummaryCountResponse,
    BillingSummaryListResponse,
    BillingSummaryRead,
    BillingSummaryRejectRequest,
    BillingSummarySubmitRequest,
    PaginatedResponse,
)
from .tenant_invoice import (
    TenantInvoiceItemRead,
    TenantInvoiceItemResponse,
    TenantInvoiceItemUpdate,
    TenantInvoiceListResponse,
    TenantInvoiceRead,
    TenantInvoiceResponse,
    TenantInvoiceTransitionResponse,
)

__all__ = [
    "AdminLoginRequest",
    "TokenResponse",
    "BillingItemApproveRequest",
    "BillingItemApproveResponse",
    "BillingItemListResponse",
    "BillingItemRead",
    "BillingItemUpdate",
    "BillingSummaryCountResponse",
    "BillingSummaryListResponse",
    "BillingSummaryRead",
    "BillingSummaryRejectRequest",
    "BillingSummarySubmitRequest",
    "PaginatedResponse",
    "TenantInvoiceItemRead",
    "TenantInvoiceItemResponse",
    "TenantInvoiceItemUpdate",
    "TenantInvoiceListResponse",
    "TenantInvoiceRead",
    "TenantInvoiceResponse",
    "TenantInvoiceTransitionResponse",
]
