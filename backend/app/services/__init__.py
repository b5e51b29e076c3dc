"""Service layer encapsulating business logic for API routers."""

from .billing_items import BillingItemService
from .billing_lifecycle import (
    BillingAuthorizationError,
    BillingLifecycleError,
    BillingLifecycleService,
    BillingNotFoundError,
    BillingStateConflictError,
    BillingValidationError,
)
from .billing_periods import BillingPeriodService
from .billing_reports import BillingReportService, BillingStatusSnapshot
from .billing_summaries import BillingSummaryService
from .tenant_invoices import TenantInvoiceService

__all__ = [
    "BillingItemService",
    "BillingAuthorizationError",
    "BillingLifecycleError",
    "BillingLifecycleService",
    "BillingNotFoundError",
    "BillingStateConflictError",
    "BillingValidationError",
    "BillingPeriodService",
    "BillingReportService",
    "BillingStatusSnapshot",
    "BillingSummaryService",
    "TenantInvoiceService",
]
