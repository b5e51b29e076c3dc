"""Routers package."""

from .auth import router as auth_router
from .billing_items import router as billing_items_router
from .billing_summaries import router as billing_summaries_router
from .tenant_invoices import router as tenant_invoices_router

__all__ = [
    "auth_router",
    "billing_items_router",
    "billing_summaries_router",
    "tenant_invoices_router",
]
