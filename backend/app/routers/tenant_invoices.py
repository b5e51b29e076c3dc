"""Router exposing the tenant invoice lifecycle."""

from __future__ import annotations

import logging
from typing import Callable, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .. import models, schemas
from ..database import get_db
from ..repositories import PersistenceError
from ..security import CallerIdentity, get_current_caller
from ..services import BillingLifecycleError, BillingLifecycleService, TenantInvoiceService
from .dependencies import get_billing_lifecycle_service, parse_billing_month
from .errors import http_error_for, persistence_failure

LOGGER = logging.getLogger(__name__)

router = APIRouter()


def _run_transition(
    invoice_id: str,
    caller: CallerIdentity,
    action: Callable[[str, CallerIdentity], models.TenantInvoice],
    message: str,
):
    try:
        invoice = action(invoice_id, caller)
    except BillingLifecycleError as exc:
        raise http_error_for(exc) from exc
    except PersistenceError as exc:
        return persistence_failure(
            LOGGER,
            "Tenant invoice transition failed",
            exc,
            invoice_id=invoice_id,
            caller_id=caller.id,
        )
    return schemas.TenantInvoiceTransitionResponse(
        message=message, data=schemas.TenantInvoiceRead.model_validate(invoice)
    )


@router.get("", response_model=schemas.TenantInvoiceListResponse)
def list_tenant_invoices(
    db: Session = Depends(get_db),
    caller: CallerIdentity = Depends(get_current_caller),
    org_id: Optional[UUID] = Query(None, description="Tenant organization"),
    billing_month: Optional[str] = Query(None, description="Billing month as YYYY-MM"),
    status: Optional[models.TenantInvoiceStatus] = Query(None, description="Filter by status"),
) -> schemas.TenantInvoiceListResponse:
    month = parse_billing_month(billing_month)
    try:
        invoices = TenantInvoiceService.list_invoices(
            db,
            caller,
            org_id=str(org_id) if org_id else None,
            billing_month=month,
            status=status,
        )
    except BillingLifecycleError as exc:
        raise http_error_for(exc) from exc
    except PersistenceError as exc:
        return persistence_failure(LOGGER, "Failed to list tenant invoices", exc, caller_id=caller.id)
    return schemas.TenantInvoiceListResponse(
        data=[schemas.TenantInvoiceRead.model_validate(invoice) for invoice in invoices]
    )


@router.get("/{invoice_id}", response_model=schemas.TenantInvoiceResponse)
def get_tenant_invoice(
    invoice_id: str,
    db: Session = Depends(get_db),
    caller: CallerIdentity = Depends(get_current_caller),
) -> schemas.TenantInvoiceResponse:
    try:
        invoice = TenantInvoiceService.get_invoice(db, invoice_id, caller)
    except BillingLifecycleError as exc:
        raise http_error_for(exc) from exc
    except PersistenceError as exc:
        return persistence_failure(LOGGER, "Failed to load tenant invoice", exc, invoice_id=invoice_id)
    return schemas.TenantInvoiceResponse(data=schemas.TenantInvoiceRead.model_validate(invoice))


@router.post(
    "/{invoice_id}/lock",
    response_model=schemas.TenantInvoiceTransitionResponse,
    summary="Lock a draft invoice so its items can no longer change",
)
def lock_tenant_invoice(
    invoice_id: str,
    caller: CallerIdentity = Depends(get_current_caller),
    service: BillingLifecycleService = Depends(get_billing_lifecycle_service),
):
    return _run_transition(invoice_id, caller, service.lock_invoice, "Invoice locked")


@router.post(
    "/{invoice_id}/issue",
    response_model=schemas.TenantInvoiceTransitionResponse,
    summary="Issue a locked invoice to the tenant",
)
def issue_tenant_invoice(
    invoice_id: str,
    caller: CallerIdentity = Depends(get_current_caller),
    service: BillingLifecycleService = Depends(get_billing_lifecycle_service),
):
    return _run_transition(invoice_id, caller, service.issue_invoice, "Invoice issued")


@router.patch(
    "/{invoice_id}/paid",
    response_model=schemas.TenantInvoiceTransitionResponse,
    summary="Record the payment of an issued invoice",
)
def mark_tenant_invoice_paid(
    invoice_id: str,
    caller: CallerIdentity = Depends(get_current_caller),
    service: BillingLifecycleService = Depends(get_billing_lifecycle_service),
):
    return _run_transition(invoice_id, caller, service.mark_invoice_paid, "Payment confirmed")


@router.put(
    "/{invoice_id}/items/{item_id}",
    response_model=schemas.TenantInvoiceItemResponse,
    summary="Adjust a line of a draft invoice",
)
def update_tenant_invoice_item(
    invoice_id: str,
    item_id: str,
    payload: schemas.TenantInvoiceItemUpdate,
    db: Session = Depends(get_db),
    caller: CallerIdentity = Depends(get_current_caller),
) -> schemas.TenantInvoiceItemResponse:
    try:
        item = TenantInvoiceService.update_invoice_item(db, invoice_id, item_id, payload, caller)
    except BillingLifecycleError as exc:
        raise http_error_for(exc) from exc
    except PersistenceError as exc:
        return persistence_failure(
            LOGGER, "Failed to update tenant invoice item", exc, invoice_id=invoice_id, item_id=item_id
        )
    return schemas.TenantInvoiceItemResponse(data=schemas.TenantInvoiceItemRead.model_validate(item))
