"""Router exposing billing summary listing and the review workflow."""

from __future__ import annotations

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .. import models, schemas
from ..database import get_db
from ..repositories import PersistenceError
from ..security import CallerIdentity, get_current_caller
from ..services import BillingLifecycleError, BillingLifecycleService, BillingSummaryService
from .dependencies import (
    get_billing_lifecycle_service,
    get_current_administrator,
    parse_billing_month,
)
from .errors import http_error_for, persistence_failure

LOGGER = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=schemas.BillingSummaryListResponse)
def list_billing_summaries(
    db: Session = Depends(get_db),
    caller: CallerIdentity = Depends(get_current_caller),
    org_id: Optional[UUID] = Query(None, description="Organization owning the summaries"),
    billing_month: Optional[str] = Query(None, description="Billing month as YYYY-MM"),
    status: Optional[models.BillingSummaryStatus] = Query(None, description="Filter by status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
) -> schemas.BillingSummaryListResponse:
    month = parse_billing_month(billing_month)
    try:
        items, total = BillingSummaryService.list_summaries(
            db,
            caller,
            org_id=str(org_id) if org_id else None,
            billing_month=month,
            status=status,
            skip=skip,
            limit=limit,
        )
    except BillingLifecycleError as exc:
        raise http_error_for(exc) from exc
    except PersistenceError as exc:
        return persistence_failure(LOGGER, "Failed to list billing summaries", exc, caller_id=caller.id)
    return schemas.BillingSummaryListResponse(items=items, total=total, limit=limit, skip=skip)


@router.post(
    "/submit",
    response_model=schemas.BillingSummaryCountResponse,
    summary="Submit draft summaries to the system administrator",
)
def submit_billing_summaries(
    payload: schemas.BillingSummarySubmitRequest,
    caller: CallerIdentity = Depends(get_current_caller),
    service: BillingLifecycleService = Depends(get_billing_lifecycle_service),
) -> schemas.BillingSummaryCountResponse:
    try:
        count = service.submit_summaries(payload.billing_summary_ids, submitter_id=caller.id)
    except BillingLifecycleError as exc:
        raise http_error_for(exc) from exc
    except PersistenceError as exc:
        return persistence_failure(
            LOGGER,
            "Failed to submit billing summaries",
            exc,
            requested=len(payload.billing_summary_ids),
            caller_id=caller.id,
        )
    return schemas.BillingSummaryCountResponse(
        message=f"Submitted {count} billing summaries", count=count
    )


@router.post(
    "/approve",
    response_model=schemas.BillingSummaryCountResponse,
    summary="Approve submitted summaries",
)
def approve_billing_summaries(
    payload: schemas.BillingSummarySubmitRequest,
    caller: CallerIdentity = Depends(get_current_administrator),
    service: BillingLifecycleService = Depends(get_billing_lifecycle_service),
) -> schemas.BillingSummaryCountResponse:
    try:
        count = service.approve_summaries(payload.billing_summary_ids, caller)
    except BillingLifecycleError as exc:
        raise http_error_for(exc) from exc
    except PersistenceError as exc:
        return persistence_failure(LOGGER, "Failed to approve billing summaries", exc, caller_id=caller.id)
    return schemas.BillingSummaryCountResponse(
        message=f"Approved {count} billing summaries", count=count
    )


@router.post(
    "/reject",
    response_model=schemas.BillingSummaryCountResponse,
    summary="Send submitted summaries back to the collector",
)
def reject_billing_summaries(
    payload: schemas.BillingSummaryRejectRequest,
    caller: CallerIdentity = Depends(get_current_administrator),
    service: BillingLifecycleService = Depends(get_billing_lifecycle_service),
) -> schemas.BillingSummaryCountResponse:
    try:
        count = service.reject_summaries(
            payload.billing_summary_ids, payload.rejection_reason, caller
        )
    except BillingLifecycleError as exc:
        raise http_error_for(exc) from exc
    except PersistenceError as exc:
        return persistence_failure(LOGGER, "Failed to reject billing summaries", exc, caller_id=caller.id)
    return schemas.BillingSummaryCountResponse(
        message=f"Rejected {count} billing summaries", count=count
    )
