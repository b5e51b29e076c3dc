"""Router exposing billing item listing, edits and bulk approval."""

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
from ..services import BillingItemService, BillingLifecycleError, BillingLifecycleService
from .dependencies import get_billing_lifecycle_service, parse_billing_month
from .errors import http_error_for, persistence_failure

LOGGER = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=schemas.BillingItemListResponse)
def list_billing_items(
    db: Session = Depends(get_db),
    caller: CallerIdentity = Depends(get_current_caller),
    org_id: Optional[UUID] = Query(None, description="Organization owning the items"),
    billing_month: Optional[str] = Query(None, description="Billing month as YYYY-MM"),
    status: Optional[models.BillingItemStatus] = Query(None, description="Filter by status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
) -> schemas.BillingItemListResponse:
    month = parse_billing_month(billing_month)
    try:
        items, total = BillingItemService.list_items(
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
        return persistence_failure(LOGGER, "Failed to list billing items", exc, caller_id=caller.id)
    return schemas.BillingItemListResponse(items=items, total=total, limit=limit, skip=skip)


@router.post(
    "/approve",
    response_model=schemas.BillingItemApproveResponse,
    summary="Approve billing items in bulk",
)
def approve_billing_items(
    payload: schemas.BillingItemApproveRequest,
    caller: CallerIdentity = Depends(get_current_caller),
    service: BillingLifecycleService = Depends(get_billing_lifecycle_service),
) -> schemas.BillingItemApproveResponse:
    try:
        count = service.approve_items(payload.item_ids, approver_id=caller.id)
    except BillingLifecycleError as exc:
        raise http_error_for(exc) from exc
    except PersistenceError as exc:
        return persistence_failure(
            LOGGER,
            "Failed to approve billing items",
            exc,
            requested=len(payload.item_ids),
            caller_id=caller.id,
        )
    return schemas.BillingItemApproveResponse(
        success=True,
        count=count,
        message=f"Approved {count} billing items",
    )


@router.patch("/{item_id}", response_model=schemas.BillingItemRead)
def update_billing_item(
    item_id: str,
    payload: schemas.BillingItemUpdate,
    db: Session = Depends(get_db),
    caller: CallerIdentity = Depends(get_current_caller),
) -> schemas.BillingItemRead:
    try:
        item = BillingItemService.update_item(db, item_id, payload, caller)
    except BillingLifecycleError as exc:
        raise http_error_for(exc) from exc
    except PersistenceError as exc:
        return persistence_failure(LOGGER, "Failed to update billing item", exc, item_id=item_id)
    return schemas.BillingItemRead.model_validate(item)
