"""Read and edit operations for billing items."""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Iterable, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import models, schemas
from ..repositories import BillingItemRepository, PersistenceError, is_uuid
from ..security import CallerIdentity, caller_may_administer
from .billing_lifecycle import (
    BillingAuthorizationError,
    BillingNotFoundError,
    BillingStateConflictError,
    BillingValidationError,
)

LOGGER = logging.getLogger(__name__)

BUSINESS_FIELDS = ("item_name", "amount", "commission_type", "commission_amount")


def ensure_organization_access(caller: CallerIdentity, org_id: Optional[str]) -> None:
    """Reject callers reading or editing another tenant's records."""

    if caller_may_administer(caller):
        return
    if org_id is None or not caller.belongs_to(org_id):
        raise BillingAuthorizationError("You do not have access to this organization")


class BillingItemService:
    """Listing and guarded edits of billing items."""

    @staticmethod
    def list_items(
        db: Session,
        caller: CallerIdentity,
        *,
        org_id: Optional[str] = None,
        billing_month: Optional[date] = None,
        status: Optional[models.BillingItemStatus] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[Iterable[models.BillingItem], int]:
        query = BillingItemRepository(db).active_query()
        if org_id is not None:
            ensure_organization_access(caller, org_id)
            query = query.filter(models.BillingItem.org_id == org_id)
        elif not caller_may_administer(caller):
            query = query.filter(models.BillingItem.org_id.in_(caller.organization_ids))
        if billing_month:
            query = query.filter(models.BillingItem.billing_month == billing_month)
        if status:
            query = query.filter(models.BillingItem.status == status)

        try:
            total = query.count()
            items = (
                query.order_by(
                    models.BillingItem.billing_month.desc(),
                    models.BillingItem.created_at.asc(),
                )
                .offset(max(skip, 0))
                .limit(max(limit, 1))
                .all()
            )
        except SQLAlchemyError as exc:
            raise PersistenceError("Database error while listing billing items") from exc
        return items, total

    @staticmethod
    def update_item(
        db: Session,
        item_id: str,
        payload: schemas.BillingItemUpdate,
        caller: CallerIdentity,
    ) -> models.BillingItem:
        """Apply a partial edit; business fields are frozen once approved."""

        if not is_uuid(item_id):
            raise BillingNotFoundError("Billing item not found")

        repository = BillingItemRepository(db)
        item = repository.find_by_id(str(item_id).lower())
        if item is None:
            raise BillingNotFoundError("Billing item not found")
        ensure_organization_access(caller, item.org_id)

        changes = payload.model_dump(exclude_unset=True)
        for required in ("item_name", "amount"):
            if required in changes and changes[required] is None:
                raise BillingValidationError(f"{required} cannot be null", field=required)
        touched_business_fields = [name for name in BUSINESS_FIELDS if name in changes]
        if touched_business_fields and item.status != models.BillingItemStatus.DRAFT:
            raise BillingStateConflictError(
                f"Only DRAFT billing items can be edited (status is {item.status.value})"
            )

        for key, value in changes.items():
            setattr(item, key, value)
        item.updated_at = datetime.now(timezone.utc)

        try:
            db.add(item)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise PersistenceError("Database error while updating the billing item") from exc

        db.refresh(item)
        LOGGER.info(
            "Billing item updated",
            extra={"item_id": item.id, "fields": sorted(changes), "caller_id": caller.id},
        )
        return item
