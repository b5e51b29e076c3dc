"""Read operations for collector billing summaries."""

from __future__ import annotations

from datetime import date
from typing import Iterable, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import models
from ..repositories import BillingSummaryRepository, PersistenceError
from ..security import CallerIdentity, caller_may_administer
from .billing_items import ensure_organization_access


class BillingSummaryService:
    """Listing of billing summaries scoped to the caller's organizations."""

    @staticmethod
    def list_summaries(
        db: Session,
        caller: CallerIdentity,
        *,
        org_id: Optional[str] = None,
        billing_month: Optional[date] = None,
        status: Optional[models.BillingSummaryStatus] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[Iterable[models.BillingSummary], int]:
        query = BillingSummaryRepository(db).active_query()
        if org_id is not None:
            ensure_organization_access(caller, org_id)
            query = query.filter(models.BillingSummary.org_id == org_id)
        elif not caller_may_administer(caller):
            query = query.filter(models.BillingSummary.org_id.in_(caller.organization_ids))
        if billing_month:
            query = query.filter(models.BillingSummary.billing_month == billing_month)
        if status:
            query = query.filter(models.BillingSummary.status == status)

        try:
            total = query.count()
            items = (
                query.order_by(
                    models.BillingSummary.billing_month.desc(),
                    models.BillingSummary.collector_id.asc(),
                )
                .offset(max(skip, 0))
                .limit(max(limit, 1))
                .all()
            )
        except SQLAlchemyError as exc:
            raise PersistenceError("Database error while listing billing summaries") from exc
        return items, total
