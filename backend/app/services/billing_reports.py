"""Aggregated status counts across the billing tables."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import models
from ..repositories import PersistenceError


@dataclass
class BillingStatusSnapshot:
    """Per-status counts of active billing records."""

    billing_items: Dict[str, int] = field(default_factory=dict)
    billing_summaries: Dict[str, int] = field(default_factory=dict)
    tenant_invoices: Dict[str, int] = field(default_factory=dict)


class BillingReportService:
    """Read-only reporting helpers used by the operational scripts."""

    @staticmethod
    def _count_by_status(
        db: Session,
        model,
        statuses,
        *,
        billing_month: Optional[date],
        org_id: Optional[str],
    ) -> Dict[str, int]:
        query = db.query(model.status, func.count(model.id)).filter(model.deleted_at.is_(None))
        if billing_month:
            query = query.filter(model.billing_month == billing_month)
        if org_id:
            query = query.filter(model.org_id == org_id)
        counts = {status.value: 0 for status in statuses}
        for status, total in query.group_by(model.status).all():
            counts[status.value] = int(total)
        return counts

    @staticmethod
    def status_snapshot(
        db: Session,
        *,
        billing_month: Optional[date] = None,
        org_id: Optional[str] = None,
    ) -> BillingStatusSnapshot:
        try:
            return BillingStatusSnapshot(
                billing_items=BillingReportService._count_by_status(
                    db,
                    models.BillingItem,
                    models.BillingItemStatus,
                    billing_month=billing_month,
                    org_id=org_id,
                ),
                billing_summaries=BillingReportService._count_by_status(
                    db,
                    models.BillingSummary,
                    models.BillingSummaryStatus,
                    billing_month=billing_month,
                    org_id=org_id,
                ),
                tenant_invoices=BillingReportService._count_by_status(
                    db,
                    models.TenantInvoice,
                    models.TenantInvoiceStatus,
                    billing_month=billing_month,
                    org_id=org_id,
                ),
            )
        except SQLAlchemyError as exc:
            raise PersistenceError("Database error while counting billing statuses") from exc
