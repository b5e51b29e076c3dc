"""Read operations and draft adjustments for tenant invoices."""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from .. import models, schemas
from ..repositories import PersistenceError, TenantInvoiceRepository, is_uuid
from ..security import CallerIdentity, caller_may_administer
from .billing_lifecycle import (
    BillingAuthorizationError,
    BillingNotFoundError,
    BillingStateConflictError,
)

LOGGER = logging.getLogger(__name__)

CENTS = Decimal("0.01")


def _quantize(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def _require_administrator(caller: CallerIdentity) -> None:
    if not caller_may_administer(caller):
        raise BillingAuthorizationError("System administrator privileges are required")


class TenantInvoiceService:
    """Invoice listings and manual edits while an invoice is still a draft."""

    @staticmethod
    def list_invoices(
        db: Session,
        caller: CallerIdentity,
        *,
        org_id: Optional[str] = None,
        billing_month: Optional[date] = None,
        status: Optional[models.TenantInvoiceStatus] = None,
    ) -> list[models.TenantInvoice]:
        _require_administrator(caller)

        query = (
            TenantInvoiceRepository(db)
            .active_query()
            .options(selectinload(models.TenantInvoice.items))
        )
        if org_id:
            query = query.filter(models.TenantInvoice.org_id == org_id)
        if billing_month:
            query = query.filter(models.TenantInvoice.billing_month == billing_month)
        if status:
            query = query.filter(models.TenantInvoice.status == status)

        try:
            return query.order_by(
                models.TenantInvoice.billing_month.desc(),
                models.TenantInvoice.created_at.desc(),
            ).all()
        except SQLAlchemyError as exc:
            raise PersistenceError("Database error while listing tenant invoices") from exc

    @staticmethod
    def get_invoice(db: Session, invoice_id: str, caller: CallerIdentity) -> models.TenantInvoice:
        _require_administrator(caller)
        if not is_uuid(invoice_id):
            raise BillingNotFoundError("Invoice not found")
        invoice = TenantInvoiceRepository(db).find_by_id(str(invoice_id).lower())
        if invoice is None:
            raise BillingNotFoundError("Invoice not found")
        return invoice

    @staticmethod
    def update_invoice_item(
        db: Session,
        invoice_id: str,
        item_id: str,
        payload: schemas.TenantInvoiceItemUpdate,
        caller: CallerIdentity,
    ) -> models.TenantInvoiceItem:
        """Adjust a line of a DRAFT invoice and recompute the invoice totals."""

        _require_administrator(caller)
        if not is_uuid(invoice_id):
            raise BillingNotFoundError("Invoice not found")
        invoice_id = str(invoice_id).lower()

        invoice = (
            TenantInvoiceRepository(db)
            .active_query()
            .filter(models.TenantInvoice.id == invoice_id)
            .with_for_update()
            .first()
        )
        if invoice is None:
            raise BillingNotFoundError("Invoice not found")
        if invoice.status != models.TenantInvoiceStatus.DRAFT:
            raise BillingStateConflictError("Only DRAFT invoices can be edited")

        item_key = str(item_id).lower() if is_uuid(item_id) else None
        item = next((line for line in invoice.items if line.id == item_key), None)
        if item is None:
            raise BillingNotFoundError("Invoice item not found")

        changes = payload.model_dump(exclude_unset=True)
        if changes.get("subtotal") is not None:
            item.subtotal = _quantize(changes["subtotal"])
            item.is_auto_calculated = False
        if changes.get("tax_rate") is not None:
            item.tax_rate = Decimal(changes["tax_rate"])
        if "subtotal" in changes or "tax_rate" in changes:
            subtotal = Decimal(item.subtotal)
            item.tax_amount = _quantize(subtotal * Decimal(item.tax_rate) / Decimal("100"))
            item.total_amount = _quantize(subtotal + Decimal(item.tax_amount))
        if "notes" in changes:
            item.notes = changes["notes"]

        now = datetime.now(timezone.utc)
        item.updated_at = now
        TenantInvoiceService._recalculate_totals(invoice)
        invoice.updated_at = now
        invoice.updated_by = caller.id

        try:
            db.add(invoice)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise PersistenceError("Database error while updating the invoice item") from exc

        db.refresh(item)
        LOGGER.info(
            "Tenant invoice item adjusted",
            extra={"invoice_id": invoice_id, "item_id": item.id, "fields": sorted(changes)},
        )
        return item

    @staticmethod
    def _recalculate_totals(invoice: models.TenantInvoice) -> None:
        collectors = [Decimal("0"), Decimal("0"), Decimal("0")]
        commission = [Decimal("0"), Decimal("0"), Decimal("0")]

        for line in invoice.items:
            bucket = (
                collectors
                if line.item_type == models.TenantInvoiceItemType.COLLECTOR_BILLING
                else commission
            )
            bucket[0] += Decimal(line.subtotal or 0)
            bucket[1] += Decimal(line.tax_amount or 0)
            bucket[2] += Decimal(line.total_amount or 0)

        invoice.collectors_subtotal, invoice.collectors_tax, invoice.collectors_total = (
            _quantize(value) for value in collectors
        )
        invoice.commission_subtotal, invoice.commission_tax, invoice.commission_total = (
            _quantize(value) for value in commission
        )
        invoice.grand_subtotal = _quantize(collectors[0] + commission[0])
        invoice.grand_tax = _quantize(collectors[1] + commission[1])
        invoice.grand_total = _quantize(collectors[2] + commission[2])
