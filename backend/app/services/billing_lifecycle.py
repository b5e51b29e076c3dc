"""Status transitions for billing items, billing summaries and tenant invoices."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from .. import models
from ..repositories import BillingUnitOfWork, is_uuid
from ..security import CallerIdentity, caller_may_administer

LOGGER = logging.getLogger(__name__)


class BillingLifecycleError(RuntimeError):
    """Base class for failures of a billing transition."""


class BillingValidationError(BillingLifecycleError):
    """Raised when a command is malformed, before any storage access."""

    def __init__(self, message: str, *, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field


class BillingAuthorizationError(BillingLifecycleError):
    """Raised when the caller lacks the privilege an operation requires."""


class BillingNotFoundError(BillingLifecycleError):
    """Raised when the referenced record does not exist or was soft-deleted."""


class BillingStateConflictError(BillingLifecycleError):
    """Raised when a record is not in the state an operation starts from."""


@dataclass(frozen=True)
class InvoiceTransition:
    """One edge of the tenant invoice lifecycle."""

    name: str
    source: models.TenantInvoiceStatus
    target: models.TenantInvoiceStatus
    timestamp_field: str
    actor_field: Optional[str] = None

    @property
    def rejection_message(self) -> str:
        return f"Only {self.source.value} invoices can be {self.name}"


LOCK = InvoiceTransition(
    name="locked",
    source=models.TenantInvoiceStatus.DRAFT,
    target=models.TenantInvoiceStatus.LOCKED,
    timestamp_field="locked_at",
    actor_field="locked_by",
)
ISSUE = InvoiceTransition(
    name="issued",
    source=models.TenantInvoiceStatus.LOCKED,
    target=models.TenantInvoiceStatus.ISSUED,
    timestamp_field="issued_at",
)
MARK_PAID = InvoiceTransition(
    name="marked as paid",
    source=models.TenantInvoiceStatus.ISSUED,
    target=models.TenantInvoiceStatus.PAID,
    timestamp_field="paid_at",
)


def normalize_ids(raw_ids: Optional[Iterable[Any]], field: str) -> list[str]:
    """Return a de-duplicated list of UUID strings or raise a validation error."""

    if raw_ids is None or isinstance(raw_ids, (str, bytes)):
        raise BillingValidationError(f"{field} must be a list of identifiers", field=field)
    ids = list(raw_ids)
    if not ids:
        raise BillingValidationError(f"{field} must contain at least one identifier", field=field)

    normalized: list[str] = []
    for raw in ids:
        if not is_uuid(raw):
            raise BillingValidationError(f"{field} contains an invalid identifier: {raw!r}", field=field)
        value = str(raw).lower()
        if value not in normalized:
            normalized.append(value)
    return normalized


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BillingLifecycleService:
    """Validates and applies billing status transitions.

    The service keeps no state between calls. Every operation receives the
    resolved caller explicitly, re-reads current status through the unit of
    work and writes inside one transaction.
    """

    def __init__(self, uow: BillingUnitOfWork, *, clock=_utcnow) -> None:
        self.uow = uow
        self._clock = clock

    # Billing items

    def approve_items(
        self,
        item_ids: Iterable[Any],
        *,
        approver_id: str,
    ) -> int:
        """Approve every active item in ``item_ids``.

        Items already approved or paid still match and are counted again.
        """

        ids = normalize_ids(item_ids, "item_ids")
        criteria: dict[str, Any] = {"id": ids}

        now = self._clock()
        patch = {
            "status": models.BillingItemStatus.APPROVED,
            "approved_at": now,
            "approved_by": approver_id,
            "updated_at": now,
        }
        count = self._bulk_update("billing_items", criteria, patch)
        LOGGER.info(
            "Billing items approved",
            extra={"requested": len(ids), "approved": count, "approver_id": approver_id},
        )
        return count

    # Billing summaries

    def submit_summaries(
        self,
        summary_ids: Iterable[Any],
        *,
        submitter_id: str,
    ) -> int:
        """Move DRAFT summaries to SUBMITTED; other ids are left out of the count."""

        ids = normalize_ids(summary_ids, "billing_summary_ids")
        criteria = {"id": ids, "status": models.BillingSummaryStatus.DRAFT}

        now = self._clock()
        patch = {
            "status": models.BillingSummaryStatus.SUBMITTED,
            "submitted_at": now,
            "submitted_by": submitter_id,
            "updated_at": now,
            "updated_by": submitter_id,
        }
        count = self._bulk_update("billing_summaries", criteria, patch)
        LOGGER.info(
            "Billing summaries submitted",
            extra={"requested": len(ids), "submitted": count, "submitter_id": submitter_id},
        )
        return count

    def approve_summaries(self, summary_ids: Iterable[Any], caller: CallerIdentity) -> int:
        self._require_administrator(caller)
        ids = normalize_ids(summary_ids, "billing_summary_ids")

        now = self._clock()
        patch = {
            "status": models.BillingSummaryStatus.APPROVED,
            "approved_at": now,
            "approved_by": caller.id,
            "updated_at": now,
            "updated_by": caller.id,
        }
        count = self._bulk_update(
            "billing_summaries",
            {"id": ids, "status": models.BillingSummaryStatus.SUBMITTED},
            patch,
        )
        LOGGER.info("Billing summaries approved", extra={"approved": count, "caller_id": caller.id})
        return count

    def reject_summaries(
        self, summary_ids: Iterable[Any], reason: Optional[str], caller: CallerIdentity
    ) -> int:
        self._require_administrator(caller)
        ids = normalize_ids(summary_ids, "billing_summary_ids")
        reason = (reason or "").strip()
        if not reason:
            raise BillingValidationError("rejection_reason is required", field="rejection_reason")

        now = self._clock()
        patch = {
            "status": models.BillingSummaryStatus.REJECTED,
            "rejected_at": now,
            "rejected_by": caller.id,
            "rejection_reason": reason,
            "updated_at": now,
            "updated_by": caller.id,
        }
        count = self._bulk_update(
            "billing_summaries",
            {"id": ids, "status": models.BillingSummaryStatus.SUBMITTED},
            patch,
        )
        LOGGER.info("Billing summaries rejected", extra={"rejected": count, "caller_id": caller.id})
        return count

    # Tenant invoices

    def lock_invoice(self, invoice_id: str, caller: CallerIdentity) -> models.TenantInvoice:
        return self._advance_invoice(invoice_id, caller, LOCK)

    def issue_invoice(self, invoice_id: str, caller: CallerIdentity) -> models.TenantInvoice:
        return self._advance_invoice(invoice_id, caller, ISSUE)

    def mark_invoice_paid(self, invoice_id: str, caller: CallerIdentity) -> models.TenantInvoice:
        return self._advance_invoice(invoice_id, caller, MARK_PAID)

    def _advance_invoice(
        self, invoice_id: str, caller: CallerIdentity, transition: InvoiceTransition
    ) -> models.TenantInvoice:
        self._require_administrator(caller)
        if not is_uuid(invoice_id):
            raise BillingNotFoundError("Invoice not found")
        invoice_id = str(invoice_id).lower()

        invoice = self.uow.tenant_invoices.find_by_id(invoice_id)
        if invoice is None:
            raise BillingNotFoundError("Invoice not found")
        if invoice.status != transition.source:
            raise BillingStateConflictError(transition.rejection_message)

        now = self._clock()
        patch: dict[str, Any] = {
            "status": transition.target,
            transition.timestamp_field: now,
            "updated_at": now,
            "updated_by": caller.id,
        }
        if transition.actor_field:
            patch[transition.actor_field] = caller.id

        with self.uow.transaction() as uow:
            # Compare-and-swap on status: a concurrent request that advanced
            # the invoice since the read above leaves nothing to match.
            matched = uow.tenant_invoices.update_where(
                {"id": invoice_id, "status": transition.source}, patch
            )
            if matched == 0:
                raise BillingStateConflictError(transition.rejection_message)

        refreshed = self.uow.tenant_invoices.find_by_id(invoice_id)
        if refreshed is None:
            raise BillingNotFoundError("Invoice not found")
        LOGGER.info(
            "Tenant invoice %s",
            transition.name,
            extra={
                "invoice_id": invoice_id,
                "status": transition.target.value,
                "caller_id": caller.id,
            },
        )
        return refreshed

    # Helpers

    @staticmethod
    def _require_administrator(caller: Optional[CallerIdentity]) -> None:
        if not caller_may_administer(caller):
            raise BillingAuthorizationError("System administrator privileges are required")

    def _bulk_update(self, repository_name: str, criteria: dict[str, Any], patch: dict[str, Any]) -> int:
        with self.uow.transaction() as uow:
            return getattr(uow, repository_name).update_where(criteria, patch)
