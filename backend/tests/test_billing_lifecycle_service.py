from __future__ import annotations

import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from backend.app import models
from backend.app.security import CallerIdentity
from backend.app.services.billing_lifecycle import (
    BillingAuthorizationError,
    BillingLifecycleService,
    BillingNotFoundError,
    BillingStateConflictError,
    BillingValidationError,
    normalize_ids,
)

NOW = datetime(2026, 10, 1, 9, 30, tzinfo=timezone.utc)
ADMIN = CallerIdentity(id=str(uuid.uuid4()), is_system_admin=True)


class FakeRepository:
    """In-memory stand-in honouring the soft-delete contract."""

    def __init__(self, records=()):
        self.records = {record.id: record for record in records}
        self.calls = []

    def _matches(self, record, criteria):
        if record.deleted_at is not None:
            return False
        for name, expected in criteria.items():
            value = getattr(record, name)
            if isinstance(expected, (list, tuple, set)):
                if value not in expected:
                    return False
            elif value != expected:
                return False
        return True

    def find_by_id(self, record_id):
        self.calls.append(("find_by_id", record_id))
        record = self.records.get(record_id)
        if record is None or record.deleted_at is not None:
            return None
        return record

    def update_where(self, criteria, patch):
        self.calls.append(("update_where", dict(criteria), dict(patch)))
        matched = [record for record in self.records.values() if self._matches(record, criteria)]
        for record in matched:
            for name, value in patch.items():
                setattr(record, name, value)
        return len(matched)


class RacingInvoiceRepository(FakeRepository):
    """Advances the invoice between the read and the conditional write."""

    def update_where(self, criteria, patch):
        for record in self.records.values():
            record.status = models.TenantInvoiceStatus.LOCKED
        return super().update_where(criteria, patch)


class FakeUnitOfWork:
    def __init__(self, items=(), summaries=(), invoices=(), invoice_repository=None):
        self.billing_items = FakeRepository(items)
        self.billing_summaries = FakeRepository(summaries)
        self.tenant_invoices = invoice_repository or FakeRepository(invoices)
        self.events = []

    @contextmanager
    def transaction(self):
        self.events.append("begin")
        try:
            yield self
        except Exception:
            self.events.append("rollback")
            raise
        self.events.append("commit")

    @property
    def storage_calls(self):
        return (
            self.billing_items.calls
            + self.billing_summaries.calls
            + self.tenant_invoices.calls
        )


def _record(**values):
    values.setdefault("id", str(uuid.uuid4()))
    values.setdefault("org_id", str(uuid.uuid4()))
    values.setdefault("deleted_at", None)
    return SimpleNamespace(**values)


def _service(uow):
    return BillingLifecycleService(uow, clock=lambda: NOW)


def test_normalize_ids_lowercases_and_deduplicates():
    value = uuid.uuid4()
    assert normalize_ids([value, str(value).upper()], "item_ids") == [str(value)]


@pytest.mark.parametrize("raw", [None, [], "not-a-list", ["nope"]])
def test_normalize_ids_rejects_bad_input(raw):
    with pytest.raises(BillingValidationError):
        normalize_ids(raw, "item_ids")


def test_approve_items_counts_every_active_match():
    draft = _record(status=models.BillingItemStatus.DRAFT)
    paid = _record(status=models.BillingItemStatus.PAID)
    deleted = _record(status=models.BillingItemStatus.DRAFT, deleted_at=NOW)
    uow = FakeUnitOfWork(items=[draft, paid, deleted])

    count = _service(uow).approve_items([draft.id, paid.id, deleted.id], approver_id=ADMIN.id)

    assert count == 2
    assert draft.status == models.BillingItemStatus.APPROVED
    assert draft.approved_at == NOW
    assert draft.approved_by == ADMIN.id
    assert deleted.status == models.BillingItemStatus.DRAFT
    assert uow.events == ["begin", "commit"]


def test_approve_items_matches_on_identifiers_only():
    first = _record(status=models.BillingItemStatus.DRAFT)
    second = _record(status=models.BillingItemStatus.DRAFT)
    uow = FakeUnitOfWork(items=[first, second])

    count = _service(uow).approve_items([first.id, second.id], approver_id=str(uuid.uuid4()))

    assert first.org_id != second.org_id
    assert count == 2
    assert uow.billing_items.calls[0][1] == {"id": [first.id, second.id]}


@pytest.mark.parametrize("raw", [[], None, ["1234"]])
def test_invalid_identifier_lists_never_reach_storage(raw):
    uow = FakeUnitOfWork()

    with pytest.raises(BillingValidationError):
        _service(uow).approve_items(raw, approver_id=ADMIN.id)
    with pytest.raises(BillingValidationError):
        _service(uow).submit_summaries(raw, submitter_id=ADMIN.id)

    assert uow.storage_calls == []
    assert uow.events == []


def test_submit_summaries_is_idempotent():
    draft = _record(status=models.BillingSummaryStatus.DRAFT)
    approved = _record(status=models.BillingSummaryStatus.APPROVED)
    uow = FakeUnitOfWork(summaries=[draft, approved])
    service = _service(uow)

    assert service.submit_summaries([draft.id, approved.id], submitter_id=ADMIN.id) == 1
    assert service.submit_summaries([draft.id, approved.id], submitter_id=ADMIN.id) == 0
    assert draft.status == models.BillingSummaryStatus.SUBMITTED
    assert draft.submitted_at == NOW
    assert approved.status == models.BillingSummaryStatus.APPROVED


def test_summary_review_requires_administrator():
    submitted = _record(status=models.BillingSummaryStatus.SUBMITTED)
    uow = FakeUnitOfWork(summaries=[submitted])
    member = CallerIdentity(id=str(uuid.uuid4()), organization_ids=(submitted.org_id,))

    with pytest.raises(BillingAuthorizationError):
        _service(uow).approve_summaries([submitted.id], member)
    with pytest.raises(BillingAuthorizationError):
        _service(uow).reject_summaries([submitted.id], "Wrong weights", member)

    assert uow.storage_calls == []
    assert submitted.status == models.BillingSummaryStatus.SUBMITTED


def test_summary_review_checks_administrator_before_the_command():
    member = CallerIdentity(id=str(uuid.uuid4()))
    uow = FakeUnitOfWork()

    with pytest.raises(BillingAuthorizationError):
        _service(uow).approve_summaries([], member)
    with pytest.raises(BillingAuthorizationError):
        _service(uow).reject_summaries(["nope"], None, member)

    assert uow.events == []


def test_reject_summaries_requires_reason_and_stores_it():
    submitted = _record(status=models.BillingSummaryStatus.SUBMITTED)
    uow = FakeUnitOfWork(summaries=[submitted])
    service = _service(uow)

    with pytest.raises(BillingValidationError) as excinfo:
        service.reject_summaries([submitted.id], "   ", ADMIN)
    assert excinfo.value.field == "rejection_reason"
    assert uow.storage_calls == []

    assert service.reject_summaries([submitted.id], " Missing manifest ", ADMIN) == 1
    assert submitted.status == models.BillingSummaryStatus.REJECTED
    assert submitted.rejection_reason == "Missing manifest"
    assert submitted.rejected_by == ADMIN.id


def test_invoice_lifecycle_sets_timestamps_in_order():
    invoice = _record(status=models.TenantInvoiceStatus.DRAFT)
    uow = FakeUnitOfWork(invoices=[invoice])
    service = _service(uow)

    assert service.lock_invoice(invoice.id, ADMIN) is invoice
    assert invoice.status == models.TenantInvoiceStatus.LOCKED
    assert invoice.locked_at == NOW
    assert invoice.locked_by == ADMIN.id

    service.issue_invoice(invoice.id, ADMIN)
    assert invoice.status == models.TenantInvoiceStatus.ISSUED
    assert invoice.issued_at == NOW

    service.mark_invoice_paid(invoice.id, ADMIN)
    assert invoice.status == models.TenantInvoiceStatus.PAID
    assert invoice.paid_at == NOW


@pytest.mark.parametrize(
    "status, action, message",
    [
        (models.TenantInvoiceStatus.DRAFT, "issue_invoice", "Only LOCKED invoices can be issued"),
        (models.TenantInvoiceStatus.LOCKED, "lock_invoice", "Only DRAFT invoices can be locked"),
        (models.TenantInvoiceStatus.ISSUED, "lock_invoice", "Only DRAFT invoices can be locked"),
        (models.TenantInvoiceStatus.PAID, "lock_invoice", "Only DRAFT invoices can be locked"),
        (models.TenantInvoiceStatus.PAID, "mark_invoice_paid", "Only ISSUED invoices can be marked as paid"),
    ],
)
def test_out_of_order_transition_is_rejected_without_writes(status, action, message):
    invoice = _record(status=status)
    uow = FakeUnitOfWork(invoices=[invoice])

    with pytest.raises(BillingStateConflictError, match=message):
        getattr(_service(uow), action)(invoice.id, ADMIN)

    assert invoice.status == status
    assert not [call for call in uow.tenant_invoices.calls if call[0] == "update_where"]


def test_concurrent_lock_loses_compare_and_swap():
    invoice = _record(status=models.TenantInvoiceStatus.DRAFT)
    uow = FakeUnitOfWork(invoice_repository=RacingInvoiceRepository([invoice]))

    with pytest.raises(BillingStateConflictError, match="Only DRAFT invoices can be locked"):
        _service(uow).lock_invoice(invoice.id, ADMIN)

    assert uow.events == ["begin", "rollback"]
    assert getattr(invoice, "locked_at", None) is None


@pytest.mark.parametrize(
    "status, action",
    [
        (models.TenantInvoiceStatus.DRAFT, "lock_invoice"),
        (models.TenantInvoiceStatus.LOCKED, "issue_invoice"),
        (models.TenantInvoiceStatus.ISSUED, "mark_invoice_paid"),
    ],
)
def test_invoice_transitions_require_administrator(status, action):
    invoice = _record(status=status)
    uow = FakeUnitOfWork(invoices=[invoice])
    member = CallerIdentity(id=str(uuid.uuid4()), organization_ids=(invoice.org_id,))

    with pytest.raises(BillingAuthorizationError):
        getattr(_service(uow), action)(invoice.id, member)
    with pytest.raises(BillingAuthorizationError):
        getattr(_service(uow), action)(invoice.id, None)

    assert uow.storage_calls == []
    assert invoice.status == status


def test_unknown_or_deleted_invoice_is_not_found():
    deleted = _record(status=models.TenantInvoiceStatus.DRAFT, deleted_at=NOW)
    uow = FakeUnitOfWork(invoices=[deleted])
    service = _service(uow)

    for invoice_id in (deleted.id, str(uuid.uuid4()), "not-a-uuid"):
        with pytest.raises(BillingNotFoundError):
            service.lock_invoice(invoice_id, ADMIN)

    assert deleted.status == models.TenantInvoiceStatus.DRAFT
