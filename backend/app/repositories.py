"""Storage access for the billing lifecycle.

Each repository exposes the same narrow surface (``find_by_id`` and
``update_where``) so services can run against SQLAlchemy in production and
against in-memory fakes in tests. Soft-deleted rows are invisible through
every method: the ``deleted_at IS NULL`` predicate is applied here and never
by callers.
"""

from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from typing import Any, Generic, Iterator, Mapping, Optional, Protocol, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session

from . import models

LOGGER = logging.getLogger(__name__)

ModelT = TypeVar("ModelT")

Criteria = Mapping[str, Any]
Patch = Mapping[str, Any]


class PersistenceError(RuntimeError):
    """Raised when the storage layer fails to complete an operation."""


class BillingRepository(Protocol[ModelT]):
    """Operations the lifecycle service needs from a store."""

    def find_by_id(self, record_id: str) -> Optional[ModelT]:
        ...

    def update_where(self, criteria: Criteria, patch: Patch) -> int:
        ...


class BillingUnitOfWork(Protocol):
    """Groups the billing repositories inside a single transaction."""

    billing_items: BillingRepository[models.BillingItem]
    billing_summaries: BillingRepository[models.BillingSummary]
    tenant_invoices: BillingRepository[models.TenantInvoice]

    def transaction(self) -> Any:
        ...


def is_uuid(value: Any) -> bool:
    """Accept only the dashed 8-4-4-4-12 form, in either case."""

    text = str(value).lower()
    try:
        return str(uuid.UUID(text)) == text
    except (TypeError, ValueError, AttributeError):
        return False


@contextmanager
def _translate_errors(action: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        raise PersistenceError(f"Database error while trying to {action}") from exc


class SoftDeleteRepository(Generic[ModelT]):
    """SQLAlchemy repository that hides soft-deleted rows."""

    model: type

    def __init__(self, db: Session) -> None:
        self.db = db

    def active_query(self) -> Query:
        return self.db.query(self.model).filter(self.model.deleted_at.is_(None))

    def _column(self, name: str):
        column = getattr(self.model, name, None)
        if column is None or name not in self.model.__table__.columns:
            raise ValueError(f"{self.model.__tablename__} has no column '{name}'")
        return column

    def _apply_criteria(self, query: Query, criteria: Criteria) -> Query:
        for name, expected in criteria.items():
            column = self._column(name)
            if isinstance(expected, (list, tuple, set, frozenset)):
                query = query.filter(column.in_(list(expected)))
            elif expected is None:
                query = query.filter(column.is_(None))
            else:
                query = query.filter(column == expected)
        return query

    def find_by_id(self, record_id: str) -> Optional[ModelT]:
        with _translate_errors(f"load {self.model.__tablename__} {record_id}"):
            return self.active_query().filter(self.model.id == record_id).first()

    def update_where(self, criteria: Criteria, patch: Patch) -> int:
        """Apply ``patch`` to every active row matching ``criteria``.

        Collection values in ``criteria`` match with ``IN``; scalar values
        match with equality. Returns the number of matched rows.
        """

        if not criteria:
            raise ValueError("update_where requires at least one criterion")
        for name in patch:
            self._column(name)

        query = self._apply_criteria(self.active_query(), criteria)
        with _translate_errors(f"update {self.model.__tablename__}"):
            matched = query.update(dict(patch), synchronize_session=False)
        LOGGER.debug(
            "Bulk update applied",
            extra={"table": self.model.__tablename__, "matched": matched},
        )
        return matched


class BillingItemRepository(SoftDeleteRepository[models.BillingItem]):
    model = models.BillingItem


class BillingSummaryRepository(SoftDeleteRepository[models.BillingSummary]):
    model = models.BillingSummary


class TenantInvoiceRepository(SoftDeleteRepository[models.TenantInvoice]):
    model = models.TenantInvoice


class SqlAlchemyBillingUnitOfWork:
    """Unit of work bound to a request-scoped SQLAlchemy session."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self.billing_items = BillingItemRepository(db)
        self.billing_summaries = BillingSummaryRepository(db)
        self.tenant_invoices = TenantInvoiceRepository(db)

    @contextmanager
    def transaction(self) -> Iterator["SqlAlchemyBillingUnitOfWork"]:
        """Commit everything done inside the block, or roll it all back."""

        try:
            yield self
            with _translate_errors("commit the transaction"):
                self.db.commit()
        except Exception:
            self.db.rollback()
            raise
