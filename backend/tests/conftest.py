from __future__ import annotations

import base64
import os
import sys
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Callable, Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ["RUN_DB_MIGRATIONS"] = "0"

from backend.app.database import Base, get_db  # noqa: E402
from backend.app.main import app  # noqa: E402
from backend.app import models  # noqa: E402
from backend.app.security import (  # noqa: E402
    CallerIdentity,
    create_access_token,
    generate_password_hash,
    generate_totp_code,
)

OPERATOR = {
    "username": "billing-ops@wastecollect.example",
    "password": "c0llect-Every-Month",
    "otp_secret": base64.b32encode(os.urandom(20)).decode("ascii").rstrip("="),
    "admin_id": "6f1c1d7e-8a55-4b7e-9f0e-2f3c4d5e6a7b",
}


@pytest.fixture(scope="session", autouse=True)
def security_settings() -> dict:
    """Configure the billing operator account and token signing once per run."""

    os.environ.update(
        {
            "ADMIN_USERNAME": OPERATOR["username"],
            "ADMIN_PASSWORD_HASH": generate_password_hash(OPERATOR["password"], iterations=1_000),
            "ADMIN_TOTP_SECRET": OPERATOR["otp_secret"],
            "ADMIN_USER_ID": OPERATOR["admin_id"],
            "AUTH_JWT_SECRET": base64.urlsafe_b64encode(os.urandom(32)).decode("ascii"),
            "ACCESS_TOKEN_EXPIRE_MINUTES": "15",
        }
    )
    return dict(OPERATOR)


SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture(scope="session", autouse=True)
def setup_database() -> Generator[None, None, None]:
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session() -> Generator[Session, None, None]:
    connection = engine.connect()
    transaction = connection.begin()
    session = TestingSessionLocal(bind=connection)
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


def _override_db(db_session: Session) -> None:
    def override_get_db() -> Generator[Session, None, None]:
        try:
            yield db_session
        finally:
            db_session.expire_all()

    app.dependency_overrides[get_db] = override_get_db


@pytest.fixture
def client(db_session: Session, security_settings: dict) -> Generator[TestClient, None, None]:
    _override_db(db_session)
    with TestClient(app) as test_client:
        login = test_client.post(
            "/auth/token",
            json={
                "username": security_settings["username"],
                "password": security_settings["password"],
                "otp_code": generate_totp_code(security_settings["otp_secret"]),
            },
        )
        assert login.status_code == 200, login.text
        test_client.headers["Authorization"] = f"Bearer {login.json()['access_token']}"
        yield test_client
    app.dependency_overrides.pop(get_db, None)


@pytest.fixture
def anonymous_client(db_session: Session) -> Generator[TestClient, None, None]:
    _override_db(db_session)
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.pop(get_db, None)


@pytest.fixture
def member_headers() -> Callable[..., dict]:
    """Build bearer headers for a non-administrator member of ``org_ids``."""

    def _build(*org_ids: str, user_id: str | None = None) -> dict:
        identity = CallerIdentity(
            id=user_id or str(uuid.uuid4()),
            is_system_admin=False,
            organization_ids=tuple(org_ids),
        )
        return {"Authorization": f"Bearer {create_access_token(identity)}"}

    return _build


def _new_id() -> str:
    return str(uuid.uuid4())


@pytest.fixture
def seed_billing_data(db_session: Session) -> dict:
    org_id = _new_id()
    other_org_id = _new_id()
    collector_id = _new_id()
    month = date(2026, 9, 1)

    def _item(name: str, **overrides) -> models.BillingItem:
        values = {
            "id": _new_id(),
            "org_id": org_id,
            "collector_id": collector_id,
            "billing_month": month,
            "item_name": name,
            "amount": Decimal("1000.00"),
            "commission_type": models.CommissionType.PERCENTAGE,
            "commission_amount": Decimal("100.00"),
        }
        values.update(overrides)
        item = models.BillingItem(**values)
        db_session.add(item)
        return item

    draft_item = _item("Household waste")
    approved_item = _item(
        "Bulky waste",
        status=models.BillingItemStatus.APPROVED,
        approved_at=datetime(2026, 9, 20, tzinfo=timezone.utc),
        approved_by=OPERATOR["admin_id"],
    )
    deleted_item = _item("Cancelled pickup", deleted_at=datetime(2026, 9, 21, tzinfo=timezone.utc))
    other_org_item = _item("Other tenant pickup", org_id=other_org_id)

    def _summary(status: models.BillingSummaryStatus, **overrides) -> models.BillingSummary:
        values = {
            "id": _new_id(),
            "org_id": org_id,
            "collector_id": _new_id(),
            "billing_month": month,
            "subtotal_amount": Decimal("1000.00"),
            "tax_amount": Decimal("100.00"),
            "total_amount": Decimal("1100.00"),
            "status": status,
        }
        values.update(overrides)
        summary = models.BillingSummary(**values)
        db_session.add(summary)
        return summary

    draft_summary = _summary(models.BillingSummaryStatus.DRAFT)
    submitted_summary = _summary(models.BillingSummaryStatus.SUBMITTED)
    approved_summary = _summary(models.BillingSummaryStatus.APPROVED)
    other_org_summary = _summary(models.BillingSummaryStatus.DRAFT, org_id=other_org_id)

    invoice = models.TenantInvoice(
        id=_new_id(),
        org_id=org_id,
        billing_month=month,
        invoice_number="INV-2026-09-0001",
        status=models.TenantInvoiceStatus.DRAFT,
        collectors_subtotal=Decimal("1000.00"),
        collectors_tax=Decimal("100.00"),
        collectors_total=Decimal("1100.00"),
        commission_subtotal=Decimal("200.00"),
        commission_tax=Decimal("20.00"),
        commission_total=Decimal("220.00"),
        grand_subtotal=Decimal("1200.00"),
        grand_tax=Decimal("120.00"),
        grand_total=Decimal("1320.00"),
    )
    db_session.add(invoice)
    collector_line = models.TenantInvoiceItem(
        id=_new_id(),
        tenant_invoice_id=invoice.id,
        item_type=models.TenantInvoiceItemType.COLLECTOR_BILLING,
        billing_summary_id=approved_summary.id,
        collector_id=approved_summary.collector_id,
        item_name="Collector billing",
        base_amount=Decimal("1000.00"),
        commission_amount=Decimal("0.00"),
        subtotal=Decimal("1000.00"),
        tax_rate=Decimal("10.00"),
        tax_amount=Decimal("100.00"),
        total_amount=Decimal("1100.00"),
        display_order=1,
    )
    commission_line = models.TenantInvoiceItem(
        id=_new_id(),
        tenant_invoice_id=invoice.id,
        item_type=models.TenantInvoiceItemType.COMMISSION,
        item_name="Platform commission",
        base_amount=Decimal("1000.00"),
        commission_amount=Decimal("200.00"),
        subtotal=Decimal("200.00"),
        tax_rate=Decimal("10.00"),
        tax_amount=Decimal("20.00"),
        total_amount=Decimal("220.00"),
        display_order=2,
    )
    db_session.add_all([collector_line, commission_line])

    deleted_invoice = models.TenantInvoice(
        id=_new_id(),
        org_id=other_org_id,
        billing_month=month,
        invoice_number="INV-2026-09-0002",
        status=models.TenantInvoiceStatus.DRAFT,
        deleted_at=datetime(2026, 9, 22, tzinfo=timezone.utc),
    )
    db_session.add(deleted_invoice)

    db_session.commit()

    return {
        "org_id": org_id,
        "other_org_id": other_org_id,
        "month": month,
        "draft_item_id": draft_item.id,
        "approved_item_id": approved_item.id,
        "deleted_item_id": deleted_item.id,
        "other_org_item_id": other_org_item.id,
        "draft_summary_id": draft_summary.id,
        "submitted_summary_id": submitted_summary.id,
        "approved_summary_id": approved_summary.id,
        "other_org_summary_id": other_org_summary.id,
        "invoice_id": invoice.id,
        "collector_line_id": collector_line.id,
        "commission_line_id": commission_line.id,
        "deleted_invoice_id": deleted_invoice.id,
    }
