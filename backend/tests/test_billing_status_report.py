from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import date

import pytest

from backend.app.scripts import billing_status_report
from backend.app.services import BillingPeriodService, BillingReportService


def test_status_snapshot_counts_active_records(db_session, seed_billing_data):
    snapshot = BillingReportService.status_snapshot(
        db_session,
        billing_month=seed_billing_data["month"],
        org_id=seed_billing_data["org_id"],
    )

    assert snapshot.billing_items == {"DRAFT": 1, "APPROVED": 1, "PAID": 0}
    assert snapshot.billing_summaries == {
        "DRAFT": 1,
        "SUBMITTED": 1,
        "APPROVED": 1,
        "REJECTED": 0,
    }
    assert snapshot.tenant_invoices == {"DRAFT": 1, "LOCKED": 0, "ISSUED": 0, "PAID": 0}


def test_report_script_logs_counts(db_session, seed_billing_data, monkeypatch, caplog):
    @contextmanager
    def fake_scope():
        yield db_session

    monkeypatch.setattr(billing_status_report, "session_scope", fake_scope)
    caplog.set_level(logging.INFO)

    exit_code = billing_status_report.main(
        ["--month", "2026-09", "--org-id", seed_billing_data["org_id"]]
    )

    assert exit_code == 0
    assert "Billing items: 2 active" in caplog.text
    assert "Billing summaries: 3 active" in caplog.text
    assert "Tenant invoices: 1 active" in caplog.text


@pytest.mark.parametrize("argv", [["--month", "2026-13"], ["--org-id", "tenant-a"]])
def test_report_script_rejects_bad_arguments(argv, caplog):
    assert billing_status_report.main(argv) == 2


def test_normalize_period_returns_month_bounds():
    assert BillingPeriodService.normalize_period(" 2024-02 ") == (
        "2024-02",
        date(2024, 2, 1),
        date(2024, 2, 29),
    )
    assert BillingPeriodService.period_key_for(date(2026, 9, 17)) == "2026-09"


@pytest.mark.parametrize("raw", ["", "2026-9", "2026/09", "2026-00", "2026-13"])
def test_normalize_period_rejects_malformed_keys(raw):
    with pytest.raises(ValueError):
        BillingPeriodService.normalize_period(raw)
