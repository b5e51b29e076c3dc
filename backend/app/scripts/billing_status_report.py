"""CLI utility that reports how many billing records sit in each status."""

from __future__ import annotations

import argparse
import logging
import uuid
from typing import Dict, Optional

from ..database import session_scope
from ..services.billing_periods import BillingPeriodService
from ..services.billing_reports import BillingReportService

LOGGER = logging.getLogger(__name__)


def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def _parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description=(
            "Count active billing items, billing summaries and tenant invoices per status, "
            "for cron jobs or manual checks before closing a month."
        )
    )
    parser.add_argument("--month", help="Billing month to report on, as YYYY-MM.")
    parser.add_argument("--org-id", help="Restrict the report to one organization.")
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Also log statuses that currently hold no records.",
    )
    return parser.parse_args(argv)


def _log_counts(label: str, counts: Dict[str, int]) -> None:
    total = sum(counts.values())
    LOGGER.info("%s: %s active", label, total)
    for status, count in counts.items():
        if count:
            LOGGER.info("  %s %s", status, count)
        else:
            LOGGER.debug("  %s 0", status)


def main(argv: Optional[list[str]] = None) -> int:
    args = _parse_args(argv)
    _configure_logging(args.verbose)

    billing_month = None
    if args.month:
        try:
            billing_month = BillingPeriodService.month_start(args.month)
        except ValueError:
            LOGGER.error("Invalid --month %r, expected YYYY-MM", args.month)
            return 2

    org_id = None
    if args.org_id:
        try:
            org_id = str(uuid.UUID(args.org_id))
        except ValueError:
            LOGGER.error("Invalid --org-id %r, expected a UUID", args.org_id)
            return 2

    with session_scope() as db:
        snapshot = BillingReportService.status_snapshot(
            db, billing_month=billing_month, org_id=org_id
        )

    _log_counts("Billing items", snapshot.billing_items)
    _log_counts("Billing summaries", snapshot.billing_summaries)
    _log_counts("Tenant invoices", snapshot.tenant_invoices)

    LOGGER.info("Billing status report finished")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
