"""Helpers to normalize billing month keys."""

from __future__ import annotations

import re
from calendar import monthrange
from datetime import date


class BillingPeriodService:
    """Utility helpers shared by the billing listings and scripts."""

    VALID_PERIOD_PATTERN = re.compile(r"^\d{4}-\d{2}$")

    @staticmethod
    def month_start(period_key: str) -> date:
        """Return the first day of the month named by a ``YYYY-MM`` key.

        Billing months are stored as the first calendar day of the month, so
        this is the value every query filters on.
        """

        _, starts_on, _ = BillingPeriodService.normalize_period(period_key)
        return starts_on

    @staticmethod
    def normalize_period(period_key: str) -> tuple[str, date, date]:
        if not period_key:
            raise ValueError("period_key is required")

        sanitized = period_key.strip()
        if not BillingPeriodService.VALID_PERIOD_PATTERN.match(sanitized):
            raise ValueError("Invalid period key format, expected YYYY-MM")

        year_str, month_str = sanitized.split("-", maxsplit=1)
        year = int(year_str)
        month = int(month_str)
        if month < 1 or month > 12 or year < 1:
            raise ValueError("Invalid period key format, expected YYYY-MM")

        starts_on = date(year, month, 1)
        _, last_day = monthrange(year, month)
        ends_on = date(year, month, last_day)
        normalized_key = f"{year:04d}-{month:02d}"
        return normalized_key, starts_on, ends_on

    @staticmethod
    def period_key_for(value: date) -> str:
        return f"{value.year:04d}-{value.month:02d}"
