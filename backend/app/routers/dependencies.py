"""FastAPI dependencies shared by the billing routers."""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, HTTPException, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..repositories import SqlAlchemyBillingUnitOfWork
from ..security import CallerIdentity, caller_may_administer, get_current_caller
from ..services import BillingLifecycleService, BillingPeriodService


def get_billing_lifecycle_service(db: Session = Depends(get_db)) -> BillingLifecycleService:
    """Build the lifecycle service on top of the request's session."""

    return BillingLifecycleService(SqlAlchemyBillingUnitOfWork(db))


def get_current_administrator(
    caller: CallerIdentity = Depends(get_current_caller),
) -> CallerIdentity:
    """Reject non-administrators before the request body is looked at."""

    if not caller_may_administer(caller):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="System administrator privileges are required",
        )
    return caller


def parse_billing_month(raw_month: Optional[str]):
    """Turn an optional ``YYYY-MM`` query value into the stored month date."""

    if raw_month is None:
        return None
    try:
        return BillingPeriodService.month_start(raw_month)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid billing_month format, expected YYYY-MM",
        ) from exc
