from datetime import date, datetime, time, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.dependencies import require_feature, require_staff
from app.models import Tenant, User
from app.schemas.common import dump
from app.schemas.transaction import TransactionOut
from app.schemas.wifi_user import WifiUserOut
from app.services.reports import expiring_users, financial_report, reconciliation_report, user_activity_report

router = APIRouter()


def _day_bounds(start: Optional[date], end: Optional[date]) -> tuple[Optional[datetime], Optional[datetime]]:
    start_at = datetime.combine(start, time.min, tzinfo=timezone.utc) if start else None
    end_at = datetime.combine(end, time.max, tzinfo=timezone.utc) if end else None
    if start_at and end_at and end_at < start_at:
        raise HTTPException(status_code=400, detail="endDate must not be before startDate")
    return start_at, end_at


@router.get("/financial")
def financial(
    start_date: Optional[date] = Query(default=None, alias="startDate"),
    end_date: Optional[date] = Query(default=None, alias="endDate"),
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(require_feature("advanced-reports")),
    _: User = Depends(require_staff),
):
    start_at, end_at = _day_bounds(start_date, end_date)
    return financial_report(db, tenant.id, start_at, end_at)


@router.get("/reconciliation")
def reconciliation(
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(require_feature("reconciliation")),
    _: User = Depends(require_staff),
):
    summary, rows = reconciliation_report(db, tenant.id)
    return {
        "summary": summary,
        "transactions": [dump(TransactionOut.model_validate(tx)) for tx in rows],
    }


@router.get("/user-activity")
def user_activity(
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(require_feature("basic-reports")),
    _: User = Depends(require_staff),
):
    return user_activity_report(db, tenant.id, datetime.now(timezone.utc))


@router.get("/expiring-users", response_model=list[WifiUserOut])
def expiring(
    days: int = 5,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(require_feature("basic-reports")),
    _: User = Depends(require_staff),
):
    if days < 1 or days > 90:
        raise HTTPException(status_code=400, detail="days must be between 1 and 90")
    return expiring_users(db, tenant.id, datetime.now(timezone.utc), days)
