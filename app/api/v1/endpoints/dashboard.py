from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.dependencies import get_current_tenant, require_staff
from app.models import Tenant, User
from app.services.reports import dashboard_stats

router = APIRouter()


@router.get("/stats")
def stats(
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    _: User = Depends(require_staff),
):
    return dashboard_stats(db, tenant.id, datetime.now(timezone.utc))
