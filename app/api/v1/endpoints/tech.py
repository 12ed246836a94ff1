from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.dependencies import get_current_tenant, require_staff
from app.models import AccountType, Tenant, User, UserRole, WifiUser, WifiUserStatus
from app.schemas.wifi_user import WifiUserOut
from app.services.reports import tech_stats

router = APIRouter()


def _technician_scope(user: User) -> Optional[int]:
    # Technicians only see their own customers; admins see the whole tenant.
    return user.id if user.role == UserRole.TECH else None


@router.get("/stats")
def stats(
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    user: User = Depends(require_staff),
):
    return tech_stats(db, tenant.id, _technician_scope(user))


@router.get("/customers", response_model=list[WifiUserOut])
def customers(
    account_type: Optional[AccountType] = Query(default=None, alias="type"),
    status: Optional[WifiUserStatus] = None,
    search: Optional[str] = None,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    user: User = Depends(require_staff),
):
    query = db.query(WifiUser).filter(WifiUser.tenant_id == tenant.id)
    technician_id = _technician_scope(user)
    if technician_id is not None:
        query = query.filter(WifiUser.technician_id == technician_id)
    if account_type is not None:
        query = query.filter(WifiUser.account_type == account_type)
    else:
        query = query.filter(WifiUser.account_type.in_((AccountType.PPPOE, AccountType.STATIC)))
    if status is not None:
        query = query.filter(WifiUser.status == status)
    if search:
        term = f"%{search.strip()}%"
        query = query.filter(
            or_(WifiUser.phone_number.ilike(term), WifiUser.full_name.ilike(term), WifiUser.username.ilike(term))
        )
    return query.order_by(WifiUser.created_at.desc(), WifiUser.id.desc()).all()
