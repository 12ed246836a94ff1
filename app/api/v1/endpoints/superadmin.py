import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.api.v1.endpoints.tenant import tenant_out
from app.core.database import get_db
from app.dependencies import require_superadmin
from app.models import Hotspot, Plan, Tenant, Transaction, TransactionStatus, User, WifiUser
from app.schemas.tenant import TenantDetails, TenantOut, TenantStatusUpdate, TenantSubscriptionUpdate
from app.schemas.user import AdminUserOut, UserStatusUpdate
from app.services.reports import superadmin_analytics
from app.utils.cache import invalidate_cached

router = APIRouter()
logger = logging.getLogger(__name__)


def _month_start(value: datetime) -> datetime:
    return value.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def _revenue_between(db: Session, tenant_id: int, start: datetime, end: Optional[datetime] = None) -> int:
    query = db.query(func.coalesce(func.sum(Transaction.amount), 0)).filter(
        Transaction.tenant_id == tenant_id,
        Transaction.status == TransactionStatus.COMPLETED,
        Transaction.created_at >= start,
    )
    if end is not None:
        query = query.filter(Transaction.created_at < end)
    return int(query.scalar() or 0)


def _get_tenant_or_404(db: Session, tenant_id: int) -> Tenant:
    tenant = db.query(Tenant).filter(Tenant.id == tenant_id).first()
    if not tenant:
        raise HTTPException(status_code=404, detail="Tenant not found")
    return tenant


@router.get("/analytics")
def analytics(db: Session = Depends(get_db), _: User = Depends(require_superadmin)):
    return superadmin_analytics(db)


@router.get("/tenants", response_model=list[TenantOut])
def list_tenants(db: Session = Depends(get_db), _: User = Depends(require_superadmin)):
    tenants = db.query(Tenant).order_by(Tenant.created_at.desc(), Tenant.id.desc()).all()
    return [tenant_out(tenant) for tenant in tenants]


@router.get("/tenants/{tenant_id}", response_model=TenantDetails)
def get_tenant_details(tenant_id: int, db: Session = Depends(get_db), _: User = Depends(require_superadmin)):
    tenant = _get_tenant_or_404(db, tenant_id)
    this_month = _month_start(datetime.now(timezone.utc))
    last_month = _month_start(this_month - timedelta(days=1))

    details = TenantDetails(**tenant_out(tenant).model_dump())
    details.user_count = db.query(WifiUser).filter(WifiUser.tenant_id == tenant.id).count()
    details.transaction_count = db.query(Transaction).filter(Transaction.tenant_id == tenant.id).count()
    details.hotspot_count = db.query(Hotspot).filter(Hotspot.tenant_id == tenant.id).count()
    details.plan_count = db.query(Plan).filter(Plan.tenant_id == tenant.id).count()
    details.revenue_this_month = _revenue_between(db, tenant.id, this_month)
    details.revenue_last_month = _revenue_between(db, tenant.id, last_month, this_month)
    return details


@router.patch("/tenants/{tenant_id}/subscription", response_model=TenantOut)
def update_subscription(
    tenant_id: int,
    payload: TenantSubscriptionUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_superadmin),
):
    tenant = _get_tenant_or_404(db, tenant_id)
    updates = payload.model_dump(exclude_unset=True)
    for key in ("subscription_tier", "saas_billing_status"):
        if updates.get(key) is not None:
            setattr(tenant, key, updates[key])
    for key in ("trial_expires_at", "subscription_expires_at"):
        if key in updates:
            setattr(tenant, key, updates[key])
    db.commit()
    db.refresh(tenant)
    invalidate_cached("superadmin:")
    logger.info("Subscription updated tenant=%s tier=%s by=%s", tenant.id, tenant.subscription_tier, admin.id)
    return tenant_out(tenant)


@router.patch("/tenants/{tenant_id}/status", response_model=TenantOut)
def update_tenant_status(
    tenant_id: int,
    payload: TenantStatusUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_superadmin),
):
    tenant = _get_tenant_or_404(db, tenant_id)
    if payload.is_active is not None:
        tenant.is_active = payload.is_active
    if payload.saas_billing_status is not None:
        tenant.saas_billing_status = payload.saas_billing_status
    db.commit()
    db.refresh(tenant)
    invalidate_cached("superadmin:")
    logger.info(
        "Tenant status updated tenant=%s active=%s billing=%s by=%s",
        tenant.id,
        tenant.is_active,
        tenant.saas_billing_status,
        admin.id,
    )
    return tenant_out(tenant)


@router.get("/users", response_model=list[AdminUserOut])
def list_users(db: Session = Depends(get_db), _: User = Depends(require_superadmin)):
    rows = (
        db.query(User, Tenant.name)
        .outerjoin(Tenant, Tenant.id == User.tenant_id)
        .order_by(User.created_at.desc(), User.id.desc())
        .all()
    )
    result = []
    for user, tenant_name in rows:
        out = AdminUserOut.model_validate(user)
        out.tenant_name = tenant_name
        result.append(out)
    return result


@router.patch("/users/{user_id}/status", response_model=AdminUserOut)
def update_user_status(
    user_id: int,
    payload: UserStatusUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_superadmin),
):
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    if user.id == admin.id and not payload.is_active:
        raise HTTPException(status_code=400, detail="You cannot deactivate your own account")
    user.is_active = payload.is_active
    db.commit()
    db.refresh(user)
    invalidate_cached("superadmin:")
    return AdminUserOut.model_validate(user)
