from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.dependencies import get_current_tenant, require_admin, require_staff
from app.models import (
    Hotspot,
    Plan,
    Tenant,
    Ticket,
    Transaction,
    User,
    UserRole,
    WifiUser,
    WifiUserStatus,
)
from app.schemas.common import Message
from app.schemas.hotspot import HotspotOut
from app.schemas.plan import PlanOut
from app.schemas.ticket import TicketOut
from app.schemas.transaction import TransactionOut
from app.schemas.wifi_user import (
    ChangeHotspotRequest,
    RechargeRequest,
    WifiUserCreate,
    WifiUserDetails,
    WifiUserOut,
    WifiUserUpdate,
)
from app.services.billing import extend_expiry, recharge_duration
from app.services.mpesa import format_phone_number
from app.services.reports import expiring_users
from app.utils.query import apply_updates, get_owned_or_404

router = APIRouter()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _normalize_phone(value: str) -> str:
    try:
        return format_phone_number(value)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid phone number")


def _check_references(db: Session, tenant_id: int, plan_id: Optional[int], hotspot_id: Optional[int]) -> None:
    if plan_id is not None:
        get_owned_or_404(db, Plan, tenant_id, plan_id, "Plan")
    if hotspot_id is not None:
        get_owned_or_404(db, Hotspot, tenant_id, hotspot_id, "Hotspot")


@router.get("", response_model=list[WifiUserOut])
def list_wifi_users(
    status: Optional[WifiUserStatus] = None,
    q: Optional[str] = None,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    _: User = Depends(require_staff),
):
    query = db.query(WifiUser).filter(WifiUser.tenant_id == tenant.id)
    if status is not None:
        query = query.filter(WifiUser.status == status)
    if q:
        pattern = f"%{q.strip()}%"
        query = query.filter(
            or_(
                WifiUser.phone_number.ilike(pattern),
                WifiUser.full_name.ilike(pattern),
                WifiUser.username.ilike(pattern),
                WifiUser.email.ilike(pattern),
            )
        )
    return query.order_by(WifiUser.created_at.desc(), WifiUser.id.desc()).all()


@router.get("/expiring", response_model=list[WifiUserOut])
def list_expiring(
    days: int = Query(default=5, ge=1, le=90),
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    _: User = Depends(require_staff),
):
    return expiring_users(db, tenant.id, _utcnow(), days)


@router.get("/{user_id}", response_model=WifiUserOut)
def get_wifi_user(
    user_id: int,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    _: User = Depends(require_staff),
):
    return get_owned_or_404(db, WifiUser, tenant.id, user_id, "User")


@router.get("/{user_id}/details", response_model=WifiUserDetails)
def get_wifi_user_details(
    user_id: int,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    _: User = Depends(require_staff),
):
    customer = db.query(WifiUser).filter(WifiUser.id == user_id).first()
    if customer is None:
        raise HTTPException(status_code=404, detail="User not found")
    if customer.tenant_id != tenant.id:
        raise HTTPException(status_code=403, detail="Access denied")

    transactions = (
        db.query(Transaction)
        .filter(
            Transaction.tenant_id == tenant.id,
            or_(Transaction.wifi_user_id == customer.id, Transaction.user_phone == customer.phone_number),
        )
        .order_by(Transaction.created_at.desc(), Transaction.id.desc())
        .limit(20)
        .all()
    )
    tickets = (
        db.query(Ticket)
        .filter(Ticket.tenant_id == tenant.id, Ticket.wifi_user_id == customer.id)
        .order_by(Ticket.created_at.desc())
        .all()
    )
    return WifiUserDetails(
        user=WifiUserOut.model_validate(customer),
        plan=PlanOut.model_validate(customer.current_plan) if customer.current_plan else None,
        hotspot=HotspotOut.model_validate(customer.current_hotspot) if customer.current_hotspot else None,
        transactions=[TransactionOut.model_validate(tx) for tx in transactions],
        tickets=[TicketOut.model_validate(ticket) for ticket in tickets],
    )


@router.get("/{user_id}/tickets", response_model=list[TicketOut])
def list_wifi_user_tickets(
    user_id: int,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    _: User = Depends(require_staff),
):
    customer = get_owned_or_404(db, WifiUser, tenant.id, user_id, "User")
    return (
        db.query(Ticket)
        .filter(Ticket.tenant_id == tenant.id, Ticket.wifi_user_id == customer.id)
        .order_by(Ticket.created_at.desc(), Ticket.id.desc())
        .all()
    )


@router.post("", response_model=WifiUserOut, status_code=201)
def create_wifi_user(
    payload: WifiUserCreate,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    _: User = Depends(require_admin),
):
    data = payload.model_dump()
    data["phone_number"] = _normalize_phone(payload.phone_number)
    _check_references(db, tenant.id, payload.current_plan_id, payload.current_hotspot_id)
    duplicate = (
        db.query(WifiUser)
        .filter(WifiUser.tenant_id == tenant.id, WifiUser.phone_number == data["phone_number"])
        .first()
    )
    if duplicate:
        raise HTTPException(status_code=400, detail="A user with this phone number already exists")

    customer = WifiUser(tenant_id=tenant.id, **data)
    db.add(customer)
    db.commit()
    db.refresh(customer)
    return customer


@router.patch("/{user_id}", response_model=WifiUserOut)
def update_wifi_user(
    user_id: int,
    payload: WifiUserUpdate,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    _: User = Depends(require_admin),
):
    customer = get_owned_or_404(db, WifiUser, tenant.id, user_id, "User")
    _check_references(db, tenant.id, payload.current_plan_id, payload.current_hotspot_id)
    if payload.phone_number is not None:
        payload.phone_number = _normalize_phone(payload.phone_number)
    apply_updates(customer, payload)
    db.commit()
    db.refresh(customer)
    return customer


@router.delete("/{user_id}", response_model=Message)
def delete_wifi_user(
    user_id: int,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    _: User = Depends(require_admin),
):
    customer = get_owned_or_404(db, WifiUser, tenant.id, user_id, "User")
    has_history = db.query(Transaction).filter(Transaction.wifi_user_id == customer.id).first() is not None
    if has_history:
        raise HTTPException(status_code=400, detail="User has payment history; suspend instead")
    db.delete(customer)
    db.commit()
    return Message(message="User deleted")


@router.post("/{user_id}/recharge", response_model=WifiUserOut)
def recharge_wifi_user(
    user_id: int,
    payload: RechargeRequest,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    _: User = Depends(require_admin),
):
    customer = get_owned_or_404(db, WifiUser, tenant.id, user_id, "User")
    plan = None
    plan_id = payload.plan_id or customer.current_plan_id
    if plan_id is not None:
        plan = get_owned_or_404(db, Plan, tenant.id, plan_id, "Plan")
    if payload.duration_seconds is not None and payload.duration_seconds <= 0:
        raise HTTPException(status_code=400, detail="Duration must be greater than 0")

    customer.expiry_time = extend_expiry(customer.expiry_time, recharge_duration(plan, payload.duration_seconds), _utcnow())
    if plan is not None:
        customer.current_plan_id = plan.id
    customer.status = WifiUserStatus.ACTIVE
    db.commit()
    db.refresh(customer)
    return customer


def _set_status(db: Session, tenant: Tenant, user_id: int, status: WifiUserStatus) -> WifiUser:
    customer = get_owned_or_404(db, WifiUser, tenant.id, user_id, "User")
    customer.status = status
    db.commit()
    db.refresh(customer)
    return customer


@router.post("/{user_id}/suspend", response_model=WifiUserOut)
def suspend_wifi_user(
    user_id: int,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    _: User = Depends(require_admin),
):
    return _set_status(db, tenant, user_id, WifiUserStatus.SUSPENDED)


@router.post("/{user_id}/activate", response_model=WifiUserOut)
def activate_wifi_user(
    user_id: int,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    _: User = Depends(require_admin),
):
    return _set_status(db, tenant, user_id, WifiUserStatus.ACTIVE)


@router.post("/{user_id}/change-hotspot", response_model=WifiUserOut)
def change_hotspot(
    user_id: int,
    payload: ChangeHotspotRequest,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    user: User = Depends(require_staff),
):
    customer = get_owned_or_404(db, WifiUser, tenant.id, user_id, "User")
    if user.role == UserRole.TECH and customer.technician_id not in (None, user.id):
        raise HTTPException(status_code=403, detail="Access denied")
    hotspot = get_owned_or_404(db, Hotspot, tenant.id, payload.hotspot_id, "Hotspot")
    customer.current_hotspot_id = hotspot.id
    db.commit()
    db.refresh(customer)
    return customer
