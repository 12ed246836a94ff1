from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.dependencies import get_current_tenant, require_admin, require_staff
from app.models import Plan, PlanType, Tenant, Transaction, User, Voucher, WifiUser
from app.schemas.common import Message
from app.schemas.plan import PlanCreate, PlanOut, PlanUpdate
from app.services.tenants import has_feature
from app.utils.query import apply_updates, get_owned_or_404

router = APIRouter()

PPPOE_DURATION_SECONDS = 30 * 24 * 3600
_PLAN_FEATURES = {PlanType.PPPOE: "pppoe", PlanType.STATIC: "static-ip"}


def _check_plan_values(plan_type: PlanType, price: Optional[int], duration: Optional[int], speed: Optional[int]) -> None:
    if price is None or price <= 0:
        raise HTTPException(status_code=400, detail="Price must be greater than 0")
    if duration is None or duration <= 0:
        raise HTTPException(status_code=400, detail="Duration must be greater than 0")
    if plan_type in (PlanType.PPPOE, PlanType.STATIC) and (speed is None or speed <= 0):
        raise HTTPException(status_code=400, detail="Speed must be greater than 0")


@router.get("", response_model=list[PlanOut])
def list_plans(
    plan_type: Optional[PlanType] = Query(default=None, alias="type"),
    active_only: bool = Query(default=False, alias="activeOnly"),
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    _: User = Depends(require_staff),
):
    query = db.query(Plan).filter(Plan.tenant_id == tenant.id)
    if plan_type is not None:
        query = query.filter(Plan.plan_type == plan_type)
    if active_only:
        query = query.filter(Plan.is_active.is_(True))
    return query.order_by(Plan.sort_order.asc(), Plan.price.asc(), Plan.id.asc()).all()


@router.get("/{plan_id}", response_model=PlanOut)
def get_plan(
    plan_id: int,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    _: User = Depends(require_staff),
):
    return get_owned_or_404(db, Plan, tenant.id, plan_id, "Plan")


@router.post("", response_model=PlanOut, status_code=201)
def create_plan(
    payload: PlanCreate,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    _: User = Depends(require_admin),
):
    feature = _PLAN_FEATURES.get(payload.plan_type)
    if feature and not has_feature(tenant, feature):
        raise HTTPException(status_code=403, detail="This feature requires a Premium subscription")

    data = payload.model_dump()
    if not (data["name"] or "").strip():
        raise HTTPException(status_code=400, detail="Plan name is required")
    if payload.plan_type == PlanType.PPPOE:
        data["duration_seconds"] = data["duration_seconds"] or PPPOE_DURATION_SECONDS
        speed = payload.speed_mbps
        if speed:
            data["upload_limit"] = data["upload_limit"] or f"{speed}M"
            data["download_limit"] = data["download_limit"] or f"{speed}M"
    _check_plan_values(payload.plan_type, data["price"], data["duration_seconds"], data["speed_mbps"])

    plan = Plan(tenant_id=tenant.id, **data)
    db.add(plan)
    db.commit()
    db.refresh(plan)
    return plan


@router.patch("/{plan_id}", response_model=PlanOut)
def update_plan(
    plan_id: int,
    payload: PlanUpdate,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    _: User = Depends(require_admin),
):
    plan = get_owned_or_404(db, Plan, tenant.id, plan_id, "Plan")
    apply_updates(plan, payload)
    _check_plan_values(PlanType(plan.plan_type), plan.price, plan.duration_seconds, plan.speed_mbps)
    db.commit()
    db.refresh(plan)
    return plan


@router.delete("/{plan_id}", response_model=Message)
def delete_plan(
    plan_id: int,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    _: User = Depends(require_admin),
):
    plan = get_owned_or_404(db, Plan, tenant.id, plan_id, "Plan")
    in_use = any(
        db.query(model).filter(column == plan.id).first() is not None
        for model, column in (
            (WifiUser, WifiUser.current_plan_id),
            (Voucher, Voucher.plan_id),
            (Transaction, Transaction.plan_id),
        )
    )
    if in_use:
        # Referenced plans are retired rather than removed.
        plan.is_active = False
        db.commit()
        return Message(message="Plan is in use and has been deactivated")
    db.delete(plan)
    db.commit()
    return Message(message="Plan deleted")
