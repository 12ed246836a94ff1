from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.dependencies import get_current_tenant, require_admin, require_feature, require_staff
from app.models import Plan, Tenant, User, Voucher, VoucherBatch, VoucherStatus
from app.schemas.voucher import BatchDisableResult, VoucherBatchCreate, VoucherBatchOut, VoucherOut
from app.services.vouchers import create_batch, disable_batch, effective_status
from app.utils.query import get_owned_or_404

batches_router = APIRouter()
router = APIRouter()


def _voucher_out(voucher: Voucher, now: datetime) -> VoucherOut:
    out = VoucherOut.model_validate(voucher)
    out.status = effective_status(voucher, now)
    return out


@batches_router.get("", response_model=list[VoucherBatchOut])
def list_batches(
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(require_feature("vouchers")),
    _: User = Depends(require_staff),
):
    return (
        db.query(VoucherBatch)
        .filter(VoucherBatch.tenant_id == tenant.id)
        .order_by(VoucherBatch.created_at.desc(), VoucherBatch.id.desc())
        .all()
    )


@batches_router.post("", response_model=VoucherBatchOut, status_code=201)
def create_voucher_batch(
    payload: VoucherBatchCreate,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(require_feature("vouchers")),
    user: User = Depends(require_admin),
):
    plan = get_owned_or_404(db, Plan, tenant.id, payload.plan_id, "Plan")
    if not plan.is_active:
        raise HTTPException(status_code=400, detail="Plan is not active")
    return create_batch(
        db,
        tenant,
        plan,
        name=payload.name,
        quantity=payload.quantity,
        prefix=payload.prefix,
        valid_from=payload.valid_from,
        valid_until=payload.valid_until,
        created_by=user.id,
    )


@batches_router.get("/{batch_id}", response_model=VoucherBatchOut)
def get_batch(
    batch_id: int,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(require_feature("vouchers")),
    _: User = Depends(require_staff),
):
    return get_owned_or_404(db, VoucherBatch, tenant.id, batch_id, "Voucher batch")


@batches_router.get("/{batch_id}/vouchers", response_model=list[VoucherOut])
def list_batch_vouchers(
    batch_id: int,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(require_feature("vouchers")),
    _: User = Depends(require_staff),
):
    batch = get_owned_or_404(db, VoucherBatch, tenant.id, batch_id, "Voucher batch")
    now = datetime.now(timezone.utc)
    vouchers = db.query(Voucher).filter(Voucher.batch_id == batch.id).order_by(Voucher.id.asc()).all()
    return [_voucher_out(voucher, now) for voucher in vouchers]


@batches_router.post("/{batch_id}/disable", response_model=BatchDisableResult)
def disable_voucher_batch(
    batch_id: int,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(require_feature("vouchers")),
    _: User = Depends(require_admin),
):
    batch = get_owned_or_404(db, VoucherBatch, tenant.id, batch_id, "Voucher batch")
    return BatchDisableResult(disabled=disable_batch(db, batch))


@router.get("", response_model=list[VoucherOut])
def list_vouchers(
    status: Optional[VoucherStatus] = None,
    batch_id: Optional[int] = Query(default=None, alias="batchId"),
    code: Optional[str] = None,
    limit: int = 500,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(require_feature("vouchers")),
    _: User = Depends(require_staff),
):
    if limit < 1 or limit > 5000:
        raise HTTPException(status_code=400, detail="limit must be between 1 and 5000")
    query = db.query(Voucher).filter(Voucher.tenant_id == tenant.id)
    if batch_id is not None:
        query = query.filter(Voucher.batch_id == batch_id)
    if status is not None and status != VoucherStatus.EXPIRED:
        query = query.filter(Voucher.status == status)
    if code:
        query = query.filter(Voucher.code.contains(code.strip().upper()))
    now = datetime.now(timezone.utc)
    rows = [_voucher_out(voucher, now) for voucher in query.order_by(Voucher.id.desc()).limit(limit).all()]
    if status is not None:
        rows = [row for row in rows if row.status == status]
    return rows


@router.post("/{voucher_id}/disable", response_model=VoucherOut)
def disable_voucher(
    voucher_id: int,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(require_feature("vouchers")),
    _: User = Depends(require_admin),
):
    voucher = get_owned_or_404(db, Voucher, tenant.id, voucher_id, "Voucher")
    if voucher.status != VoucherStatus.AVAILABLE:
        raise HTTPException(status_code=400, detail="Only available vouchers can be disabled")
    voucher.status = VoucherStatus.DISABLED
    db.commit()
    db.refresh(voucher)
    return voucher
