import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.dependencies import get_current_tenant, require_admin, require_feature, require_staff
from app.models import Plan, Tenant, Transaction, TransactionStatus, User
from app.schemas.transaction import (
    InitiatePaymentRequest,
    InitiatePaymentResponse,
    ReconcileResult,
    TransactionOut,
)
from app.services.mpesa import parse_stk_callback
from app.services.payments import apply_stk_callback, initiate_payment, reconcile_transactions, verify_transaction
from app.utils.query import get_owned_or_404

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("", response_model=list[TransactionOut])
def list_transactions(
    status: Optional[TransactionStatus] = None,
    phone: Optional[str] = None,
    limit: int = 200,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    _: User = Depends(require_staff),
):
    if limit < 1 or limit > 1000:
        raise HTTPException(status_code=400, detail="limit must be between 1 and 1000")
    query = db.query(Transaction).filter(Transaction.tenant_id == tenant.id)
    if status is not None:
        query = query.filter(Transaction.status == status)
    if phone:
        query = query.filter(Transaction.user_phone.contains(phone.strip()))
    return query.order_by(Transaction.created_at.desc(), Transaction.id.desc()).limit(limit).all()


@router.post("/callback")
async def mpesa_callback(request: Request, db: Session = Depends(get_db)):
    try:
        body = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON body")
    try:
        callback = parse_stk_callback(body)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    tx = apply_stk_callback(db, callback)
    logger.info(
        "M-Pesa callback checkout=%s code=%s tx=%s",
        callback.checkout_request_id,
        callback.result_code,
        tx.id if tx else None,
    )
    # Daraja only needs an acknowledgement; unknown ids are accepted and ignored.
    return {"ResultCode": 0, "ResultDesc": "Accepted"}


@router.post("/initiate", response_model=InitiatePaymentResponse)
def initiate(
    payload: InitiatePaymentRequest,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    _: User = Depends(require_admin),
):
    plan = get_owned_or_404(db, Plan, tenant.id, payload.plan_id, "Plan")
    if not plan.is_active:
        raise HTTPException(status_code=400, detail="Plan is not active")
    tx, message = initiate_payment(
        db,
        tenant,
        plan,
        payload.phone_number,
        mac_address=payload.mac_address,
        nas_ip=payload.nas_ip,
    )
    return InitiatePaymentResponse(transaction=TransactionOut.model_validate(tx), customer_message=message)


@router.post("/reconcile", response_model=ReconcileResult)
def reconcile(
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(require_feature("reconciliation")),
    _: User = Depends(require_admin),
):
    return ReconcileResult(**reconcile_transactions(db, datetime.now(timezone.utc), tenant.id))


@router.get("/{transaction_id}", response_model=TransactionOut)
def get_transaction(
    transaction_id: int,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    _: User = Depends(require_staff),
):
    return get_owned_or_404(db, Transaction, tenant.id, transaction_id, "Transaction")


@router.post("/{transaction_id}/verify", response_model=TransactionOut)
def verify(
    transaction_id: int,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    _: User = Depends(require_admin),
):
    tx = get_owned_or_404(db, Transaction, tenant.id, transaction_id, "Transaction")
    return verify_transaction(db, tenant, tx)
