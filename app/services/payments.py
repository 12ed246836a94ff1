import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.models import (
    Plan,
    ReconciliationStatus,
    Tenant,
    Transaction,
    TransactionStatus,
)
from app.services.billing import activate_customer, as_utc, utcnow
from app.services.loyalty import award_for_payment
from app.services.mpesa import (
    RESULT_CANCELLED_BY_USER,
    MpesaClient,
    MpesaError,
    StkCallback,
    format_phone_number,
)
from app.services.tenants import mpesa_configured

settings = get_settings()
logger = logging.getLogger(__name__)

ClientFactory = Callable[[Tenant], MpesaClient]


def _reference(tx: Transaction) -> str:
    return f"TX{tx.id:08d}"


def initiate_payment(
    db: Session,
    tenant: Tenant,
    plan: Plan,
    phone_number: str,
    *,
    mac_address: Optional[str] = None,
    nas_ip: Optional[str] = None,
    client_factory: ClientFactory = MpesaClient,
) -> tuple[Transaction, str]:
    try:
        msisdn = format_phone_number(phone_number)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid phone number")

    tx = Transaction(
        tenant_id=tenant.id,
        plan_id=plan.id,
        user_phone=msisdn,
        amount=int(plan.price),
        status=TransactionStatus.PENDING,
        reconciliation_status=ReconciliationStatus.PENDING,
        mac_address=mac_address,
        nas_ip=nas_ip,
    )
    db.add(tx)
    db.flush()

    if not mpesa_configured(tenant):
        # Manual/offline collection: stays PENDING until an operator reconciles it.
        db.commit()
        db.refresh(tx)
        logger.info("Payment %s recorded without STK push tenant=%s (M-Pesa not configured)", tx.id, tenant.id)
        return tx, "Payment recorded. Complete payment to activate."

    try:
        data = client_factory(tenant).stk_push(
            msisdn,
            tx.amount,
            account_reference=_reference(tx),
            description=plan.name,
            callback_url=settings.mpesa_callback_url,
        )
    except MpesaError as exc:
        tx.status = TransactionStatus.FAILED
        tx.reconciliation_status = ReconciliationStatus.UNMATCHED
        tx.status_description = exc.message[:255]
        db.commit()
        logger.warning("STK push failed tx=%s tenant=%s error=%s", tx.id, tenant.id, exc.message)
        raise HTTPException(status_code=502, detail=f"M-Pesa request failed: {exc.message}")

    tx.checkout_request_id = data.get("CheckoutRequestID")
    tx.merchant_request_id = data.get("MerchantRequestID")
    tx.status_description = data.get("ResponseDescription")
    db.commit()
    db.refresh(tx)
    return tx, data.get("CustomerMessage") or "Check your phone to complete payment"


def complete_transaction(db: Session, tx: Transaction, receipt_number: Optional[str], now: datetime) -> Transaction:
    if tx.status != TransactionStatus.PENDING:
        return tx

    plan = db.query(Plan).filter(Plan.id == tx.plan_id).first() if tx.plan_id else None
    tx.status = TransactionStatus.COMPLETED
    tx.mpesa_receipt_number = receipt_number
    tx.reconciliation_status = ReconciliationStatus.MATCHED if receipt_number else ReconciliationStatus.MANUAL_REVIEW
    tx.status_description = "Payment completed"

    customer = activate_customer(
        db,
        tenant_id=tx.tenant_id,
        phone_number=tx.user_phone,
        plan=plan,
        now=now,
        mac_address=tx.mac_address,
    )
    tx.wifi_user_id = customer.id
    tx.expires_at = customer.expiry_time
    award_for_payment(db, tx, now)
    logger.info("Payment %s completed receipt=%s customer=%s", tx.id, receipt_number, customer.id)
    return tx


def fail_transaction(tx: Transaction, result_code: int, description: str) -> Transaction:
    if tx.status != TransactionStatus.PENDING:
        return tx
    tx.status = TransactionStatus.FAILED
    tx.reconciliation_status = ReconciliationStatus.UNMATCHED
    if result_code == RESULT_CANCELLED_BY_USER:
        description = "Request cancelled by user"
    tx.status_description = (description or "Payment failed")[:255]
    logger.info("Payment %s failed code=%s description=%s", tx.id, result_code, tx.status_description)
    return tx


def apply_stk_callback(db: Session, callback: StkCallback, now: Optional[datetime] = None) -> Optional[Transaction]:
    now = now or utcnow()
    if not callback.checkout_request_id:
        return None
    tx = (
        db.query(Transaction)
        .filter(Transaction.checkout_request_id == callback.checkout_request_id)
        .with_for_update()
        .first()
    )
    if tx is None:
        logger.warning("Callback for unknown checkout id=%s", callback.checkout_request_id)
        return None
    if tx.status != TransactionStatus.PENDING:
        # Daraja retries callbacks; terminal states never move.
        return tx

    if callback.succeeded:
        complete_transaction(db, tx, callback.receipt_number, now)
    else:
        fail_transaction(tx, callback.result_code, callback.result_desc)
    db.commit()
    db.refresh(tx)
    return tx


def verify_transaction(
    db: Session,
    tenant: Tenant,
    tx: Transaction,
    *,
    client_factory: ClientFactory = MpesaClient,
) -> Transaction:
    if tx.status != TransactionStatus.PENDING:
        return tx
    if not tx.checkout_request_id or not mpesa_configured(tenant):
        raise HTTPException(status_code=400, detail="Transaction cannot be verified with M-Pesa")
    try:
        data = client_factory(tenant).query_status(tx.checkout_request_id)
    except MpesaError as exc:
        raise HTTPException(status_code=502, detail=f"M-Pesa request failed: {exc.message}")

    result_code = data.get("ResultCode")
    if result_code in (None, ""):
        # Still being processed by the customer.
        return tx
    code = int(result_code)
    if code == 0:
        complete_transaction(db, tx, tx.mpesa_receipt_number, utcnow())
    else:
        fail_transaction(tx, code, data.get("ResultDesc") or "")
    db.commit()
    db.refresh(tx)
    return tx


def reconcile_transactions(db: Session, now: datetime, tenant_id: Optional[int] = None) -> dict:
    query = db.query(Transaction)
    if tenant_id is not None:
        query = query.filter(Transaction.tenant_id == tenant_id)

    cutoff = now - timedelta(minutes=settings.payment_timeout_minutes)
    counts = {"checked": 0, "matched": 0, "unmatched": 0, "manualReview": 0, "timedOut": 0}
    for tx in query.all():
        counts["checked"] += 1
        if tx.status == TransactionStatus.PENDING:
            created = as_utc(tx.created_at)
            if created and created < cutoff:
                fail_transaction(tx, -1, "Payment timed out")
                counts["timedOut"] += 1
                counts["unmatched"] += 1
            continue
        if tx.status == TransactionStatus.COMPLETED:
            if tx.mpesa_receipt_number:
                tx.reconciliation_status = ReconciliationStatus.MATCHED
                counts["matched"] += 1
            else:
                tx.reconciliation_status = ReconciliationStatus.MANUAL_REVIEW
                counts["manualReview"] += 1
            continue
        tx.reconciliation_status = ReconciliationStatus.UNMATCHED
        counts["unmatched"] += 1
    db.commit()
    logger.info("Reconciliation tenant=%s result=%s", tenant_id, counts)
    return counts
