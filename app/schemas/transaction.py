from datetime import datetime
from typing import Optional

from app.models import ReconciliationStatus, TransactionStatus
from app.schemas.common import ApiModel


class TransactionOut(ApiModel):
    id: int
    plan_id: Optional[int] = None
    wifi_user_id: Optional[int] = None
    user_phone: str
    amount: int
    mpesa_receipt_number: Optional[str] = None
    checkout_request_id: Optional[str] = None
    status: TransactionStatus
    reconciliation_status: ReconciliationStatus
    status_description: Optional[str] = None
    mac_address: Optional[str] = None
    nas_ip: Optional[str] = None
    expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class InitiatePaymentRequest(ApiModel):
    plan_id: int
    phone_number: str
    mac_address: Optional[str] = None
    nas_ip: Optional[str] = None


class InitiatePaymentResponse(ApiModel):
    transaction: TransactionOut
    customer_message: str


class ReconcileResult(ApiModel):
    checked: int
    matched: int
    unmatched: int
    manual_review: int
    timed_out: int
