"""Public captive-portal endpoints, addressed by tenant subdomain."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.middlewares.rate_limit import limiter
from app.models import Plan, PlanType, SaasBillingStatus, Tenant, VoucherStatus, WalledGarden
from app.schemas.plan import PlanOut
from app.schemas.transaction import InitiatePaymentRequest, InitiatePaymentResponse, TransactionOut
from app.schemas.voucher import (
    VoucherOut,
    VoucherRedeemRequest,
    VoucherRedeemResponse,
    VoucherVerifyOut,
)
from app.schemas.wifi_user import WifiUserOut
from app.services.mpesa import format_phone_number
from app.services.payments import initiate_payment
from app.services.vouchers import effective_status, find_voucher, redeem_voucher

router = APIRouter()


def _portal_tenant(subdomain: str, db: Session) -> Tenant:
    tenant = db.query(Tenant).filter(Tenant.subdomain == subdomain.lower()).first()
    if tenant is None:
        raise HTTPException(status_code=404, detail="Portal not found")
    if not tenant.is_active or tenant.saas_billing_status in (SaasBillingStatus.SUSPENDED, SaasBillingStatus.BLOCKED):
        raise HTTPException(status_code=403, detail="Service temporarily unavailable")
    return tenant


@router.get("/{subdomain}")
def portal_info(subdomain: str, db: Session = Depends(get_db)):
    tenant = _portal_tenant(subdomain, db)
    domains = (
        db.query(WalledGarden.domain)
        .filter(WalledGarden.tenant_id == tenant.id, WalledGarden.is_active.is_(True))
        .all()
    )
    return {
        "name": tenant.name,
        "subdomain": tenant.subdomain,
        "phone": tenant.phone,
        "brandingConfig": tenant.branding_config or {},
        "walledGarden": [row[0] for row in domains],
    }


@router.get("/{subdomain}/plans", response_model=list[PlanOut])
def portal_plans(subdomain: str, db: Session = Depends(get_db)):
    tenant = _portal_tenant(subdomain, db)
    return (
        db.query(Plan)
        .filter(Plan.tenant_id == tenant.id, Plan.plan_type == PlanType.HOTSPOT, Plan.is_active.is_(True))
        .order_by(Plan.sort_order.asc(), Plan.price.asc())
        .all()
    )


@router.post("/{subdomain}/pay", response_model=InitiatePaymentResponse)
@limiter.limit("30/minute")
def portal_pay(request: Request, subdomain: str, payload: InitiatePaymentRequest, db: Session = Depends(get_db)):
    tenant = _portal_tenant(subdomain, db)
    plan = (
        db.query(Plan)
        .filter(Plan.id == payload.plan_id, Plan.tenant_id == tenant.id, Plan.is_active.is_(True))
        .first()
    )
    if plan is None:
        raise HTTPException(status_code=404, detail="Plan not found")
    tx, message = initiate_payment(
        db,
        tenant,
        plan,
        payload.phone_number,
        mac_address=payload.mac_address,
        nas_ip=payload.nas_ip,
    )
    return InitiatePaymentResponse(transaction=TransactionOut.model_validate(tx), customer_message=message)


@router.get("/{subdomain}/vouchers/{code}", response_model=VoucherVerifyOut)
@limiter.limit("30/minute")
def portal_verify_voucher(request: Request, subdomain: str, code: str, db: Session = Depends(get_db)):
    tenant = _portal_tenant(subdomain, db)
    voucher = find_voucher(db, tenant.id, code)
    if voucher is None:
        raise HTTPException(status_code=404, detail="Voucher not found")
    status = effective_status(voucher, datetime.now(timezone.utc))
    plan = db.query(Plan).filter(Plan.id == voucher.plan_id).first()
    return VoucherVerifyOut(
        code=voucher.code,
        status=status,
        valid=status == VoucherStatus.AVAILABLE,
        plan=PlanOut.model_validate(plan) if plan else None,
        valid_until=voucher.valid_until,
    )


@router.post("/{subdomain}/vouchers/redeem", response_model=VoucherRedeemResponse)
@limiter.limit("30/minute")
def portal_redeem_voucher(
    request: Request,
    subdomain: str,
    payload: VoucherRedeemRequest,
    db: Session = Depends(get_db),
):
    tenant = _portal_tenant(subdomain, db)
    phone = payload.phone_number
    if phone:
        try:
            phone = format_phone_number(phone)
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid phone number")
    voucher, customer = redeem_voucher(
        db,
        tenant,
        payload.code,
        datetime.now(timezone.utc),
        phone_number=phone,
        mac_address=payload.mac_address,
    )
    return VoucherRedeemResponse(
        voucher=VoucherOut.model_validate(voucher),
        wifi_user=WifiUserOut.model_validate(customer),
        expires_at=customer.expiry_time,
    )
