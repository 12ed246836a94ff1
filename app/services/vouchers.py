import logging
import re
import secrets
from datetime import datetime
from typing import Callable, Iterable, Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from app.models import Plan, Tenant, Voucher, VoucherBatch, VoucherStatus, WifiUser
from app.services.billing import activate_customer, as_utc

logger = logging.getLogger(__name__)

# No 0/O or 1/I: codes get read aloud and typed on phones.
VOUCHER_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
CODE_LENGTH = 8
PREFIX_MAX_LENGTH = 6
MAX_BATCH_QUANTITY = 1000
_MAX_GENERATION_ROUNDS = 10


def normalize_prefix(prefix: Optional[str]) -> str:
    cleaned = re.sub(r"[^A-Za-z0-9]", "", prefix or "").upper()
    return cleaned[:PREFIX_MAX_LENGTH]


def normalize_code(code: str) -> str:
    return re.sub(r"\s+", "", code or "").upper()


def generate_code(prefix: str = "", choice: Callable[[str], str] = secrets.choice) -> str:
    body = "".join(choice(VOUCHER_ALPHABET) for _ in range(CODE_LENGTH))
    return f"{prefix}-{body}" if prefix else body


def generate_unique_codes(
    quantity: int,
    prefix: str,
    existing: Iterable[str] = (),
    choice: Callable[[str], str] = secrets.choice,
) -> list[str]:
    """Generate ``quantity`` distinct codes that collide with nothing in ``existing``."""
    taken = set(existing)
    codes: list[str] = []
    rounds = 0
    while len(codes) < quantity:
        rounds += 1
        if rounds > _MAX_GENERATION_ROUNDS * max(quantity, 1):
            raise RuntimeError("Unable to generate unique voucher codes")
        code = generate_code(prefix, choice)
        if code in taken:
            continue
        taken.add(code)
        codes.append(code)
    return codes


def create_batch(
    db: Session,
    tenant: Tenant,
    plan: Plan,
    *,
    name: str,
    quantity: int,
    prefix: Optional[str],
    valid_from: Optional[datetime],
    valid_until: Optional[datetime],
    created_by: Optional[int],
) -> VoucherBatch:
    name = (name or "").strip()
    if not name:
        raise HTTPException(status_code=400, detail="Batch name is required")
    if quantity < 1:
        raise HTTPException(status_code=400, detail="Quantity must be at least 1")
    if quantity > MAX_BATCH_QUANTITY:
        raise HTTPException(status_code=400, detail=f"Quantity cannot exceed {MAX_BATCH_QUANTITY}")
    if valid_from and valid_until and as_utc(valid_until) <= as_utc(valid_from):
        raise HTTPException(status_code=400, detail="validUntil must be after validFrom")

    prefix = normalize_prefix(prefix)
    batch = VoucherBatch(
        tenant_id=tenant.id,
        plan_id=plan.id,
        name=name,
        prefix=prefix or None,
        quantity=quantity,
        used_count=0,
        valid_from=valid_from,
        valid_until=valid_until,
        created_by=created_by,
    )
    db.add(batch)
    db.flush()

    existing_query = db.query(Voucher.code).filter(Voucher.tenant_id == tenant.id)
    if prefix:
        existing_query = existing_query.filter(Voucher.code.like(f"{prefix}-%"))
    existing = {row[0] for row in existing_query.all()}

    for code in generate_unique_codes(quantity, prefix, existing):
        db.add(
            Voucher(
                tenant_id=tenant.id,
                batch_id=batch.id,
                plan_id=plan.id,
                code=code,
                status=VoucherStatus.AVAILABLE,
                valid_until=valid_until,
            )
        )
    db.commit()
    db.refresh(batch)
    logger.info("Voucher batch %s created tenant=%s quantity=%s", batch.id, tenant.id, quantity)
    return batch


def effective_status(voucher: Voucher, now: datetime) -> VoucherStatus:
    status = VoucherStatus(voucher.status)
    if status == VoucherStatus.AVAILABLE:
        valid_until = as_utc(voucher.valid_until)
        if valid_until and valid_until < now:
            return VoucherStatus.EXPIRED
    return status


def find_voucher(db: Session, tenant_id: int, code: str, *, lock: bool = False) -> Optional[Voucher]:
    query = db.query(Voucher).filter(Voucher.tenant_id == tenant_id, Voucher.code == normalize_code(code))
    if lock:
        query = query.with_for_update()
    return query.first()


def redeem_voucher(
    db: Session,
    tenant: Tenant,
    code: str,
    now: datetime,
    *,
    phone_number: Optional[str] = None,
    mac_address: Optional[str] = None,
) -> tuple[Voucher, WifiUser]:
    voucher = find_voucher(db, tenant.id, code, lock=True)
    if voucher is None:
        raise HTTPException(status_code=404, detail="Voucher not found")

    status = effective_status(voucher, now)
    if status == VoucherStatus.EXPIRED and voucher.status != VoucherStatus.EXPIRED:
        voucher.status = VoucherStatus.EXPIRED
        db.commit()
    if status != VoucherStatus.AVAILABLE:
        raise HTTPException(status_code=400, detail=f"Voucher is {status.value.lower()}")

    batch = db.query(VoucherBatch).filter(VoucherBatch.id == voucher.batch_id).with_for_update().first()
    if batch is not None:
        valid_from = as_utc(batch.valid_from)
        if valid_from and valid_from > now:
            raise HTTPException(status_code=400, detail="Voucher is not valid yet")
        if batch.used_count >= batch.quantity:
            raise HTTPException(status_code=400, detail="Voucher batch is exhausted")

    plan = db.query(Plan).filter(Plan.id == voucher.plan_id).first()
    customer_phone = phone_number or f"VOUCHER-{voucher.code}"
    customer = activate_customer(
        db,
        tenant_id=tenant.id,
        phone_number=customer_phone,
        plan=plan,
        now=now,
        mac_address=mac_address,
    )

    voucher.status = VoucherStatus.USED
    voucher.used_by = customer.id
    voucher.used_at = now
    voucher.mac_address = mac_address
    voucher.expires_at = customer.expiry_time
    if batch is not None:
        batch.used_count += 1
    db.commit()
    db.refresh(voucher)
    db.refresh(customer)
    logger.info("Voucher %s redeemed tenant=%s customer=%s", voucher.id, tenant.id, customer.id)
    return voucher, customer


def disable_batch(db: Session, batch: VoucherBatch) -> int:
    vouchers = (
        db.query(Voucher)
        .filter(Voucher.batch_id == batch.id, Voucher.status == VoucherStatus.AVAILABLE)
        .all()
    )
    for voucher in vouchers:
        voucher.status = VoucherStatus.DISABLED
    db.commit()
    return len(vouchers)
