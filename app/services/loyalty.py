import logging
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.models import LoyaltyAccount, LoyaltyEntryType, LoyaltyTransaction, Transaction

logger = logging.getLogger(__name__)


def get_account(db: Session, tenant_id: int, wifi_user_id: int, *, lock: bool = False) -> Optional[LoyaltyAccount]:
    query = db.query(LoyaltyAccount).filter(
        LoyaltyAccount.tenant_id == tenant_id,
        LoyaltyAccount.wifi_user_id == wifi_user_id,
    )
    if lock:
        query = query.with_for_update()
    return query.first()


def get_or_create_account(db: Session, tenant_id: int, wifi_user_id: int, *, lock: bool = False) -> LoyaltyAccount:
    account = get_account(db, tenant_id, wifi_user_id, lock=lock)
    if account:
        return account
    account = LoyaltyAccount(
        tenant_id=tenant_id,
        wifi_user_id=wifi_user_id,
        points=0,
        total_earned=0,
        total_redeemed=0,
    )
    db.add(account)
    db.flush()
    return account


def _validate_points(points: int) -> int:
    try:
        value = int(points)
    except (TypeError, ValueError):
        raise HTTPException(status_code=400, detail="Points must be a whole number")
    if value <= 0:
        raise HTTPException(status_code=400, detail="Points must be greater than 0")
    return value


def add_points(
    db: Session,
    tenant_id: int,
    wifi_user_id: int,
    points: int,
    now: datetime,
    *,
    description: Optional[str] = None,
    reference_id: Optional[str] = None,
) -> LoyaltyAccount:
    points = _validate_points(points)
    account = get_or_create_account(db, tenant_id, wifi_user_id, lock=True)
    account.points += points
    account.total_earned += points
    account.last_earned_at = now
    db.add(
        LoyaltyTransaction(
            tenant_id=tenant_id,
            account_id=account.id,
            wifi_user_id=wifi_user_id,
            entry_type=LoyaltyEntryType.EARN,
            points=points,
            description=description or "Points added",
            reference_id=reference_id,
        )
    )
    return account


def redeem_points(
    db: Session,
    tenant_id: int,
    wifi_user_id: int,
    points: int,
    *,
    description: Optional[str] = None,
    reference_id: Optional[str] = None,
) -> LoyaltyAccount:
    """Deduct points after re-reading the balance under a row lock.

    The console checks against the balance it last fetched; that copy may be
    stale, so the authoritative check happens here.
    """
    points = _validate_points(points)
    account = get_account(db, tenant_id, wifi_user_id, lock=True)
    if account is None or account.points < points:
        raise HTTPException(status_code=400, detail="Insufficient points balance")
    account.points -= points
    account.total_redeemed += points
    db.add(
        LoyaltyTransaction(
            tenant_id=tenant_id,
            account_id=account.id,
            wifi_user_id=wifi_user_id,
            entry_type=LoyaltyEntryType.REDEEM,
            points=points,
            description=description or "Points redeemed",
            reference_id=reference_id,
        )
    )
    return account


def points_for_amount(amount: int) -> int:
    per_point = max(1, get_settings().loyalty_kes_per_point)
    return int(amount or 0) // per_point


def award_for_payment(db: Session, tx: Transaction, now: datetime) -> Optional[LoyaltyAccount]:
    points = points_for_amount(tx.amount)
    if points <= 0 or not tx.wifi_user_id:
        return None
    account = add_points(
        db,
        tx.tenant_id,
        tx.wifi_user_id,
        points,
        now,
        description=f"Earned from payment of KES {tx.amount}",
        reference_id=tx.mpesa_receipt_number or str(tx.id),
    )
    logger.info("Awarded %s loyalty points to customer=%s tx=%s", points, tx.wifi_user_id, tx.id)
    return account
