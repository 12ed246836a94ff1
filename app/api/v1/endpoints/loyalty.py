from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.dependencies import require_admin, require_feature, require_staff
from app.models import LoyaltyTransaction, Tenant, User, WifiUser
from app.schemas.loyalty import LoyaltyAccountOut, LoyaltyPointsRequest, LoyaltyTransactionOut
from app.services.loyalty import add_points, get_account, redeem_points
from app.utils.query import get_owned_or_404

router = APIRouter()


def _account_out(db: Session, tenant_id: int, wifi_user_id: int) -> LoyaltyAccountOut:
    account = get_account(db, tenant_id, wifi_user_id)
    if account is None:
        return LoyaltyAccountOut(wifi_user_id=wifi_user_id)
    return LoyaltyAccountOut.model_validate(account)


@router.get("/{wifi_user_id}", response_model=LoyaltyAccountOut)
def get_loyalty(
    wifi_user_id: int,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(require_feature("loyalty")),
    _: User = Depends(require_staff),
):
    get_owned_or_404(db, WifiUser, tenant.id, wifi_user_id, "WiFi user")
    return _account_out(db, tenant.id, wifi_user_id)


@router.get("/{wifi_user_id}/transactions", response_model=list[LoyaltyTransactionOut])
def list_loyalty_transactions(
    wifi_user_id: int,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(require_feature("loyalty")),
    _: User = Depends(require_staff),
):
    get_owned_or_404(db, WifiUser, tenant.id, wifi_user_id, "WiFi user")
    return (
        db.query(LoyaltyTransaction)
        .filter(LoyaltyTransaction.tenant_id == tenant.id, LoyaltyTransaction.wifi_user_id == wifi_user_id)
        .order_by(LoyaltyTransaction.created_at.desc(), LoyaltyTransaction.id.desc())
        .limit(100)
        .all()
    )


@router.post("/{wifi_user_id}/add", response_model=LoyaltyAccountOut)
def add_loyalty_points(
    wifi_user_id: int,
    payload: LoyaltyPointsRequest,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(require_feature("loyalty")),
    _: User = Depends(require_admin),
):
    get_owned_or_404(db, WifiUser, tenant.id, wifi_user_id, "WiFi user")
    account = add_points(
        db,
        tenant.id,
        wifi_user_id,
        payload.points,
        datetime.now(timezone.utc),
        description=payload.description or "Manual adjustment",
    )
    db.commit()
    db.refresh(account)
    return account


@router.post("/{wifi_user_id}/redeem", response_model=LoyaltyAccountOut)
def redeem_loyalty_points(
    wifi_user_id: int,
    payload: LoyaltyPointsRequest,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(require_feature("loyalty")),
    _: User = Depends(require_admin),
):
    get_owned_or_404(db, WifiUser, tenant.id, wifi_user_id, "WiFi user")
    account = redeem_points(
        db,
        tenant.id,
        wifi_user_id,
        payload.points,
        description=payload.description or "Points redeemed",
    )
    db.commit()
    db.refresh(account)
    return account
