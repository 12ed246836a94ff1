from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.models import AccountType, Hotspot, Plan, PlanType, WifiUser, WifiUserStatus


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive timestamps; treat them as UTC.
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def extend_expiry(current: Optional[datetime], duration_seconds: int, now: datetime) -> datetime:
    """Stack new time on top of any remaining time, never in the past."""
    base = now
    current = as_utc(current)
    if current and current > now:
        base = current
    return base + timedelta(seconds=int(duration_seconds))


def recharge_duration(plan: Optional[Plan], duration_seconds: Optional[int] = None) -> int:
    if duration_seconds:
        return int(duration_seconds)
    if plan and plan.duration_seconds:
        return int(plan.duration_seconds)
    return get_settings().default_recharge_seconds


def _account_type_for(plan: Optional[Plan]) -> AccountType:
    if plan is None:
        return AccountType.HOTSPOT
    return {
        PlanType.PPPOE: AccountType.PPPOE,
        PlanType.STATIC: AccountType.STATIC,
    }.get(plan.plan_type, AccountType.HOTSPOT)


def activate_customer(
    db: Session,
    *,
    tenant_id: int,
    phone_number: str,
    plan: Optional[Plan],
    now: datetime,
    mac_address: Optional[str] = None,
    hotspot: Optional[Hotspot] = None,
) -> WifiUser:
    """Find or create the customer for ``phone_number`` and extend their access by the plan duration.

    The caller owns the commit.
    """
    user = (
        db.query(WifiUser)
        .filter(WifiUser.tenant_id == tenant_id, WifiUser.phone_number == phone_number)
        .first()
    )
    if user is None:
        user = WifiUser(
            tenant_id=tenant_id,
            phone_number=phone_number,
            account_type=_account_type_for(plan),
            status=WifiUserStatus.ACTIVE,
        )
        db.add(user)

    if plan is not None:
        user.current_plan_id = plan.id
    if hotspot is not None:
        user.current_hotspot_id = hotspot.id
    if mac_address:
        user.mac_address = mac_address
    user.expiry_time = extend_expiry(user.expiry_time, recharge_duration(plan), now)
    user.status = WifiUserStatus.ACTIVE
    db.flush()
    return user


def expire_overdue_users(db: Session, now: datetime, tenant_id: Optional[int] = None) -> int:
    query = db.query(WifiUser).filter(
        WifiUser.status == WifiUserStatus.ACTIVE,
        WifiUser.expiry_time.isnot(None),
        WifiUser.expiry_time < now,
    )
    if tenant_id is not None:
        query = query.filter(WifiUser.tenant_id == tenant_id)
    users = query.all()
    for user in users:
        user.status = WifiUserStatus.EXPIRED
    return len(users)
