from collections import OrderedDict
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models import (
    AccountType,
    Hotspot,
    Plan,
    ReconciliationStatus,
    SaasBillingStatus,
    SubscriptionTier,
    Tenant,
    Ticket,
    Transaction,
    TransactionStatus,
    User,
    WifiUser,
    WifiUserStatus,
)
from app.services.billing import as_utc
from app.services.tickets import OPEN_STATUSES
from app.utils.cache import remember


def _start_of_day(value: datetime) -> datetime:
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def _revenue(db: Session, tenant_id: int, since: Optional[datetime] = None) -> int:
    query = db.query(func.coalesce(func.sum(Transaction.amount), 0)).filter(
        Transaction.tenant_id == tenant_id,
        Transaction.status == TransactionStatus.COMPLETED,
    )
    if since is not None:
        query = query.filter(Transaction.created_at >= since)
    return int(query.scalar() or 0)


def dashboard_stats(db: Session, tenant_id: int, now: datetime) -> dict:
    customers = db.query(WifiUser).filter(WifiUser.tenant_id == tenant_id)
    return {
        "totalRevenue": _revenue(db, tenant_id),
        "todayRevenue": _revenue(db, tenant_id, _start_of_day(now)),
        "activeUsers": customers.filter(WifiUser.status == WifiUserStatus.ACTIVE).count(),
        "totalUsers": customers.count(),
        "expiringSoon": customers.filter(
            WifiUser.status == WifiUserStatus.ACTIVE,
            WifiUser.expiry_time >= now,
            WifiUser.expiry_time <= now + timedelta(hours=24),
        ).count(),
        "pendingTransactions": db.query(Transaction)
        .filter(Transaction.tenant_id == tenant_id, Transaction.status == TransactionStatus.PENDING)
        .count(),
        "openTickets": db.query(Ticket)
        .filter(Ticket.tenant_id == tenant_id, Ticket.status.in_(OPEN_STATUSES))
        .count(),
        "totalPlans": db.query(Plan).filter(Plan.tenant_id == tenant_id).count(),
        "totalHotspots": db.query(Hotspot).filter(Hotspot.tenant_id == tenant_id).count(),
    }


def financial_report(db: Session, tenant_id: int, start: Optional[datetime], end: Optional[datetime]) -> dict:
    query = db.query(Transaction).filter(Transaction.tenant_id == tenant_id)
    if start is not None:
        query = query.filter(Transaction.created_at >= start)
    if end is not None:
        query = query.filter(Transaction.created_at <= end)
    rows = query.order_by(Transaction.created_at.asc()).all()

    completed = [tx for tx in rows if tx.status == TransactionStatus.COMPLETED]
    total = sum(tx.amount for tx in completed)
    plan_names = {plan.id: plan.name for plan in db.query(Plan).filter(Plan.tenant_id == tenant_id).all()}

    daily: "OrderedDict[str, dict]" = OrderedDict()
    by_plan: dict = {}
    for tx in completed:
        day = as_utc(tx.created_at).date().isoformat()
        bucket = daily.setdefault(day, {"date": day, "revenue": 0, "count": 0})
        bucket["revenue"] += tx.amount
        bucket["count"] += 1

        plan_bucket = by_plan.setdefault(
            tx.plan_id,
            {"planId": tx.plan_id, "planName": plan_names.get(tx.plan_id, "Unknown"), "revenue": 0, "count": 0},
        )
        plan_bucket["revenue"] += tx.amount
        plan_bucket["count"] += 1

    return {
        "summary": {
            "totalRevenue": total,
            "transactionCount": len(completed),
            "averageTransactionValue": round(total / len(completed)) if completed else 0,
            "failedCount": sum(1 for tx in rows if tx.status == TransactionStatus.FAILED),
            "pendingCount": sum(1 for tx in rows if tx.status == TransactionStatus.PENDING),
        },
        "dailyRevenue": list(daily.values()),
        "planRevenue": sorted(by_plan.values(), key=lambda item: item["revenue"], reverse=True),
    }


_RECONCILIATION_KEYS = {
    ReconciliationStatus.MATCHED: "matched",
    ReconciliationStatus.UNMATCHED: "unmatched",
    ReconciliationStatus.MANUAL_REVIEW: "manualReview",
    ReconciliationStatus.PENDING: "pending",
}


def reconciliation_report(db: Session, tenant_id: int) -> tuple[dict, list[Transaction]]:
    rows = (
        db.query(Transaction)
        .filter(Transaction.tenant_id == tenant_id)
        .order_by(Transaction.created_at.desc(), Transaction.id.desc())
        .all()
    )
    summary = {key: {"count": 0, "amount": 0} for key in _RECONCILIATION_KEYS.values()}
    for tx in rows:
        bucket = summary[_RECONCILIATION_KEYS[ReconciliationStatus(tx.reconciliation_status)]]
        bucket["count"] += 1
        bucket["amount"] += tx.amount
    summary["total"] = {"count": len(rows), "amount": sum(tx.amount for tx in rows)}
    return summary, rows


def expiring_users(db: Session, tenant_id: int, now: datetime, days: int = 5) -> list[WifiUser]:
    return (
        db.query(WifiUser)
        .filter(
            WifiUser.tenant_id == tenant_id,
            WifiUser.status == WifiUserStatus.ACTIVE,
            WifiUser.expiry_time >= now,
            WifiUser.expiry_time <= now + timedelta(days=days),
        )
        .order_by(WifiUser.expiry_time.asc())
        .all()
    )


def user_activity_report(db: Session, tenant_id: int, now: datetime) -> dict:
    users = db.query(WifiUser).filter(WifiUser.tenant_id == tenant_id).all()

    def _expiring_within(delta: timedelta) -> int:
        count = 0
        for user in users:
            expiry = as_utc(user.expiry_time)
            if user.status == WifiUserStatus.ACTIVE and expiry and now <= expiry <= now + delta:
                count += 1
        return count

    by_type = {account_type.value: 0 for account_type in AccountType}
    by_status = {status.value: 0 for status in WifiUserStatus}
    for user in users:
        by_type[AccountType(user.account_type).value] += 1
        by_status[WifiUserStatus(user.status).value] += 1

    return {
        "totalUsers": len(users),
        "activeUsers": by_status[WifiUserStatus.ACTIVE.value],
        "suspendedUsers": by_status[WifiUserStatus.SUSPENDED.value],
        "expiredUsers": by_status[WifiUserStatus.EXPIRED.value],
        "expiring24h": _expiring_within(timedelta(hours=24)),
        "expiring48h": _expiring_within(timedelta(hours=48)),
        "expiring5d": _expiring_within(timedelta(days=5)),
        "byAccountType": by_type,
    }


def tech_stats(db: Session, tenant_id: int, technician_id: Optional[int]) -> dict:
    customers = db.query(WifiUser).filter(WifiUser.tenant_id == tenant_id)
    tickets = db.query(Ticket).filter(Ticket.tenant_id == tenant_id, Ticket.status.in_(OPEN_STATUSES))
    if technician_id is not None:
        customers = customers.filter(WifiUser.technician_id == technician_id)
        tickets = tickets.filter(Ticket.assigned_to == technician_id)
    return {
        "totalCustomers": customers.count(),
        "activeCustomers": customers.filter(WifiUser.status == WifiUserStatus.ACTIVE).count(),
        "pppoeCustomers": customers.filter(WifiUser.account_type == AccountType.PPPOE).count(),
        "openTickets": tickets.count(),
    }


def superadmin_analytics(db: Session) -> dict:
    return remember("superadmin:analytics", lambda: _platform_totals(db), ttl_seconds=60)


def _platform_totals(db: Session) -> dict:
    tenants = db.query(Tenant)
    revenue = (
        db.query(func.coalesce(func.sum(Transaction.amount), 0))
        .filter(Transaction.status == TransactionStatus.COMPLETED)
        .scalar()
    )
    return {
        "totalTenants": tenants.count(),
        "activeTenants": tenants.filter(
            Tenant.is_active.is_(True), Tenant.saas_billing_status == SaasBillingStatus.ACTIVE
        ).count(),
        "trialTenants": tenants.filter(Tenant.saas_billing_status == SaasBillingStatus.TRIAL).count(),
        "suspendedTenants": tenants.filter(
            Tenant.saas_billing_status.in_((SaasBillingStatus.SUSPENDED, SaasBillingStatus.BLOCKED))
        ).count(),
        "premiumTenants": tenants.filter(Tenant.subscription_tier == SubscriptionTier.PREMIUM).count(),
        "totalAdmins": db.query(User).filter(User.tenant_id.isnot(None)).count(),
        "totalCustomers": db.query(WifiUser).count(),
        "totalRevenue": int(revenue or 0),
    }
