from fastapi import APIRouter
from app.api.v1.endpoints import (
    auth,
    dashboard,
    hotspots,
    loyalty,
    plans,
    portal,
    reports,
    superadmin,
    tech,
    tenant,
    terminal,
    tickets,
    transactions,
    vouchers,
    walled_gardens,
    wifi_users,
)

router = APIRouter()

router.include_router(auth.router, prefix="/auth", tags=["auth"])
router.include_router(tenant.router, prefix="/tenant", tags=["tenant"])
router.include_router(dashboard.router, prefix="/dashboard", tags=["dashboard"])
router.include_router(plans.router, prefix="/plans", tags=["plans"])
router.include_router(hotspots.router, prefix="/hotspots", tags=["hotspots"])
router.include_router(walled_gardens.router, prefix="/walled-gardens", tags=["walled-gardens"])
router.include_router(wifi_users.router, prefix="/wifi-users", tags=["wifi-users"])
router.include_router(transactions.router, prefix="/transactions", tags=["transactions"])
router.include_router(vouchers.batches_router, prefix="/voucher-batches", tags=["vouchers"])
router.include_router(vouchers.router, prefix="/vouchers", tags=["vouchers"])
router.include_router(loyalty.router, prefix="/loyalty", tags=["loyalty"])
router.include_router(tickets.router, prefix="/tickets", tags=["tickets"])
router.include_router(reports.router, prefix="/reports", tags=["reports"])
router.include_router(terminal.router, prefix="/terminal", tags=["terminal"])
router.include_router(tech.router, prefix="/tech", tags=["tech"])
router.include_router(superadmin.router, prefix="/superadmin", tags=["superadmin"])
router.include_router(portal.router, prefix="/portal", tags=["portal"])
