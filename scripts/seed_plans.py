"""Create a demo tenant with a starter set of hotspot and PPPoE plans."""
import os
from datetime import datetime, timezone

from app.core.database import session_scope
from app.models import Plan, PlanType, Tenant
from app.services.tenants import start_trial

DEMO_SUBDOMAIN = os.getenv("SEED_TENANT_SUBDOMAIN", "demo")

SAMPLE_PLANS = [
    {"name": "30 Minutes", "plan_type": PlanType.HOTSPOT, "price": 10, "duration_seconds": 1800, "sort_order": 1},
    {"name": "1 Hour", "plan_type": PlanType.HOTSPOT, "price": 20, "duration_seconds": 3600, "sort_order": 2},
    {"name": "Daily", "plan_type": PlanType.HOTSPOT, "price": 50, "duration_seconds": 86400, "sort_order": 3},
    {"name": "Weekly", "plan_type": PlanType.HOTSPOT, "price": 250, "duration_seconds": 604800, "sort_order": 4},
    {
        "name": "Home 10Mbps",
        "plan_type": PlanType.PPPOE,
        "price": 1500,
        "duration_seconds": 2592000,
        "speed_mbps": 10,
        "sort_order": 1,
    },
]


def main():
    with session_scope() as db:
        tenant = db.query(Tenant).filter(Tenant.subdomain == DEMO_SUBDOMAIN).first()
        if not tenant:
            tenant = Tenant(name="Demo WiFi", subdomain=DEMO_SUBDOMAIN)
            start_trial(tenant, datetime.now(timezone.utc))
            db.add(tenant)
            db.flush()
        for plan in SAMPLE_PLANS:
            existing = (
                db.query(Plan)
                .filter(Plan.tenant_id == tenant.id, Plan.name == plan["name"], Plan.plan_type == plan["plan_type"])
                .first()
            )
            if not existing:
                db.add(Plan(tenant_id=tenant.id, **plan))


if __name__ == "__main__":
    main()
