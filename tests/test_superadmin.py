import pytest

from app.models import SaasBillingStatus, SubscriptionTier, Transaction, TransactionStatus, UserRole

from conftest import headers_for


@pytest.fixture
def superadmin(make_user):
    return make_user(None, UserRole.SUPERADMIN, username="root")


def test_superadmin_routes_reject_tenant_admins(client, admin):
    res = client.get("/api/superadmin/tenants", headers=headers_for(admin))
    assert res.status_code == 403
    assert res.json()["error"] == "Superadmin access required"


def test_analytics_totals(client, db, superadmin, admin, premium_tenant, make_tenant):
    make_tenant(status=SaasBillingStatus.TRIAL)
    make_tenant(status=SaasBillingStatus.SUSPENDED)
    db.add(Transaction(tenant_id=premium_tenant.id, user_phone="254711000000", amount=500, status=TransactionStatus.COMPLETED))
    db.add(Transaction(tenant_id=premium_tenant.id, user_phone="254711000000", amount=70, status=TransactionStatus.FAILED))
    db.commit()

    body = client.get("/api/superadmin/analytics", headers=headers_for(superadmin)).json()
    assert body["totalTenants"] == 4
    assert body["activeTenants"] == 2
    assert body["trialTenants"] == 1
    assert body["suspendedTenants"] == 1
    assert body["premiumTenants"] == 1
    assert body["totalAdmins"] == 1
    assert body["totalRevenue"] == 500


def test_tenant_details_counts(client, db, superadmin, tenant, make_plan, make_hotspot, make_wifi_user):
    make_plan(tenant)
    make_hotspot(tenant)
    make_wifi_user(tenant)
    db.add(Transaction(tenant_id=tenant.id, user_phone="254712345678", amount=120, status=TransactionStatus.COMPLETED))
    db.commit()

    body = client.get(f"/api/superadmin/tenants/{tenant.id}", headers=headers_for(superadmin)).json()
    assert body["subdomain"] == tenant.subdomain
    assert body["planCount"] == 1
    assert body["hotspotCount"] == 1
    assert body["userCount"] == 1
    assert body["transactionCount"] == 1
    assert body["revenueThisMonth"] == 120

    missing = client.get("/api/superadmin/tenants/9999", headers=headers_for(superadmin))
    assert missing.status_code == 404


def test_upgrade_subscription_unlocks_premium_features(client, superadmin, admin, tenant):
    res = client.patch(
        f"/api/superadmin/tenants/{tenant.id}/subscription",
        json={"subscriptionTier": "PREMIUM"},
        headers=headers_for(superadmin),
    )
    assert res.status_code == 200
    assert res.json()["subscriptionTier"] == SubscriptionTier.PREMIUM.value
    assert "loyalty" in res.json()["features"]

    reports = client.get("/api/reports/financial", headers=headers_for(admin))
    assert reports.status_code == 200


def test_suspending_a_tenant_locks_out_its_staff(client, superadmin, admin, tenant):
    res = client.patch(
        f"/api/superadmin/tenants/{tenant.id}/status",
        json={"saasBillingStatus": "SUSPENDED"},
        headers=headers_for(superadmin),
    )
    assert res.json()["saasBillingStatus"] == "SUSPENDED"

    locked = client.get("/api/plans", headers=headers_for(admin))
    assert locked.status_code == 403
    assert locked.json()["error"] == "Tenant account is suspended"

    portal = client.get(f"/api/portal/{tenant.subdomain}")
    assert portal.status_code == 403


def test_analytics_reflect_status_changes(client, superadmin, tenant):
    headers = headers_for(superadmin)
    assert client.get("/api/superadmin/analytics", headers=headers).json()["activeTenants"] == 1

    client.patch(f"/api/superadmin/tenants/{tenant.id}/status", json={"isActive": False}, headers=headers)
    assert client.get("/api/superadmin/analytics", headers=headers).json()["activeTenants"] == 0


def test_list_users_includes_tenant_name(client, superadmin, admin, tenant):
    rows = client.get("/api/superadmin/users", headers=headers_for(superadmin)).json()
    by_username = {row["username"]: row for row in rows}
    assert by_username["admin"]["tenantName"] == tenant.name
    assert by_username["root"]["tenantName"] is None


def test_user_status_toggle(client, superadmin, admin):
    headers = headers_for(superadmin)
    res = client.patch(f"/api/superadmin/users/{admin.id}/status", json={"isActive": False}, headers=headers)
    assert res.json()["isActive"] is False

    login_blocked = client.get("/api/auth/me", headers=headers_for(admin))
    assert login_blocked.status_code == 401

    self_off = client.patch(f"/api/superadmin/users/{superadmin.id}/status", json={"isActive": False}, headers=headers)
    assert self_off.status_code == 400
    assert self_off.json()["error"] == "You cannot deactivate your own account"
