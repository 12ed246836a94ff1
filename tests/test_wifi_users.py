from datetime import datetime, timedelta, timezone

from app.models import Transaction, TransactionStatus, UserRole, WifiUserStatus

from conftest import headers_for


def _aware(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def test_create_normalizes_phone_and_rejects_duplicates(client, admin):
    headers = headers_for(admin)
    res = client.post("/api/wifi-users", json={"phoneNumber": "0712 345 678", "fullName": "Amina"}, headers=headers)
    assert res.status_code == 201
    assert res.json()["phoneNumber"] == "254712345678"
    assert res.json()["status"] == "ACTIVE"

    dup = client.post("/api/wifi-users", json={"phoneNumber": "+254712345678"}, headers=headers)
    assert dup.status_code == 400
    assert dup.json()["error"] == "A user with this phone number already exists"


def test_create_rejects_invalid_phone(client, admin):
    res = client.post("/api/wifi-users", json={"phoneNumber": "12345"}, headers=headers_for(admin))
    assert res.status_code == 400
    assert res.json()["error"] == "Invalid phone number"


def test_create_rejects_plan_from_another_tenant(client, admin, make_tenant, make_plan):
    foreign = make_plan(make_tenant())
    res = client.post(
        "/api/wifi-users",
        json={"phoneNumber": "0712345678", "currentPlanId": foreign.id},
        headers=headers_for(admin),
    )
    assert res.status_code == 404


def test_list_filters_by_status_and_search(client, admin, make_wifi_user, tenant):
    make_wifi_user(tenant, phone_number="254711111111", full_name="Brian Otieno")
    make_wifi_user(tenant, phone_number="254722222222", full_name="Cynthia", status=WifiUserStatus.SUSPENDED)
    headers = headers_for(admin)

    suspended = client.get("/api/wifi-users", params={"status": "SUSPENDED"}, headers=headers).json()
    assert [user["fullName"] for user in suspended] == ["Cynthia"]

    found = client.get("/api/wifi-users", params={"q": "otieno"}, headers=headers).json()
    assert [user["phoneNumber"] for user in found] == ["254711111111"]


def test_recharge_extends_from_current_expiry(client, admin, make_plan, make_wifi_user, tenant):
    plan = make_plan(tenant, duration_seconds=86400)
    expiry = datetime.now(timezone.utc) + timedelta(days=2)
    customer = make_wifi_user(tenant, current_plan_id=plan.id, expiry_time=expiry)

    res = client.post(f"/api/wifi-users/{customer.id}/recharge", json={}, headers=headers_for(admin))
    assert res.status_code == 200
    new_expiry = _aware(res.json()["expiryTime"])
    assert abs((new_expiry - (expiry + timedelta(days=1))).total_seconds()) < 5


def test_recharge_expired_account_starts_from_now(client, admin, make_plan, make_wifi_user, tenant):
    plan = make_plan(tenant, duration_seconds=3600)
    customer = make_wifi_user(
        tenant,
        current_plan_id=plan.id,
        expiry_time=datetime.now(timezone.utc) - timedelta(days=3),
        status=WifiUserStatus.EXPIRED,
    )

    res = client.post(f"/api/wifi-users/{customer.id}/recharge", json={}, headers=headers_for(admin))
    body = res.json()
    assert body["status"] == "ACTIVE"
    remaining = _aware(body["expiryTime"]) - datetime.now(timezone.utc)
    assert timedelta(minutes=59) < remaining <= timedelta(hours=1)


def test_suspend_and_activate(client, admin, make_wifi_user, tenant):
    customer = make_wifi_user(tenant)
    headers = headers_for(admin)

    assert client.post(f"/api/wifi-users/{customer.id}/suspend", headers=headers).json()["status"] == "SUSPENDED"
    assert client.post(f"/api/wifi-users/{customer.id}/activate", headers=headers).json()["status"] == "ACTIVE"


def test_details_include_history_and_deny_other_tenants(client, db, admin, make_tenant, make_wifi_user, tenant):
    customer = make_wifi_user(tenant)
    db.add(
        Transaction(
            tenant_id=tenant.id,
            wifi_user_id=customer.id,
            user_phone=customer.phone_number,
            amount=50,
            status=TransactionStatus.COMPLETED,
        )
    )
    db.commit()
    headers = headers_for(admin)

    details = client.get(f"/api/wifi-users/{customer.id}/details", headers=headers).json()
    assert details["user"]["id"] == customer.id
    assert [tx["amount"] for tx in details["transactions"]] == [50]

    other = make_wifi_user(make_tenant(), phone_number="254733333333")
    denied = client.get(f"/api/wifi-users/{other.id}/details", headers=headers)
    assert denied.status_code == 403


def test_delete_refuses_users_with_payments(client, db, admin, make_wifi_user, tenant):
    customer = make_wifi_user(tenant)
    db.add(Transaction(tenant_id=tenant.id, wifi_user_id=customer.id, user_phone=customer.phone_number, amount=10))
    db.commit()

    res = client.delete(f"/api/wifi-users/{customer.id}", headers=headers_for(admin))
    assert res.status_code == 400


def test_expiring_lists_accounts_inside_window(client, admin, make_wifi_user, tenant):
    now = datetime.now(timezone.utc)
    make_wifi_user(tenant, phone_number="254711111111", expiry_time=now + timedelta(days=2))
    make_wifi_user(tenant, phone_number="254722222222", expiry_time=now + timedelta(days=20))

    res = client.get("/api/wifi-users/expiring", params={"days": 5}, headers=headers_for(admin))
    assert [user["phoneNumber"] for user in res.json()] == ["254711111111"]


def test_technician_cannot_move_someone_elses_customer(client, admin, make_user, make_hotspot, make_wifi_user, tenant):
    tech = make_user(tenant, UserRole.TECH, username="tech")
    hotspot = make_hotspot(tenant)
    customer = make_wifi_user(tenant, technician_id=admin.id)

    res = client.post(
        f"/api/wifi-users/{customer.id}/change-hotspot",
        json={"hotspotId": hotspot.id},
        headers=headers_for(tech),
    )
    assert res.status_code == 403

    ok = client.post(
        f"/api/wifi-users/{customer.id}/change-hotspot",
        json={"hotspotId": hotspot.id},
        headers=headers_for(admin),
    )
    assert ok.json()["currentHotspotId"] == hotspot.id
