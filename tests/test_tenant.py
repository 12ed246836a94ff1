from app.api.v1.endpoints.walled_gardens import normalize_domain
from app.models import PlanType, Tenant, Transaction, TransactionStatus, UserRole, WifiUser

from conftest import headers_for


def test_get_tenant_reports_features(client, admin):
    body = client.get("/api/tenant", headers=headers_for(admin)).json()
    assert body["subscriptionTier"] == "BASIC"
    assert body["features"] == ["hotspot", "vouchers", "basic-reports", "walled-garden"]
    assert body["mpesaConfigured"] is False
    assert "mpesaPasskey" not in body


def test_update_tenant_keeps_secrets_when_left_blank(client, db, admin, tenant):
    headers = headers_for(admin)
    res = client.patch(
        "/api/tenant",
        json={
            "mpesaShortcode": "174379",
            "mpesaPasskey": "passkey",
            "mpesaConsumerKey": "key",
            "mpesaConsumerSecret": "secret",
        },
        headers=headers,
    )
    assert res.json()["mpesaConfigured"] is True

    again = client.patch("/api/tenant", json={"name": "Renamed ISP", "mpesaPasskey": ""}, headers=headers)
    assert again.json()["name"] == "Renamed ISP"
    db.expire_all()
    assert db.query(Tenant).filter(Tenant.id == tenant.id).one().mpesa_passkey == "passkey"


def test_update_tenant_rejects_blank_name(client, admin):
    res = client.patch("/api/tenant", json={"name": "  "}, headers=headers_for(admin))
    assert res.status_code == 400
    assert res.json()["error"] == "Business name is required"


def test_tenant_settings_are_admin_only(client, make_user, tenant):
    tech = make_user(tenant, UserRole.TECH, username="tech")
    assert client.get("/api/tenant", headers=headers_for(tech)).status_code == 200
    assert client.patch("/api/tenant", json={"name": "x"}, headers=headers_for(tech)).status_code == 403


def test_hotspot_crud_hides_router_password(client, db, admin, make_wifi_user, tenant):
    headers = headers_for(admin)
    created = client.post(
        "/api/hotspots",
        json={
            "locationName": "Kilimani",
            "nasIp": "10.10.0.1",
            "secret": "radius",
            "routerApiIp": "10.10.0.1",
            "routerApiUser": "api",
            "routerApiPass": "hunter2",
        },
        headers=headers,
    )
    assert created.status_code == 201
    hotspot = created.json()
    assert hotspot["routerApiPort"] == 8728
    assert "routerApiPass" not in hotspot

    updated = client.patch(f"/api/hotspots/{hotspot['id']}", json={"isActive": False}, headers=headers)
    assert updated.json()["isActive"] is False

    customer = make_wifi_user(tenant, current_hotspot_id=hotspot["id"])
    deleted = client.delete(f"/api/hotspots/{hotspot['id']}", headers=headers)
    assert deleted.json()["message"] == "Hotspot deleted"
    db.expire_all()
    assert db.query(WifiUser).filter(WifiUser.id == customer.id).one().current_hotspot_id is None


def test_walled_garden_normalizes_and_deduplicates(client, admin):
    headers = headers_for(admin)
    res = client.post("/api/walled-gardens", json={"domain": "HTTPS://Safaricom.co.ke/portal"}, headers=headers)
    assert res.status_code == 201
    assert res.json()["domain"] == "safaricom.co.ke"

    dup = client.post("/api/walled-gardens", json={"domain": "safaricom.co.ke"}, headers=headers)
    assert dup.json()["error"] == "Domain already in walled garden"

    bad = client.post("/api/walled-gardens", json={"domain": "not a domain"}, headers=headers)
    assert bad.json()["error"] == "Invalid domain"

    entries = client.get("/api/walled-gardens", headers=headers).json()
    assert [entry["domain"] for entry in entries] == ["safaricom.co.ke"]
    removed = client.delete(f"/api/walled-gardens/{entries[0]['id']}", headers=headers)
    assert removed.json()["message"] == "Domain removed"


def test_normalize_domain():
    assert normalize_domain(" http://M-Pesa.example.com:8080/path ") == "m-pesa.example.com"
    assert normalize_domain("*.google.com.") == "*.google.com"


def test_portal_info_and_plans(client, admin, make_plan, tenant):
    make_plan(tenant, name="Hour", price=10, duration_seconds=3600)
    make_plan(tenant, name="Hidden", is_active=False)
    make_plan(tenant, name="Home fibre", plan_type=PlanType.PPPOE, speed_mbps=10, price=2000)
    client.post("/api/walled-gardens", json={"domain": "mpesa.co.ke"}, headers=headers_for(admin))

    info = client.get(f"/api/portal/{tenant.subdomain.upper()}").json()
    assert info["name"] == tenant.name
    assert info["walledGarden"] == ["mpesa.co.ke"]
    assert info["brandingConfig"] == {}

    plans = client.get(f"/api/portal/{tenant.subdomain}/plans").json()
    assert [plan["name"] for plan in plans] == ["Hour"]


def test_unknown_portal_is_not_found(client):
    res = client.get("/api/portal/nowhere")
    assert res.status_code == 404
    assert res.json()["error"] == "Portal not found"


def test_portal_pay_records_pending_payment(client, db, make_plan, tenant):
    plan = make_plan(tenant, price=20)
    res = client.post(
        f"/api/portal/{tenant.subdomain}/pay",
        json={"planId": plan.id, "phoneNumber": "0712345678", "macAddress": "AA:BB:CC:DD:EE:01"},
    )
    assert res.status_code == 200
    assert res.json()["customerMessage"] == "Payment recorded. Complete payment to activate."

    tx = db.query(Transaction).one()
    assert tx.status == TransactionStatus.PENDING
    assert tx.mac_address == "AA:BB:CC:DD:EE:01"


def test_portal_pay_rejects_foreign_plan(client, make_plan, make_tenant, tenant):
    foreign = make_plan(make_tenant())
    res = client.post(f"/api/portal/{tenant.subdomain}/pay", json={"planId": foreign.id, "phoneNumber": "0712345678"})
    assert res.status_code == 404
    assert res.json()["error"] == "Plan not found"
