from datetime import datetime, timedelta, timezone

import pyotp

from app.core.security import decode_token
from app.models import SaasBillingStatus, Tenant, User, UserRole

from conftest import TEST_PASSWORD, headers_for

STRONG_PASSWORD = "Str0ng!Pass"


def _register_payload(**overrides):
    payload = {
        "businessName": "Skyline WiFi",
        "subdomain": "skyline",
        "username": "skyadmin",
        "email": "owner@skyline.example.com",
        "password": STRONG_PASSWORD,
        "subscriptionTier": "BASIC",
    }
    payload.update(overrides)
    return payload


def test_register_basic_starts_trial_and_logs_in(client, db):
    res = client.post("/api/auth/register", json=_register_payload())

    assert res.status_code == 200
    body = res.json()
    assert body["accessToken"]
    assert body["refreshToken"]
    assert body["requiresEmailVerification"] is False
    assert body["user"]["role"] == "admin"

    tenant = db.query(Tenant).filter(Tenant.subdomain == "skyline").one()
    assert tenant.saas_billing_status == SaasBillingStatus.TRIAL
    assert tenant.trial_expires_at is not None
    claims = decode_token(body["accessToken"])
    assert claims["tid"] == tenant.id
    assert claims["type"] == "access"


def test_register_premium_requires_email_verification(client, db):
    res = client.post(
        "/api/auth/register",
        json=_register_payload(subscriptionTier="PREMIUM", paymentMethod="mpesa", phoneNumber="0712345678"),
    )

    assert res.status_code == 200
    body = res.json()
    assert body["requiresEmailVerification"] is True
    assert body["accessToken"] is None

    user = db.query(User).filter(User.username == "skyadmin").one()
    assert user.email_verified is False
    tenant = db.query(Tenant).filter(Tenant.id == user.tenant_id).one()
    assert tenant.registration_payment_method == "MPESA"
    assert tenant.registration_payment_status == "PENDING"

    verify = client.post("/api/auth/verify-email", json={"token": user.verification_token})
    assert verify.status_code == 200
    db.expire_all()
    assert db.query(User).filter(User.username == "skyadmin").one().email_verified is True


def test_register_premium_without_payment_method_is_rejected(client):
    res = client.post("/api/auth/register", json=_register_payload(subscriptionTier="PREMIUM"))
    assert res.status_code == 400
    assert res.json()["error"] == "Invalid data"


def test_register_rejects_weak_password_and_bad_subdomain(client):
    weak = client.post("/api/auth/register", json=_register_payload(password="password"))
    assert weak.status_code == 400
    assert any(item["field"] == "password" for item in weak.json()["details"])

    bad = client.post("/api/auth/register", json=_register_payload(subdomain="Sky Line"))
    assert bad.status_code == 400


def test_register_rejects_taken_subdomain(client, tenant):
    res = client.post("/api/auth/register", json=_register_payload(subdomain=tenant.subdomain))
    assert res.status_code == 400
    assert res.json()["error"] == "Subdomain is already taken"


def test_login_with_username_or_email(client, admin):
    by_username = client.post("/api/auth/login", json={"username": "admin", "password": TEST_PASSWORD})
    assert by_username.status_code == 200
    assert by_username.json()["user"]["username"] == "admin"

    by_email = client.post("/api/auth/login", json={"username": admin.email, "password": TEST_PASSWORD})
    assert by_email.status_code == 200


def test_login_rejects_bad_password_and_inactive_user(client, db, admin):
    res = client.post("/api/auth/login", json={"username": "admin", "password": "Wrong!Pass1"})
    assert res.status_code == 401
    assert res.json()["error"] == "Invalid credentials"

    admin.is_active = False
    db.commit()
    res = client.post("/api/auth/login", json={"username": "admin", "password": TEST_PASSWORD})
    assert res.status_code == 403


def test_refresh_issues_new_pair_and_rejects_access_tokens(client, admin):
    login = client.post("/api/auth/login", json={"username": "admin", "password": TEST_PASSWORD}).json()

    res = client.post("/api/auth/refresh", json={"refreshToken": login["refreshToken"]})
    assert res.status_code == 200
    assert decode_token(res.json()["accessToken"])["type"] == "access"

    wrong = client.post("/api/auth/refresh", json={"refreshToken": login["accessToken"]})
    assert wrong.status_code == 401


def test_me_and_update_me(client, admin):
    headers = headers_for(admin)
    assert client.get("/api/auth/me", headers=headers).json()["username"] == "admin"

    res = client.patch("/api/auth/me", json={"fullName": "Grace Wanjiku"}, headers=headers)
    assert res.status_code == 200
    assert res.json()["fullName"] == "Grace Wanjiku"


def test_forgot_password_does_not_enumerate_users(client):
    res = client.post("/api/auth/forgot-password", json={"email": "nobody@example.com"})
    assert res.status_code == 200
    assert res.json()["message"] == "If the email exists, a reset link has been sent"
    assert res.json().get("resetToken") is None


def test_password_reset_flow(client, db, admin):
    res = client.post("/api/auth/forgot-password", json={"email": admin.email})
    token = res.json()["resetToken"]
    assert token

    reset = client.post("/api/auth/reset-password", json={"token": token, "newPassword": STRONG_PASSWORD})
    assert reset.status_code == 200

    login = client.post("/api/auth/login", json={"username": "admin", "password": STRONG_PASSWORD})
    assert login.status_code == 200


def test_expired_reset_token_is_rejected(client, db, admin):
    admin.reset_token = "expired-token"
    admin.reset_token_expires_at = datetime.now(timezone.utc) - timedelta(minutes=1)
    db.commit()

    res = client.post("/api/auth/reset-password", json={"token": "expired-token", "newPassword": STRONG_PASSWORD})
    assert res.status_code == 400
    assert res.json()["error"] == "Invalid or expired token"


def test_change_password_requires_current_password(client, admin):
    headers = headers_for(admin)
    bad = client.post(
        "/api/auth/change-password",
        json={"currentPassword": "nope", "newPassword": STRONG_PASSWORD},
        headers=headers,
    )
    assert bad.status_code == 400

    ok = client.post(
        "/api/auth/change-password",
        json={"currentPassword": TEST_PASSWORD, "newPassword": STRONG_PASSWORD},
        headers=headers,
    )
    assert ok.status_code == 200


def test_register_superadmin_only_once(client):
    payload = {"username": "root", "email": "root@example.com", "password": STRONG_PASSWORD}
    first = client.post("/api/auth/register-superadmin", json=payload)
    assert first.status_code == 200
    assert first.json()["role"] == "superadmin"

    second = client.post(
        "/api/auth/register-superadmin",
        json={"username": "root2", "email": "root2@example.com", "password": STRONG_PASSWORD},
    )
    assert second.status_code == 403


def test_tenant_scoped_routes_reject_superadmin_without_tenant(client, make_user):
    superadmin = make_user(None, UserRole.SUPERADMIN, username="root")
    res = client.get("/api/plans", headers=headers_for(superadmin))
    assert res.status_code == 403
    assert res.json()["error"] == "No tenant associated with this account"


def test_expired_trial_returns_payment_required(client, db, tenant, admin):
    tenant.saas_billing_status = SaasBillingStatus.TRIAL
    tenant.trial_expires_at = datetime.now(timezone.utc) - timedelta(hours=1)
    db.commit()

    res = client.get("/api/plans", headers=headers_for(admin))
    assert res.status_code == 402


def test_two_factor_setup_verify_login_and_disable(client, admin):
    headers = headers_for(admin)
    assert client.get("/api/auth/2fa/status", headers=headers).json() == {"enabled": False, "pending": False}

    setup = client.post("/api/auth/2fa/setup", headers=headers).json()
    assert setup["otpauthUrl"].startswith("otpauth://totp/")
    totp = pyotp.TOTP(setup["secret"])

    assert client.get("/api/auth/2fa/status", headers=headers).json()["pending"] is True
    bad = client.post("/api/auth/2fa/verify", json={"code": "000000"}, headers=headers)
    assert bad.status_code == 400

    ok = client.post("/api/auth/2fa/verify", json={"code": totp.now()}, headers=headers)
    assert ok.status_code == 200

    missing_code = client.post("/api/auth/login", json={"username": "admin", "password": TEST_PASSWORD})
    assert missing_code.status_code == 401
    assert missing_code.json()["error"] == "Two-factor code required"

    with_code = client.post(
        "/api/auth/login",
        json={"username": "admin", "password": TEST_PASSWORD, "code": totp.now()},
    )
    assert with_code.status_code == 200

    wrong_password = client.post(
        "/api/auth/2fa/disable",
        json={"password": "wrong", "code": totp.now()},
        headers=headers,
    )
    assert wrong_password.status_code == 401

    disabled = client.post(
        "/api/auth/2fa/disable",
        json={"password": TEST_PASSWORD, "code": totp.now()},
        headers=headers,
    )
    assert disabled.status_code == 200
    assert client.get("/api/auth/2fa/status", headers=headers).json()["enabled"] is False
