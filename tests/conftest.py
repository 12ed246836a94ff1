import os


def _set_test_env() -> None:
    defaults = {
        "APP_NAME": "Mnetifi Test",
        "ENVIRONMENT": "test",
        "SECRET_KEY": "test-secret",
        "ACCESS_TOKEN_EXPIRE_MINUTES": "30",
        "REFRESH_TOKEN_EXPIRE_DAYS": "7",
        "PASSWORD_BCRYPT_ROUNDS": "4",
        "AUTO_CREATE_TABLES": "false",
        "RATE_LIMIT_ENABLED": "false",
        "DATABASE_URL": "sqlite://",
        "EMAIL_PROVIDER": "console",
        "MPESA_SANDBOX": "true",
        "LOYALTY_KES_PER_POINT": "10",
        "PAYMENT_TIMEOUT_MINUTES": "10",
        "CORS_ORIGINS": "http://localhost:5173,http://localhost:3000",
        "BOOTSTRAP_SUPERADMIN_USERNAMES": "",
    }
    for key, value in defaults.items():
        os.environ.setdefault(key, value)


_set_test_env()

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from app.core.database import Base, SessionLocal, engine  # noqa: E402
from app.core.security import create_access_token, hash_password  # noqa: E402
from app.main import app  # noqa: E402
from app.models import (  # noqa: E402
    Hotspot,
    Plan,
    PlanType,
    SaasBillingStatus,
    SubscriptionTier,
    Tenant,
    User,
    UserRole,
    WifiUser,
)
from app.utils.cache import invalidate_cached  # noqa: E402

TEST_PASSWORD = "Passw0rd!"


@pytest.fixture(autouse=True)
def _database():
    Base.metadata.create_all(bind=engine)
    invalidate_cached()
    app.dependency_overrides.clear()
    yield
    app.dependency_overrides.clear()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def make_tenant(db):
    counter = {"n": 0}

    def _make(tier=SubscriptionTier.BASIC, status=SaasBillingStatus.ACTIVE, **fields):
        counter["n"] += 1
        values = {
            "name": f"ISP {counter['n']}",
            "subdomain": f"isp{counter['n']}",
            "phone": "0712345678",
            "subscription_tier": tier,
            "saas_billing_status": status,
            "is_active": True,
        }
        values.update(fields)
        tenant = Tenant(**values)
        db.add(tenant)
        db.commit()
        db.refresh(tenant)
        return tenant

    return _make


@pytest.fixture
def make_user(db):
    def _make(tenant=None, role=UserRole.ADMIN, username=None, **fields):
        username = username or f"{role.value}{db.query(User).count() + 1}"
        user = User(
            tenant_id=tenant.id if tenant is not None else None,
            username=username,
            email=f"{username}@example.com",
            hashed_password=hash_password(TEST_PASSWORD),
            role=role,
            is_active=True,
            email_verified=True,
            **fields,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def make_plan(db):
    def _make(tenant, name="Daily", price=50, duration_seconds=86400, plan_type=PlanType.HOTSPOT, **fields):
        plan = Plan(
            tenant_id=tenant.id,
            name=name,
            price=price,
            duration_seconds=duration_seconds,
            plan_type=plan_type,
            **fields,
        )
        db.add(plan)
        db.commit()
        db.refresh(plan)
        return plan

    return _make


@pytest.fixture
def make_wifi_user(db):
    def _make(tenant, phone_number="254712345678", **fields):
        customer = WifiUser(tenant_id=tenant.id, phone_number=phone_number, **fields)
        db.add(customer)
        db.commit()
        db.refresh(customer)
        return customer

    return _make


@pytest.fixture
def make_hotspot(db):
    def _make(tenant, **fields):
        values = {"location_name": "Main Stage", "nas_ip": "10.0.0.1", "secret": "radius-secret"}
        values.update(fields)
        hotspot = Hotspot(tenant_id=tenant.id, **values)
        db.add(hotspot)
        db.commit()
        db.refresh(hotspot)
        return hotspot

    return _make


def headers_for(user: User) -> dict:
    token = create_access_token(str(user.id), UserRole(user.role).value, user.tenant_id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers():
    return headers_for


@pytest.fixture
def tenant(make_tenant):
    return make_tenant()


@pytest.fixture
def premium_tenant(make_tenant):
    return make_tenant(tier=SubscriptionTier.PREMIUM, name="Premium ISP", subdomain="premium")


@pytest.fixture
def admin(make_user, tenant):
    return make_user(tenant, UserRole.ADMIN, username="admin")


@pytest.fixture
def premium_admin(make_user, premium_tenant):
    return make_user(premium_tenant, UserRole.ADMIN, username="padmin")

