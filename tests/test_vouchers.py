import re
from datetime import datetime, timedelta, timezone

import pytest
from fastapi import HTTPException

from app.models import Voucher, VoucherBatch, VoucherStatus
from app.services.vouchers import (
    VOUCHER_ALPHABET,
    effective_status,
    generate_unique_codes,
    normalize_code,
    normalize_prefix,
    redeem_voucher,
)

from conftest import headers_for


def _create_batch(client, user, plan, **fields):
    payload = {"name": "Weekend", "planId": plan.id, "quantity": 5, "prefix": "wk-end!"}
    payload.update(fields)
    return client.post("/api/voucher-batches", json=payload, headers=headers_for(user))


def test_create_batch_generates_prefixed_codes(client, admin, make_plan, tenant):
    plan = make_plan(tenant)
    res = _create_batch(client, admin, plan)
    assert res.status_code == 201
    batch = res.json()
    assert batch["prefix"] == "WKEND"
    assert batch["usedCount"] == 0

    vouchers = client.get(f"/api/voucher-batches/{batch['id']}/vouchers", headers=headers_for(admin)).json()
    codes = [voucher["code"] for voucher in vouchers]
    assert len(codes) == len(set(codes)) == 5
    pattern = re.compile(rf"^WKEND-[{VOUCHER_ALPHABET}]{{8}}$")
    assert all(pattern.match(code) for code in codes)
    assert {voucher["status"] for voucher in vouchers} == {"AVAILABLE"}


def test_batch_quantity_limits(client, admin, make_plan, tenant):
    plan = make_plan(tenant)
    too_many = _create_batch(client, admin, plan, quantity=1001)
    assert too_many.status_code == 400
    assert too_many.json()["error"] == "Quantity cannot exceed 1000"

    none = _create_batch(client, admin, plan, quantity=0)
    assert none.json()["error"] == "Quantity must be at least 1"


def test_batch_validity_window_must_be_ordered(client, admin, make_plan, tenant):
    plan = make_plan(tenant)
    res = _create_batch(
        client,
        admin,
        plan,
        validFrom="2026-02-01T00:00:00Z",
        validUntil="2026-01-01T00:00:00Z",
    )
    assert res.status_code == 400
    assert res.json()["error"] == "validUntil must be after validFrom"


def test_portal_verify_and_redeem(client, db, admin, make_plan, tenant):
    plan = make_plan(tenant, duration_seconds=7200)
    batch = _create_batch(client, admin, plan, quantity=1).json()
    voucher = db.query(Voucher).filter(Voucher.batch_id == batch["id"]).one()

    verify = client.get(f"/api/portal/{tenant.subdomain}/vouchers/{voucher.code.lower()}")
    assert verify.status_code == 200
    assert verify.json()["valid"] is True
    assert verify.json()["plan"]["id"] == plan.id

    res = client.post(
        f"/api/portal/{tenant.subdomain}/vouchers/redeem",
        json={"code": voucher.code, "phoneNumber": "0712345678", "macAddress": "AA:BB:CC:DD:EE:FF"},
    )
    assert res.status_code == 200
    body = res.json()
    assert body["voucher"]["status"] == "USED"
    assert body["wifiUser"]["phoneNumber"] == "254712345678"
    assert body["expiresAt"] is not None

    again = client.post(f"/api/portal/{tenant.subdomain}/vouchers/redeem", json={"code": voucher.code})
    assert again.status_code == 400
    assert again.json()["error"] == "Voucher is used"

    db.expire_all()
    assert db.query(VoucherBatch).filter(VoucherBatch.id == batch["id"]).one().used_count == 1


def test_redeem_without_phone_creates_voucher_customer(client, db, admin, make_plan, tenant):
    plan = make_plan(tenant)
    batch = _create_batch(client, admin, plan, quantity=1, prefix="ABCDEFGH").json()
    voucher = db.query(Voucher).filter(Voucher.batch_id == batch["id"]).one()

    res = client.post(f"/api/portal/{tenant.subdomain}/vouchers/redeem", json={"code": voucher.code})
    assert res.status_code == 200
    assert res.json()["wifiUser"]["phoneNumber"] == f"VOUCHER-{voucher.code}"


def test_expired_voucher_cannot_be_redeemed(client, db, admin, make_plan, tenant):
    plan = make_plan(tenant)
    batch = _create_batch(client, admin, plan, quantity=1).json()
    voucher = db.query(Voucher).filter(Voucher.batch_id == batch["id"]).one()
    voucher.valid_until = datetime.now(timezone.utc) - timedelta(hours=1)
    db.commit()

    verify = client.get(f"/api/portal/{tenant.subdomain}/vouchers/{voucher.code}").json()
    assert verify["status"] == "EXPIRED"
    assert verify["valid"] is False

    res = client.post(f"/api/portal/{tenant.subdomain}/vouchers/redeem", json={"code": voucher.code})
    assert res.status_code == 400
    assert res.json()["error"] == "Voucher is expired"


def test_unknown_voucher_is_not_found(client, tenant):
    res = client.post(f"/api/portal/{tenant.subdomain}/vouchers/redeem", json={"code": "NOPE"})
    assert res.status_code == 404
    assert res.json()["error"] == "Voucher not found"


def test_disable_batch_and_single_voucher(client, db, admin, make_plan, tenant):
    plan = make_plan(tenant)
    headers = headers_for(admin)
    batch = _create_batch(client, admin, plan, quantity=3).json()
    vouchers = client.get("/api/vouchers", params={"batchId": batch["id"]}, headers=headers).json()

    single = client.post(f"/api/vouchers/{vouchers[0]['id']}/disable", headers=headers)
    assert single.json()["status"] == "DISABLED"
    twice = client.post(f"/api/vouchers/{vouchers[0]['id']}/disable", headers=headers)
    assert twice.status_code == 400

    res = client.post(f"/api/voucher-batches/{batch['id']}/disable", headers=headers)
    assert res.json() == {"disabled": 2}

    available = client.get("/api/vouchers", params={"status": "AVAILABLE"}, headers=headers).json()
    assert available == []


def test_vouchers_list_filters_expired_by_effective_status(client, db, admin, make_plan, tenant):
    plan = make_plan(tenant)
    headers = headers_for(admin)
    batch = _create_batch(client, admin, plan, quantity=2).json()
    first = db.query(Voucher).filter(Voucher.batch_id == batch["id"]).order_by(Voucher.id.asc()).first()
    first.valid_until = datetime.now(timezone.utc) - timedelta(minutes=5)
    db.commit()

    expired = client.get("/api/vouchers", params={"status": "EXPIRED"}, headers=headers).json()
    assert [voucher["code"] for voucher in expired] == [first.code]

    by_code = client.get("/api/vouchers", params={"code": first.code[-4:].lower()}, headers=headers).json()
    assert first.code in {voucher["code"] for voucher in by_code}


def test_redeem_rejects_not_yet_valid_batch(db, make_plan, tenant):
    plan = make_plan(tenant)
    batch = VoucherBatch(
        tenant_id=tenant.id,
        plan_id=plan.id,
        name="Future",
        quantity=1,
        used_count=0,
        valid_from=datetime.now(timezone.utc) + timedelta(days=1),
    )
    db.add(batch)
    db.flush()
    db.add(Voucher(tenant_id=tenant.id, batch_id=batch.id, plan_id=plan.id, code="FUTURE01"))
    db.commit()

    with pytest.raises(HTTPException) as exc:
        redeem_voucher(db, tenant, "future01", datetime.now(timezone.utc))
    assert exc.value.detail == "Voucher is not valid yet"


def test_normalizers():
    assert normalize_prefix(" hot-spot 2026 ") == "HOTSPO"
    assert normalize_prefix(None) == ""
    assert normalize_code(" ab cd-12 ") == "ABCD-12"


def test_generate_unique_codes_skips_existing():
    picks = iter("AAAAAAAA" + "AAAAAAAA" + "BBBBBBBB")

    codes = generate_unique_codes(1, "", existing={"AAAAAAAA"}, choice=lambda alphabet: next(picks))
    assert codes == ["BBBBBBBB"]


def test_effective_status_only_expires_available_vouchers():
    past = datetime.now(timezone.utc) - timedelta(seconds=1)
    now = datetime.now(timezone.utc)
    assert effective_status(Voucher(status=VoucherStatus.AVAILABLE, valid_until=past), now) == VoucherStatus.EXPIRED
    assert effective_status(Voucher(status=VoucherStatus.USED, valid_until=past), now) == VoucherStatus.USED
    assert effective_status(Voucher(status=VoucherStatus.AVAILABLE), now) == VoucherStatus.AVAILABLE
