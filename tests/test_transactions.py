from datetime import datetime, timedelta, timezone

import httpx
import pytest
from fastapi import HTTPException

from app.models import (
    LoyaltyAccount,
    ReconciliationStatus,
    Transaction,
    TransactionStatus,
    WifiUser,
    WifiUserStatus,
)
from app.services.mpesa import MpesaClient, format_phone_number, parse_stk_callback, stk_password
from app.services.payments import initiate_payment

from conftest import headers_for


def _callback(checkout_id, result_code=0, receipt="QKT1AB2CD3", amount=50, phone=254712345678):
    callback = {
        "MerchantRequestID": "29115-34620561-1",
        "CheckoutRequestID": checkout_id,
        "ResultCode": result_code,
        "ResultDesc": "The service request is processed successfully." if result_code == 0 else "Cancelled",
    }
    if result_code == 0:
        callback["CallbackMetadata"] = {
            "Item": [
                {"Name": "Amount", "Value": amount},
                {"Name": "MpesaReceiptNumber", "Value": receipt},
                {"Name": "TransactionDate", "Value": 20260101120000},
                {"Name": "PhoneNumber", "Value": phone},
            ]
        }
    return {"Body": {"stkCallback": callback}}


@pytest.fixture
def pending_tx(db, make_plan, premium_tenant):
    plan = make_plan(premium_tenant, price=50, duration_seconds=3600)
    tx = Transaction(
        tenant_id=premium_tenant.id,
        plan_id=plan.id,
        user_phone="254712345678",
        amount=50,
        checkout_request_id="ws_CO_0001",
        status=TransactionStatus.PENDING,
        reconciliation_status=ReconciliationStatus.PENDING,
    )
    db.add(tx)
    db.commit()
    db.refresh(tx)
    return tx


def test_successful_callback_completes_and_activates_customer(client, db, pending_tx):
    res = client.post("/api/transactions/callback", json=_callback("ws_CO_0001"))
    assert res.status_code == 200
    assert res.json() == {"ResultCode": 0, "ResultDesc": "Accepted"}

    db.expire_all()
    tx = db.query(Transaction).filter(Transaction.id == pending_tx.id).one()
    assert tx.status == TransactionStatus.COMPLETED
    assert tx.reconciliation_status == ReconciliationStatus.MATCHED
    assert tx.mpesa_receipt_number == "QKT1AB2CD3"

    customer = db.query(WifiUser).filter(WifiUser.id == tx.wifi_user_id).one()
    assert customer.phone_number == "254712345678"
    assert customer.status == WifiUserStatus.ACTIVE
    assert tx.expires_at is not None

    account = db.query(LoyaltyAccount).filter(LoyaltyAccount.wifi_user_id == customer.id).one()
    assert account.points == 5


def test_cancelled_callback_marks_failed(client, db, pending_tx):
    client.post("/api/transactions/callback", json=_callback("ws_CO_0001", result_code=1032))

    db.expire_all()
    tx = db.query(Transaction).filter(Transaction.id == pending_tx.id).one()
    assert tx.status == TransactionStatus.FAILED
    assert tx.reconciliation_status == ReconciliationStatus.UNMATCHED
    assert tx.status_description == "Request cancelled by user"
    assert tx.wifi_user_id is None


def test_callback_retries_do_not_change_terminal_state(client, db, pending_tx):
    client.post("/api/transactions/callback", json=_callback("ws_CO_0001"))
    client.post("/api/transactions/callback", json=_callback("ws_CO_0001"))
    client.post("/api/transactions/callback", json=_callback("ws_CO_0001", result_code=1))

    db.expire_all()
    tx = db.query(Transaction).filter(Transaction.id == pending_tx.id).one()
    assert tx.status == TransactionStatus.COMPLETED
    account = db.query(LoyaltyAccount).filter(LoyaltyAccount.wifi_user_id == tx.wifi_user_id).one()
    assert account.points == 5


def test_callback_for_unknown_checkout_is_acknowledged(client):
    res = client.post("/api/transactions/callback", json=_callback("ws_CO_missing"))
    assert res.status_code == 200


def test_malformed_callback_is_rejected(client):
    res = client.post("/api/transactions/callback", json={"Body": {}})
    assert res.status_code == 400
    assert res.json()["error"] == "Missing stkCallback"


def test_reconcile_times_out_stale_pending_payments(client, db, premium_admin, premium_tenant, pending_tx):
    pending_tx.created_at = datetime.now(timezone.utc) - timedelta(minutes=30)
    db.add(
        Transaction(
            tenant_id=premium_tenant.id,
            user_phone="254700000001",
            amount=100,
            status=TransactionStatus.COMPLETED,
            mpesa_receipt_number="QKT9",
        )
    )
    db.add(
        Transaction(
            tenant_id=premium_tenant.id,
            user_phone="254700000002",
            amount=100,
            status=TransactionStatus.COMPLETED,
        )
    )
    db.add(Transaction(tenant_id=premium_tenant.id, user_phone="254700000003", amount=20))
    db.commit()

    res = client.post("/api/transactions/reconcile", headers=headers_for(premium_admin))
    assert res.status_code == 200
    assert res.json() == {"checked": 4, "matched": 1, "unmatched": 1, "manualReview": 1, "timedOut": 1}

    db.expire_all()
    stale = db.query(Transaction).filter(Transaction.id == pending_tx.id).one()
    assert stale.status == TransactionStatus.FAILED
    assert stale.status_description == "Payment timed out"


def test_reconcile_requires_premium(client, admin):
    res = client.post("/api/transactions/reconcile", headers=headers_for(admin))
    assert res.status_code == 403


def test_initiate_without_mpesa_records_pending(client, admin, make_plan, tenant):
    plan = make_plan(tenant, price=30)
    res = client.post(
        "/api/transactions/initiate",
        json={"planId": plan.id, "phoneNumber": "0712345678"},
        headers=headers_for(admin),
    )
    assert res.status_code == 200
    body = res.json()
    assert body["customerMessage"] == "Payment recorded. Complete payment to activate."
    assert body["transaction"]["status"] == "PENDING"
    assert body["transaction"]["amount"] == 30
    assert body["transaction"]["userPhone"] == "254712345678"

    verify = client.post(f"/api/transactions/{body['transaction']['id']}/verify", headers=headers_for(admin))
    assert verify.status_code == 400


def test_list_and_get_are_tenant_scoped(client, db, admin, make_tenant, tenant):
    mine = Transaction(tenant_id=tenant.id, user_phone="254711000000", amount=10)
    theirs = Transaction(tenant_id=make_tenant().id, user_phone="254722000000", amount=10)
    db.add_all([mine, theirs])
    db.commit()
    headers = headers_for(admin)

    listed = client.get("/api/transactions", headers=headers).json()
    assert [tx["userPhone"] for tx in listed] == ["254711000000"]
    assert client.get(f"/api/transactions/{theirs.id}", headers=headers).status_code == 404

    bad_limit = client.get("/api/transactions", params={"limit": 0}, headers=headers)
    assert bad_limit.status_code == 400


def _configured(tenant, db):
    tenant.mpesa_shortcode = "174379"
    tenant.mpesa_passkey = "passkey"
    tenant.mpesa_consumer_key = "key"
    tenant.mpesa_consumer_secret = "secret"
    db.commit()
    return tenant


def test_initiate_payment_sends_stk_push(db, make_plan, tenant):
    _configured(tenant, db)
    plan = make_plan(tenant, name="Hourly", price=20, duration_seconds=3600)
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/oauth/v1/generate":
            return httpx.Response(200, json={"access_token": "token", "expires_in": "3599"})
        seen["body"] = request.read()
        return httpx.Response(
            200,
            json={
                "MerchantRequestID": "m-1",
                "CheckoutRequestID": "ws_CO_42",
                "ResponseCode": "0",
                "ResponseDescription": "Success. Request accepted for processing",
                "CustomerMessage": "Success. Request accepted for processing",
            },
        )

    factory = lambda t: MpesaClient(t, transport=httpx.MockTransport(handler))  # noqa: E731
    tx, message = initiate_payment(db, tenant, plan, "0712345678", client_factory=factory)

    assert tx.checkout_request_id == "ws_CO_42"
    assert tx.status == TransactionStatus.PENDING
    assert message == "Success. Request accepted for processing"
    assert b'"PhoneNumber":"254712345678"' in seen["body"].replace(b" ", b"")


def test_initiate_payment_marks_failed_when_daraja_rejects(db, make_plan, tenant):
    _configured(tenant, db)
    plan = make_plan(tenant)

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/oauth/v1/generate":
            return httpx.Response(200, json={"access_token": "token"})
        return httpx.Response(400, json={"errorMessage": "Bad Request - Invalid PhoneNumber"})

    factory = lambda t: MpesaClient(t, transport=httpx.MockTransport(handler))  # noqa: E731
    with pytest.raises(HTTPException) as exc:
        initiate_payment(db, tenant, plan, "0712345678", client_factory=factory)
    assert exc.value.status_code == 502

    tx = db.query(Transaction).one()
    assert tx.status == TransactionStatus.FAILED
    assert tx.status_description == "Bad Request - Invalid PhoneNumber"


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("0712345678", "254712345678"),
        ("+254 712 345 678", "254712345678"),
        ("712345678", "254712345678"),
        ("254112345678", "254112345678"),
    ],
)
def test_format_phone_number(raw, expected):
    assert format_phone_number(raw) == expected


def test_format_phone_number_rejects_short_numbers():
    with pytest.raises(ValueError):
        format_phone_number("07123")


def test_parse_stk_callback_reads_metadata():
    parsed = parse_stk_callback(_callback("ws_CO_7", amount="50.00"))
    assert parsed.succeeded
    assert parsed.amount == 50
    assert parsed.receipt_number == "QKT1AB2CD3"
    assert parsed.phone_number == "254712345678"


def test_parse_stk_callback_rejects_bad_result_code():
    with pytest.raises(ValueError):
        parse_stk_callback({"Body": {"stkCallback": {"ResultCode": "x"}}})


def test_stk_password_is_base64_of_parts():
    assert stk_password("174379", "key", "20260101120000") == "MTc0Mzc5a2V5MjAyNjAxMDExMjAwMDA="
