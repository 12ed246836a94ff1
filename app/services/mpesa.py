import base64
import logging
import re
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

import httpx

from app.core.config import get_settings
from app.models import Tenant

settings = get_settings()
logger = logging.getLogger(__name__)

SANDBOX_BASE_URL = "https://sandbox.safaricom.co.ke"
PRODUCTION_BASE_URL = "https://api.safaricom.co.ke"

RESULT_CANCELLED_BY_USER = 1032
RESULT_DESCRIPTIONS = {
    0: "The service request is processed successfully.",
    1: "The balance is insufficient for the transaction.",
    1032: "Request cancelled by user",
    1037: "DS timeout user cannot be reached",
    2001: "The initiator information is invalid.",
}


class MpesaError(Exception):
    def __init__(self, message: str, *, status_code: int | None = None, raw: str | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.raw = raw


def format_phone_number(phone: str) -> str:
    """Normalise a Kenyan MSISDN to the 2547XXXXXXXX form Daraja expects."""
    cleaned = re.sub(r"\D", "", str(phone or ""))
    if cleaned.startswith("0"):
        cleaned = "254" + cleaned[1:]
    elif not cleaned.startswith("254"):
        cleaned = "254" + cleaned
    if len(cleaned) != 12:
        raise ValueError("Invalid phone number")
    return cleaned


def daraja_timestamp(now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    return now.strftime("%Y%m%d%H%M%S")


def stk_password(shortcode: str, passkey: str, timestamp: str) -> str:
    return base64.b64encode(f"{shortcode}{passkey}{timestamp}".encode()).decode()


@dataclass
class StkCallback:
    merchant_request_id: Optional[str]
    checkout_request_id: Optional[str]
    result_code: int
    result_desc: str
    receipt_number: Optional[str] = None
    amount: Optional[int] = None
    phone_number: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.result_code == 0


def parse_stk_callback(body: dict) -> StkCallback:
    if not isinstance(body, dict):
        raise ValueError("Callback body must be an object")
    callback = (body.get("Body") or {}).get("stkCallback")
    if not isinstance(callback, dict):
        raise ValueError("Missing stkCallback")

    try:
        result_code = int(callback.get("ResultCode"))
    except (TypeError, ValueError):
        raise ValueError("Invalid ResultCode")

    metadata = {}
    items = (callback.get("CallbackMetadata") or {}).get("Item") or []
    for item in items:
        if isinstance(item, dict) and item.get("Name"):
            metadata[item["Name"]] = item.get("Value")

    amount = metadata.get("Amount")
    phone = metadata.get("PhoneNumber")
    return StkCallback(
        merchant_request_id=callback.get("MerchantRequestID"),
        checkout_request_id=callback.get("CheckoutRequestID"),
        result_code=result_code,
        result_desc=str(callback.get("ResultDesc") or RESULT_DESCRIPTIONS.get(result_code, "Unknown result")),
        receipt_number=metadata.get("MpesaReceiptNumber"),
        amount=int(float(amount)) if amount not in (None, "") else None,
        phone_number=str(phone) if phone not in (None, "") else None,
    )


class MpesaClient:
    def __init__(self, tenant: Tenant, *, transport: httpx.BaseTransport | None = None):
        self.tenant = tenant
        self.base_url = SANDBOX_BASE_URL if settings.mpesa_sandbox else PRODUCTION_BASE_URL
        self.timeout = settings.mpesa_timeout_seconds
        self.transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(base_url=self.base_url, timeout=self.timeout, transport=self.transport)

    def _extract_error_message(self, response: httpx.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            data = {}
        if isinstance(data, dict):
            for key in ("errorMessage", "ResponseDescription", "error_description", "message"):
                value = data.get(key)
                if isinstance(value, str) and value.strip():
                    return value.strip()
        text = (response.text or "").strip()
        return text[:300] if text else f"HTTP {response.status_code}"

    def get_access_token(self) -> str:
        key = self.tenant.mpesa_consumer_key
        secret = self.tenant.mpesa_consumer_secret
        if not key or not secret:
            raise MpesaError("M-Pesa credentials not configured for this tenant")
        credentials = base64.b64encode(f"{key}:{secret}".encode()).decode()
        try:
            with self._client() as client:
                response = client.get(
                    "/oauth/v1/generate",
                    params={"grant_type": "client_credentials"},
                    headers={"Authorization": f"Basic {credentials}"},
                )
        except httpx.HTTPError as exc:
            raise MpesaError("Unable to reach M-Pesa.", raw=str(exc)) from exc
        if response.status_code >= 400:
            raise MpesaError(
                f"Failed to get M-Pesa access token: {self._extract_error_message(response)}",
                status_code=response.status_code,
                raw=response.text,
            )
        token = (response.json() or {}).get("access_token")
        if not token:
            raise MpesaError("M-Pesa returned no access token", status_code=response.status_code)
        return token

    def _password(self) -> tuple[str, str]:
        shortcode = self.tenant.mpesa_shortcode
        passkey = self.tenant.mpesa_passkey
        if not shortcode or not passkey:
            raise MpesaError("M-Pesa shortcode or passkey not configured")
        timestamp = daraja_timestamp()
        return stk_password(shortcode, passkey, timestamp), timestamp

    def _post(self, path: str, payload: dict) -> dict:
        token = self.get_access_token()
        start = time.time()
        try:
            with self._client() as client:
                response = client.post(path, json=payload, headers={"Authorization": f"Bearer {token}"})
        except httpx.HTTPError as exc:
            raise MpesaError("Unable to reach M-Pesa.", raw=str(exc)) from exc
        duration_ms = round((time.time() - start) * 1000, 2)
        logger.info("M-Pesa POST %s status=%s duration=%sms", path, response.status_code, duration_ms)
        if response.status_code >= 400:
            raise MpesaError(self._extract_error_message(response), status_code=response.status_code, raw=response.text)
        try:
            return response.json()
        except ValueError as exc:
            raise MpesaError("M-Pesa returned invalid JSON response.", status_code=response.status_code) from exc

    def stk_push(self, phone: str, amount: int, account_reference: str, description: str, callback_url: str) -> dict:
        password, timestamp = self._password()
        msisdn = format_phone_number(phone)
        payload = {
            "BusinessShortCode": self.tenant.mpesa_shortcode,
            "Password": password,
            "Timestamp": timestamp,
            "TransactionType": "CustomerPayBillOnline",
            "Amount": int(amount),
            "PartyA": msisdn,
            "PartyB": self.tenant.mpesa_shortcode,
            "PhoneNumber": msisdn,
            "CallBackURL": callback_url,
            "AccountReference": account_reference[:12],
            "TransactionDesc": description[:13],
        }
        data = self._post("/mpesa/stkpush/v1/processrequest", payload)
        if str(data.get("ResponseCode", "")) != "0":
            raise MpesaError(data.get("ResponseDescription") or "STK push rejected", raw=str(data))
        return data

    def query_status(self, checkout_request_id: str) -> dict:
        password, timestamp = self._password()
        payload = {
            "BusinessShortCode": self.tenant.mpesa_shortcode,
            "Password": password,
            "Timestamp": timestamp,
            "CheckoutRequestID": checkout_request_id,
        }
        return self._post("/mpesa/stkpushquery/v1/query", payload)
