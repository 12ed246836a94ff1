"""Client-side checks run before any mutation is sent.

Each validator raises :class:`ValidationFailed` with errors keyed by field,
mirroring the rules the server enforces so the operator hears about them
without a round-trip.
"""

import re
from typing import Any, Optional

from app.console.api import ConsoleError

SUBDOMAIN_RE = re.compile(r"^[a-z0-9-]+$")
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
CODE_RE = re.compile(r"^\d{6}$")
SPECIAL_RE = re.compile(r"[!@#$%^&*(),.?\":{}|<>]")

STRENGTH_LABELS = {5: "Strong", 4: "Good", 3: "Fair", 2: "Weak"}


class ValidationFailed(ConsoleError):
    title = "Validation Error"

    def __init__(self, errors: dict[str, str], title: Optional[str] = None):
        self.errors = dict(errors)
        super().__init__(next(iter(self.errors.values()), "Invalid input"))
        if title:
            self.title = title


class Errors:
    def __init__(self):
        self.fields: dict[str, str] = {}

    def add(self, field: str, message: str) -> None:
        self.fields.setdefault(field, message)

    def raise_if_any(self, title: Optional[str] = None) -> None:
        if self.fields:
            raise ValidationFailed(self.fields, title)


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _as_number(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def as_int(value: Any) -> Optional[int]:
    """Whole number from form input, or None when blank or not integral."""
    number = _as_number(value)
    if number is None or not number.is_integer():
        return None
    return int(number)


def _positive(errors: Errors, data: dict, field: str, label: str) -> None:
    number = _as_number(data.get(field))
    if number is None or number <= 0:
        errors.add(field, f"{label} must be greater than 0")
    elif not number.is_integer():
        errors.add(field, f"{label} must be a whole number")


def _optional_id(errors: Errors, data: dict, field: str, message: str) -> None:
    if _blank(data.get(field)):
        return
    number = as_int(data.get(field))
    if number is None or number <= 0:
        errors.add(field, message)


def password_strength(password: str) -> tuple[int, str, dict[str, bool]]:
    password = password or ""
    requirements = {
        "min_length": len(password) >= 8,
        "has_uppercase": bool(re.search(r"[A-Z]", password)),
        "has_lowercase": bool(re.search(r"[a-z]", password)),
        "has_number": bool(re.search(r"[0-9]", password)),
        "has_special": bool(SPECIAL_RE.search(password)),
    }
    score = sum(requirements.values())
    return score, STRENGTH_LABELS.get(score, "Very Weak"), requirements


def validate_email(value: Any, field: str = "email") -> None:
    if _blank(value):
        raise ValidationFailed({field: "Email is required"})
    if not EMAIL_RE.match(str(value).strip()):
        raise ValidationFailed({field: "Please enter a valid email address"})


def validate_subdomain(value: Any, field: str = "subdomain") -> None:
    if _blank(value):
        raise ValidationFailed({field: "Subdomain is required"})
    if not SUBDOMAIN_RE.match(str(value)):
        raise ValidationFailed({field: "Subdomain can only contain lowercase letters, numbers, and hyphens"})


def phone_digits(value: Any) -> str:
    return re.sub(r"\D", "", str(value or ""))


def validate_phone(value: Any, field: str = "phoneNumber") -> str:
    digits = phone_digits(value)
    if not 10 <= len(digits) <= 12:
        raise ValidationFailed({field: "Phone number must have 10 to 12 digits"})
    return digits


def validate_code(value: Any, field: str = "code") -> str:
    code = str(value or "").strip()
    if not CODE_RE.match(code):
        raise ValidationFailed({field: "Enter the 6-digit code from your authenticator app"})
    return code


def validate_hotspot_plan(data: dict) -> None:
    errors = Errors()
    if _blank(data.get("name")):
        errors.add("name", "Plan name is required")
    _positive(errors, data, "price", "Price")
    _positive(errors, data, "durationSeconds", "Duration")
    if not _blank(data.get("maxDevices")):
        _positive(errors, data, "maxDevices", "Max devices")
    errors.raise_if_any()


def validate_pppoe_plan(data: dict) -> None:
    errors = Errors()
    if _blank(data.get("name")):
        errors.add("name", "Plan name is required")
    _positive(errors, data, "price", "Price")
    _positive(errors, data, "speedMbps", "Speed")
    errors.raise_if_any()


def validate_voucher_batch(data: dict) -> None:
    errors = Errors()
    if _blank(data.get("name")):
        errors.add("name", "Batch name is required")
    if _blank(data.get("planId")):
        errors.add("planId", "Select a plan")
    _optional_id(errors, data, "planId", "Select a plan")
    quantity = _as_number(data.get("quantity"))
    if quantity is None or quantity < 1:
        errors.add("quantity", "Quantity must be at least 1")
    elif not quantity.is_integer():
        errors.add("quantity", "Quantity must be a whole number")
    elif quantity > 1000:
        errors.add("quantity", "Quantity cannot exceed 1000")
    errors.raise_if_any()


def validate_ticket(data: dict) -> None:
    errors = Errors()
    if _blank(data.get("subject")):
        errors.add("subject", "Subject is required")
    if _blank(data.get("issueDetails")):
        errors.add("issueDetails", "Issue details are required")
    _optional_id(errors, data, "wifiUserId", "Select a valid customer")
    errors.raise_if_any()


def validate_wifi_user(data: dict) -> None:
    errors = Errors()
    try:
        validate_phone(data.get("phoneNumber"))
    except ValidationFailed as exc:
        errors.fields.update(exc.errors)
    _optional_id(errors, data, "currentPlanId", "Select a valid plan")
    errors.raise_if_any()


def validate_points(value: Any, balance: Optional[int] = None) -> int:
    """Check a points amount; ``balance`` is the last fetched balance, used only as a fast pre-check."""
    try:
        points = int(str(value).strip())
    except (TypeError, ValueError):
        raise ValidationFailed({"points": "Please enter a valid number of points"})
    if points <= 0:
        raise ValidationFailed({"points": "Please enter a valid number of points"})
    if balance is not None and points > balance:
        raise ValidationFailed({"points": "Insufficient points balance"})
    return points


def validate_business_step(data: dict) -> None:
    errors = Errors()
    if _blank(data.get("businessName")):
        errors.add("businessName", "Please enter your ISP business name")
    try:
        validate_subdomain(data.get("subdomain"))
    except ValidationFailed as exc:
        errors.fields.update(exc.errors)
    errors.raise_if_any()


def validate_credentials_step(data: dict) -> None:
    errors = Errors()
    if _blank(data.get("username")):
        errors.add("username", "Please enter a username")
    try:
        validate_email(data.get("email"))
    except ValidationFailed as exc:
        errors.fields.update(exc.errors)
    score, _, _ = password_strength(data.get("password") or "")
    if score < 5:
        errors.add(
            "password",
            "Password must be at least 8 characters and include uppercase, lowercase, number, and special character",
        )
    if data.get("password") != data.get("confirmPassword"):
        errors.add("confirmPassword", "Please make sure your passwords match")
    errors.raise_if_any()


def validate_plan_step(data: dict) -> None:
    errors = Errors()
    tier = data.get("subscriptionTier")
    if tier not in ("BASIC", "PREMIUM"):
        errors.add("subscriptionTier", "Please select a subscription plan")
    elif tier == "PREMIUM":
        method = data.get("paymentMethod")
        if _blank(method):
            errors.add("paymentMethod", "Please select a payment method for the premium plan")
        elif method == "MPESA":
            if _blank(data.get("phoneNumber")):
                errors.add("phoneNumber", "Please enter your M-Pesa phone number")
            else:
                try:
                    validate_phone(data.get("phoneNumber"))
                except ValidationFailed as exc:
                    errors.fields.update(exc.errors)
    errors.raise_if_any()
