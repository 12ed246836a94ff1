import re
from typing import Optional

from pydantic import EmailStr, field_validator, model_validator

from app.models import SubscriptionTier
from app.schemas.common import ApiModel
from app.schemas.user import UserOut

SUBDOMAIN_RE = re.compile(r"^[a-z0-9-]+$")
SPECIAL_CHARS_RE = re.compile(r"[!@#$%^&*(),.?\":{}|<>]")
PAYMENT_METHODS = {"MPESA", "CARD", "BANK"}


def _validate_password_length(value: str) -> str:
    if len(value.encode("utf-8")) > 72:
        raise ValueError("Password too long (max 72 bytes)")
    return value


def password_issues(password: str) -> list[str]:
    issues = []
    if len(password) < 8:
        issues.append("at least 8 characters")
    if not re.search(r"[A-Z]", password):
        issues.append("an uppercase letter")
    if not re.search(r"[a-z]", password):
        issues.append("a lowercase letter")
    if not re.search(r"\d", password):
        issues.append("a number")
    if not SPECIAL_CHARS_RE.search(password):
        issues.append("a special character")
    return issues


def _validate_strong_password(value: str) -> str:
    _validate_password_length(value)
    issues = password_issues(value)
    if issues:
        raise ValueError("Password must contain " + ", ".join(issues))
    return value


class TokenPair(ApiModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class RegisterRequest(ApiModel):
    business_name: str
    subdomain: str
    username: str
    email: EmailStr
    password: str
    subscription_tier: SubscriptionTier = SubscriptionTier.BASIC
    payment_method: Optional[str] = None
    phone_number: Optional[str] = None
    website: Optional[str] = None

    @field_validator("business_name", "username")
    @classmethod
    def _required(cls, value: str) -> str:
        value = (value or "").strip()
        if not value:
            raise ValueError("This field is required")
        return value

    @field_validator("subdomain")
    @classmethod
    def _subdomain(cls, value: str) -> str:
        value = (value or "").strip()
        if not SUBDOMAIN_RE.match(value):
            raise ValueError("Subdomain can only contain lowercase letters, numbers, and hyphens")
        return value

    check_password = field_validator("password")(_validate_strong_password)

    @model_validator(mode="after")
    def _payment(self):
        if self.subscription_tier == SubscriptionTier.PREMIUM:
            method = (self.payment_method or "").upper()
            if method not in PAYMENT_METHODS:
                raise ValueError("Select a payment method for the Premium plan")
            self.payment_method = method
            if method == "MPESA" and not (self.phone_number or "").strip():
                raise ValueError("Phone number is required for M-Pesa payment")
        return self


class AuthResponse(ApiModel):
    user: UserOut
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    token_type: str = "bearer"
    requires_email_verification: bool = False


class LoginRequest(ApiModel):
    username: str
    password: str
    code: Optional[str] = None

    check_password_length = field_validator("password")(_validate_password_length)


class RefreshRequest(ApiModel):
    refresh_token: str


class ForgotPasswordRequest(ApiModel):
    email: EmailStr


class ForgotPasswordResponse(ApiModel):
    message: str
    reset_token: Optional[str] = None


class ResetPasswordRequest(ApiModel):
    token: str
    new_password: str

    check_password = field_validator("new_password")(_validate_strong_password)


class ChangePasswordRequest(ApiModel):
    current_password: str
    new_password: str

    check_password = field_validator("new_password")(_validate_strong_password)


class UpdateMeRequest(ApiModel):
    full_name: Optional[str] = None
    email: Optional[EmailStr] = None


class EmailVerification(ApiModel):
    token: str


class SuperadminRegisterRequest(ApiModel):
    username: str
    email: EmailStr
    password: str

    check_password = field_validator("password")(_validate_strong_password)


class TwoFactorStatus(ApiModel):
    enabled: bool
    pending: bool = False


class TwoFactorSetup(ApiModel):
    secret: str
    otpauth_url: str


class TwoFactorCode(ApiModel):
    code: str


class TwoFactorDisable(ApiModel):
    password: str
    code: str
