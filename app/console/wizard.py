"""Three-step tenant registration: business, credentials, then plan and payment."""

import logging
from typing import Callable, Optional

from app.console.api import ApiClient, ConsoleError
from app.console.forms import FormState, stripped
from app.console.notifications import Notifier
from app.console.session import SessionManager
from app.console.validation import (
    ValidationFailed,
    validate_business_step,
    validate_credentials_step,
    validate_plan_step,
)

logger = logging.getLogger(__name__)

BUSINESS, CREDENTIALS, PLAN = 1, 2, 3

REDIRECT_DASHBOARD = "redirect:/dashboard"
VERIFICATION_PENDING = "verification-pending"
REDIRECT_LOGIN = "redirect:/login"

STEP_VALIDATORS: dict[int, Callable[[dict], None]] = {
    BUSINESS: validate_business_step,
    CREDENTIALS: validate_credentials_step,
    PLAN: validate_plan_step,
}

INITIAL_VALUES = {
    "businessName": "",
    "subdomain": "",
    "username": "",
    "email": "",
    "password": "",
    "confirmPassword": "",
    "subscriptionTier": None,
    "paymentMethod": None,
    "phoneNumber": "",
}


def _subdomain(value) -> str:
    return str(value or "").strip().lower()


class RegistrationWizard:
    def __init__(self, client: ApiClient, session: SessionManager, notifier: Notifier):
        self.client = client
        self.session = session
        self.notifier = notifier
        self.form = FormState(
            INITIAL_VALUES,
            normalizers={"subdomain": _subdomain, "username": stripped, "email": stripped},
        )
        self.step = BUSINESS
        self.outcome: Optional[str] = None
        self.is_submitting = False

    def _check(self, step: int) -> bool:
        try:
            STEP_VALIDATORS[step](self.form.values)
        except ValidationFailed as exc:
            self.form.fail(exc)
            self.notifier.report(exc)
            return False
        return True

    def next(self) -> bool:
        if self.step >= PLAN or not self._check(self.step):
            return False
        self.step += 1
        return True

    def back(self) -> None:
        if self.step > BUSINESS:
            self.step -= 1

    def _payload(self) -> dict:
        values = self.form.values
        premium = values["subscriptionTier"] == "PREMIUM"
        payload = {
            "businessName": values["businessName"].strip(),
            "subdomain": values["subdomain"],
            "username": values["username"],
            "email": values["email"],
            "password": values["password"],
            "subscriptionTier": values["subscriptionTier"],
        }
        if premium:
            payload["paymentMethod"] = values["paymentMethod"]
            if values["paymentMethod"] == "MPESA":
                payload["phoneNumber"] = values["phoneNumber"]
        return payload

    async def submit(self) -> Optional[str]:
        """Register the tenant; returns the outcome or ``None`` when the wizard stays put."""
        if self.step != PLAN or not self._check(PLAN):
            return None

        self.is_submitting = True
        try:
            data = await self.client.post("/api/auth/register", json=self._payload())
        except ConsoleError as exc:
            self.notifier.report(exc, "Registration Failed")
            return None
        finally:
            self.is_submitting = False

        if self.form.values["subscriptionTier"] == "BASIC":
            self.session.login(data.get("user") or {}, data.get("accessToken"), data.get("refreshToken"))
            self.notifier.success("Welcome to Mnetifi!", "Your 24-hour free trial has started.")
            self.outcome = REDIRECT_DASHBOARD
        elif data.get("requiresEmailVerification"):
            self.outcome = VERIFICATION_PENDING
        else:
            self.notifier.success("Account Created!", "You can now log in to your account.")
            self.outcome = REDIRECT_LOGIN
        logger.info("Registration finished subdomain=%s outcome=%s", self.form.values["subdomain"], self.outcome)
        return self.outcome
