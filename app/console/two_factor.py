import logging
from typing import Optional

from app.console.api import ApiClient, ConsoleError
from app.console.forms import FormState
from app.console.notifications import Notifier
from app.console.validation import ValidationFailed, validate_code

logger = logging.getLogger(__name__)

DISABLED = "disabled"
SETUP_PENDING = "setup-pending"
ENABLED = "enabled"


class TwoFactorFlow:
    """disabled -> setup-pending -> enabled, and back to disabled only with password plus code."""

    def __init__(self, client: ApiClient, notifier: Notifier):
        self.client = client
        self.notifier = notifier
        self.state = DISABLED
        self.secret: Optional[str] = None
        self.otpauth_url: Optional[str] = None
        self.disable_form = FormState({"password": "", "code": ""})

    async def refresh(self) -> str:
        status = await self.client.get("/api/auth/2fa/status")
        if status.get("enabled"):
            self.state = ENABLED
        elif self.state != SETUP_PENDING:
            self.state = DISABLED
        return self.state

    async def start_setup(self) -> bool:
        if self.state == ENABLED:
            return False
        try:
            data = await self.client.post("/api/auth/2fa/setup")
        except ConsoleError as exc:
            self.notifier.report(exc)
            return False
        self.secret = data["secret"]
        self.otpauth_url = data["otpauthUrl"]
        self.state = SETUP_PENDING
        return True

    def cancel_setup(self) -> None:
        if self.state == SETUP_PENDING:
            self.state = DISABLED
            self.secret = None
            self.otpauth_url = None

    async def verify(self, code: str) -> bool:
        if self.state != SETUP_PENDING:
            return False
        try:
            code = validate_code(code)
            await self.client.post("/api/auth/2fa/verify", json={"code": code})
        except ConsoleError as exc:
            self.notifier.report(exc)
            return False
        self.state = ENABLED
        self.secret = None
        self.otpauth_url = None
        self.notifier.success("Two-factor enabled", "Your account is now protected with 2FA.")
        return True

    def open_disable(self) -> None:
        self.disable_form.open()

    async def disable(self) -> bool:
        """Submit the disable dialog; on any failure the dialog stays open with its draft."""
        if self.state != ENABLED:
            return False
        password = self.disable_form.get("password") or ""
        try:
            if not password:
                raise ValidationFailed({"password": "Password is required"})
            code = validate_code(self.disable_form.get("code"))
            await self.client.post("/api/auth/2fa/disable", json={"password": password, "code": code})
        except ConsoleError as exc:
            if isinstance(exc, ValidationFailed):
                self.disable_form.fail(exc)
            self.notifier.report(exc)
            return False
        self.disable_form.close()
        self.state = DISABLED
        self.notifier.success("Two-factor disabled", "Two-factor authentication has been turned off.")
        logger.info("Two-factor disabled from console")
        return True
