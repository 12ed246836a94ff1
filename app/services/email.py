from __future__ import annotations

import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import parseaddr
from typing import Optional

import httpx

from app.core.config import get_settings

logger = logging.getLogger(__name__)


@dataclass
class OutgoingEmail:
    to: str
    subject: str
    html: str
    link: str


def _strip_quotes(value: str) -> str:
    # Env vars pasted from dashboards often keep their surrounding quotes.
    v = (value or "").strip()
    if len(v) >= 2 and v[0] == v[-1] and v[0] in ("'", '"'):
        v = v[1:-1].strip()
    return v


def _parse_from(value: str) -> tuple[Optional[str], str]:
    raw = _strip_quotes(value)
    name, email = parseaddr(raw)
    name = (name or "").strip() or None
    email = (email or "").strip()
    if not email:
        return None, raw
    return name, email


def _render(heading: str, intro: str, action: str, link: str) -> str:
    return f"""
    <div style="font-family: Arial, sans-serif; line-height: 1.6; color: #0f172a;">
      <h2 style="margin: 0 0 8px;">{heading}</h2>
      <p style="margin: 0 0 14px;">{intro}</p>
      <p style="margin: 0 0 16px;">
        <a href="{link}" style="display:inline-block;background:#2563eb;color:#fff;padding:10px 14px;border-radius:10px;text-decoration:none;font-weight:700;">
          {action}
        </a>
      </p>
      <p style="margin: 0; font-size: 13px; color: #475569;">Or open this link: <a href="{link}">{link}</a></p>
    </div>
    """.strip()


def _frontend_link(path: str, token: str) -> str:
    settings = get_settings()
    return f"{settings.frontend_base_url.rstrip('/')}{path}?token={token}"


def send_password_reset_email(to_email: str, reset_token: str) -> None:
    link = _frontend_link("/reset-password", reset_token)
    html = _render(
        "Reset your Mnetifi password",
        "We received a request to reset your password. If this wasn't you, ignore this email.",
        "Reset Password",
        link,
    )
    deliver(OutgoingEmail(to=to_email.strip(), subject="Reset your Mnetifi password", html=html, link=link))


def send_verification_email(to_email: str, token: str, business_name: str) -> None:
    link = _frontend_link("/verify-email", token)
    html = _render(
        "Verify your email",
        f"Confirm your email address to finish setting up {business_name} on Mnetifi.",
        "Verify Email",
        link,
    )
    deliver(OutgoingEmail(to=to_email.strip(), subject="Verify your Mnetifi account", html=html, link=link))


def deliver(message: OutgoingEmail) -> None:
    settings = get_settings()
    provider = (settings.email_provider or "console").lower()

    if provider == "console":
        logger.info("[email][console] to=%s subject=%s link=%s", message.to, message.subject, message.link)
        return
    if provider == "resend":
        _send_via_resend(settings.resend_api_key, _strip_quotes(settings.email_from), message)
        return
    if provider == "brevo":
        name, from_email = _parse_from(settings.email_from)
        _send_via_brevo(settings.brevo_api_key, name, from_email, message)
        return
    if provider == "smtp":
        _send_via_smtp(message)
        return
    raise ValueError(f"Unsupported EMAIL_PROVIDER: {settings.email_provider}")


def _post_json(url: str, payload: dict, headers: dict, provider: str) -> None:
    with httpx.Client(timeout=15) as client:
        res = client.post(url, json=payload, headers=headers)
    if res.status_code >= 400:
        raise RuntimeError(f"{provider} error: {res.status_code} {res.text}")


def _send_via_resend(api_key: Optional[str], email_from: str, message: OutgoingEmail) -> None:
    if not api_key:
        raise ValueError("RESEND_API_KEY is required when EMAIL_PROVIDER=resend")
    _post_json(
        "https://api.resend.com/emails",
        {"from": email_from, "to": [message.to], "subject": message.subject, "html": message.html},
        {"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"},
        "Resend",
    )


def _send_via_brevo(api_key: Optional[str], from_name: Optional[str], from_email: str, message: OutgoingEmail) -> None:
    if not api_key:
        raise ValueError("BREVO_API_KEY is required when EMAIL_PROVIDER=brevo")
    if not from_email:
        raise ValueError("EMAIL_FROM is required when EMAIL_PROVIDER=brevo")
    _post_json(
        "https://api.brevo.com/v3/smtp/email",
        {
            "sender": {"name": from_name or "Mnetifi", "email": from_email},
            "to": [{"email": message.to}],
            "subject": message.subject,
            "htmlContent": message.html,
        },
        {"api-key": api_key, "Content-Type": "application/json", "Accept": "application/json"},
        "Brevo",
    )


def _send_via_smtp(message: OutgoingEmail) -> None:
    settings = get_settings()
    if not settings.smtp_host:
        raise ValueError("SMTP_HOST is required when EMAIL_PROVIDER=smtp")

    msg = EmailMessage()
    msg["From"] = _strip_quotes(settings.email_from)
    msg["To"] = message.to
    msg["Subject"] = message.subject
    msg.set_content(f"Open this link: {message.link}")
    msg.add_alternative(message.html, subtype="html")

    with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=15) as server:
        server.ehlo()
        if settings.smtp_use_tls:
            server.starttls()
            server.ehlo()
        if settings.smtp_username and settings.smtp_password:
            server.login(settings.smtp_username, settings.smtp_password)
        server.send_message(msg)
