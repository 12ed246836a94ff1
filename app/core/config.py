from functools import lru_cache
import json
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


def parse_cors_origins(value: str) -> list[str]:
    if not value:
        return []

    parsed: list[str]
    raw = value.strip()
    if raw.startswith("["):
        try:
            items = json.loads(raw)
            parsed = [str(item).strip() for item in items if str(item).strip()]
        except (TypeError, ValueError):
            parsed = []
    else:
        parsed = [origin.strip() for origin in raw.split(",") if origin.strip()]

    # Preserve order and remove duplicates.
    return list(dict.fromkeys(parsed))


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    app_name: str = "Mnetifi"
    environment: str = "development"
    debug: bool = False
    api_v1_prefix: str = "/api"
    log_level: str = "INFO"

    # Security
    secret_key: str
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 30
    refresh_token_expire_days: int = 7
    password_bcrypt_rounds: int = 12
    rate_limit_enabled: bool = True
    two_factor_issuer: str = "Mnetifi"

    # Database
    database_url: str
    db_pool_size: int = 5
    db_max_overflow: int = 5
    db_pool_timeout: int = 15
    db_pool_recycle: int = 1200
    db_pool_pre_ping: bool = True
    db_connect_timeout: int = 10

    # M-Pesa Daraja (per-tenant credentials live on the tenant row)
    mpesa_sandbox: bool = True
    mpesa_callback_url: str = "http://localhost:8000/api/transactions/callback"
    mpesa_timeout_seconds: int = 15
    payment_timeout_minutes: int = 10

    # MikroTik RouterOS API
    routeros_use_ssl: bool = False

    # Billing
    trial_hours: int = 24
    loyalty_kes_per_point: int = 10
    default_recharge_seconds: int = 3600

    # Frontend URLs (used for email links)
    frontend_base_url: str = "http://localhost:5173"

    # Email (verification + password reset)
    email_provider: str = "console"  # console|resend|smtp|brevo
    email_from: str = "Mnetifi <no-reply@mnetifi.local>"

    # Resend
    resend_api_key: Optional[str] = None

    # Brevo
    brevo_api_key: Optional[str] = None

    # SMTP
    smtp_host: Optional[str] = None
    smtp_port: int = 587
    smtp_username: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_use_tls: bool = True

    # CORS
    cors_origins: str = "http://localhost:5173,http://localhost:3000"
    auto_create_tables: bool = False

    # Ops: promote existing accounts (comma-separated usernames) to superadmin on startup.
    bootstrap_superadmin_usernames: str = ""


@lru_cache
def get_settings() -> Settings:
    return Settings()
