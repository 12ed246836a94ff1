from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import pyotp
from jose import JWTError, jwt

from app.core.config import get_settings


def hash_password(password: str) -> str:
    settings = get_settings()
    salt = bcrypt.gensalt(rounds=settings.password_bcrypt_rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    if not password or not hashed:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed hash in the database.
        return False


def _create_token(sub: str, role: str, token_type: str, expires_delta: timedelta, tenant_id: Optional[int]) -> str:
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload = {
        "sub": sub,
        "role": role,
        "type": token_type,
        "iat": int(now.timestamp()),
        "exp": int((now + expires_delta).timestamp()),
    }
    if tenant_id is not None:
        payload["tid"] = tenant_id
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def create_access_token(sub: str, role: str, tenant_id: Optional[int] = None) -> str:
    settings = get_settings()
    return _create_token(sub, role, "access", timedelta(minutes=settings.access_token_expire_minutes), tenant_id)


def create_refresh_token(sub: str, role: str, tenant_id: Optional[int] = None) -> str:
    settings = get_settings()
    return _create_token(sub, role, "refresh", timedelta(days=settings.refresh_token_expire_days), tenant_id)


def decode_token(token: str) -> dict:
    """Decode and verify a JWT. Raises ``JWTError`` when invalid or expired."""
    settings = get_settings()
    return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])


def generate_totp_secret() -> str:
    return pyotp.random_base32()


def totp_provisioning_uri(secret: str, account_name: str) -> str:
    settings = get_settings()
    return pyotp.TOTP(secret).provisioning_uri(name=account_name, issuer_name=settings.two_factor_issuer)


def verify_totp(secret: Optional[str], code: Optional[str]) -> bool:
    if not secret or not code:
        return False
    code = code.strip()
    if len(code) != 6 or not code.isdigit():
        return False
    return pyotp.TOTP(secret).verify(code, valid_window=1)


__all__ = [
    "JWTError",
    "hash_password",
    "verify_password",
    "create_access_token",
    "create_refresh_token",
    "decode_token",
    "generate_totp_secret",
    "totp_provisioning_uri",
    "verify_totp",
]
