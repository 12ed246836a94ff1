from datetime import datetime, timedelta, timezone
import logging
import secrets
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy import or_
from sqlalchemy.orm import Session
from app.core.security import (
    JWTError,
    hash_password,
    verify_password,
    create_access_token,
    create_refresh_token,
    decode_token,
    generate_totp_secret,
    totp_provisioning_uri,
    verify_totp,
)
from app.core.config import get_settings
from app.core.database import get_db
from app.middlewares.rate_limit import limiter
from app.models import SaasBillingStatus, SubscriptionTier, Tenant, User, UserRole
from app.schemas.auth import (
    AuthResponse,
    ChangePasswordRequest,
    EmailVerification,
    ForgotPasswordRequest,
    ForgotPasswordResponse,
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    ResetPasswordRequest,
    SuperadminRegisterRequest,
    TokenPair,
    TwoFactorCode,
    TwoFactorDisable,
    TwoFactorSetup,
    TwoFactorStatus,
    UpdateMeRequest,
)
from app.schemas.common import Message
from app.schemas.user import UserOut
from app.dependencies import get_current_user
from app.services.email import send_password_reset_email, send_verification_email
from app.services.tenants import start_trial

settings = get_settings()
router = APIRouter()
logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # Drivers may return aware or naive timestamps; treat naive as UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _mask_email(value: str) -> str:
    try:
        local, domain = value.split("@", 1)
    except ValueError:
        return "***"
    if not local:
        return f"***@{domain}"
    return f"{local[:2]}***@{domain}"


def _issue_tokens(user: User) -> TokenPair:
    role = UserRole(user.role).value
    return TokenPair(
        access_token=create_access_token(str(user.id), role, user.tenant_id),
        refresh_token=create_refresh_token(str(user.id), role, user.tenant_id),
    )


@router.post("/register", response_model=AuthResponse)
@limiter.limit("10/minute")
def register(request: Request, payload: RegisterRequest, db: Session = Depends(get_db)):
    if db.query(Tenant).filter(Tenant.subdomain == payload.subdomain).first():
        raise HTTPException(status_code=400, detail="Subdomain is already taken")
    if db.query(User).filter(User.username == payload.username).first():
        raise HTTPException(status_code=400, detail="Username is already taken")
    if db.query(User).filter(User.email == payload.email).first():
        raise HTTPException(status_code=400, detail="Email already registered")

    now = _utcnow()
    tenant = Tenant(
        name=payload.business_name,
        subdomain=payload.subdomain,
        website=payload.website,
        email=payload.email,
        phone=payload.phone_number,
        subscription_tier=payload.subscription_tier,
        is_active=True,
    )
    premium = payload.subscription_tier == SubscriptionTier.PREMIUM
    if premium:
        tenant.saas_billing_status = SaasBillingStatus.ACTIVE
        tenant.registration_payment_method = payload.payment_method
        tenant.registration_payment_status = "PENDING"
        tenant.registration_payment_ref = f"REG-{secrets.token_hex(6).upper()}"
    else:
        start_trial(tenant, now)
    db.add(tenant)
    db.flush()

    user = User(
        tenant_id=tenant.id,
        username=payload.username,
        email=payload.email,
        hashed_password=hash_password(payload.password),
        role=UserRole.ADMIN,
        email_verified=not premium,
    )
    if premium:
        user.verification_token = secrets.token_urlsafe(32)
        user.verification_token_expires_at = now + timedelta(days=2)
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Registered tenant=%s subdomain=%s tier=%s", tenant.id, tenant.subdomain, tenant.subscription_tier.value)

    if premium:
        try:
            send_verification_email(user.email, user.verification_token, tenant.name)
        except Exception as exc:
            logger.warning(
                "Verification email send failed to=%s provider=%s error=%s",
                _mask_email(user.email),
                settings.email_provider,
                exc,
            )
        return AuthResponse(user=UserOut.model_validate(user), requires_email_verification=True)

    tokens = _issue_tokens(user)
    return AuthResponse(
        user=UserOut.model_validate(user),
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
    )


@router.post("/register-superadmin", response_model=UserOut)
@limiter.limit("5/minute")
def register_superadmin(request: Request, payload: SuperadminRegisterRequest, db: Session = Depends(get_db)):
    if db.query(User).filter(User.role == UserRole.SUPERADMIN).first():
        raise HTTPException(status_code=403, detail="A superadmin already exists")
    if db.query(User).filter(or_(User.username == payload.username, User.email == payload.email)).first():
        raise HTTPException(status_code=400, detail="Username or email already registered")

    user = User(
        username=payload.username,
        email=payload.email,
        hashed_password=hash_password(payload.password),
        role=UserRole.SUPERADMIN,
        email_verified=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Superadmin %s registered", user.id)
    return user


@router.post("/login", response_model=AuthResponse)
@limiter.limit("10/minute")
def login(request: Request, payload: LoginRequest, db: Session = Depends(get_db)):
    identifier = payload.username.strip()
    user = db.query(User).filter(or_(User.username == identifier, User.email == identifier.lower())).first()
    if not user or not verify_password(payload.password, user.hashed_password):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    if not user.is_active:
        raise HTTPException(status_code=403, detail="User is inactive")
    if user.two_factor_enabled:
        if not payload.code:
            raise HTTPException(status_code=401, detail="Two-factor code required")
        if not verify_totp(user.two_factor_secret, payload.code):
            raise HTTPException(status_code=401, detail="Invalid two-factor code")

    tokens = _issue_tokens(user)
    return AuthResponse(
        user=UserOut.model_validate(user),
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
    )


@router.post("/logout", response_model=Message)
def logout():
    # Tokens are stateless; the console clears its session store.
    return Message(message="Logged out")


@router.post("/refresh", response_model=TokenPair)
@limiter.limit("30/minute")
def refresh(request: Request, payload: RefreshRequest, db: Session = Depends(get_db)):
    try:
        decoded = decode_token(payload.refresh_token)
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid refresh token")
    if decoded.get("type") != "refresh":
        raise HTTPException(status_code=401, detail="Invalid refresh token")

    try:
        user_id = int(decoded.get("sub"))
    except (TypeError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid refresh token")

    user = db.query(User).filter(User.id == user_id).first()
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail="User not found or inactive")

    return _issue_tokens(user)


@router.post("/forgot-password", response_model=ForgotPasswordResponse)
@limiter.limit("5/minute")
def forgot_password(request: Request, payload: ForgotPasswordRequest, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == payload.email).first()
    reset_token = None
    if user:
        reset_token = secrets.token_urlsafe(32)
        user.reset_token = reset_token
        user.reset_token_expires_at = _utcnow() + timedelta(hours=1)
        db.commit()
        try:
            send_password_reset_email(user.email, reset_token)
        except Exception as exc:
            logger.warning(
                "Password reset email send failed to=%s provider=%s error=%s",
                _mask_email(user.email),
                settings.email_provider,
                exc,
            )

    # Same answer whether or not the account exists.
    message = "If the email exists, a reset link has been sent"
    env = (settings.environment or "").lower()
    if env and env != "production" and reset_token:
        return ForgotPasswordResponse(message=message, reset_token=reset_token)
    return ForgotPasswordResponse(message=message)


@router.post("/reset-password", response_model=Message)
@limiter.limit("10/minute")
def reset_password(request: Request, payload: ResetPasswordRequest, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.reset_token == payload.token).first()
    if not user or not user.reset_token_expires_at:
        raise HTTPException(status_code=400, detail="Invalid or expired token")
    if _as_utc(user.reset_token_expires_at) < _utcnow():
        raise HTTPException(status_code=400, detail="Invalid or expired token")

    user.hashed_password = hash_password(payload.new_password)
    user.reset_token = None
    user.reset_token_expires_at = None
    db.commit()

    return Message(message="Password reset successful")


@router.post("/verify-email", response_model=Message)
@limiter.limit("10/minute")
def verify_email(request: Request, payload: EmailVerification, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.verification_token == payload.token).first()
    if not user or not user.verification_token_expires_at:
        raise HTTPException(status_code=400, detail="Invalid or expired token")
    if _as_utc(user.verification_token_expires_at) < _utcnow():
        raise HTTPException(status_code=400, detail="Invalid or expired token")

    user.email_verified = True
    user.verification_token = None
    user.verification_token_expires_at = None
    db.commit()

    return Message(message="Email verified successfully")


@router.get("/me", response_model=UserOut)
def me(user: User = Depends(get_current_user)):
    return user


@router.patch("/me", response_model=UserOut)
def update_me(payload: UpdateMeRequest, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    if payload.full_name is not None:
        full_name = payload.full_name.strip()
        if len(full_name) < 2:
            raise HTTPException(status_code=400, detail="Full name is too short")
        if len(full_name) > 255:
            raise HTTPException(status_code=400, detail="Full name is too long")
        user.full_name = full_name
    if payload.email is not None and payload.email != user.email:
        if db.query(User).filter(User.email == payload.email, User.id != user.id).first():
            raise HTTPException(status_code=400, detail="Email already registered")
        user.email = payload.email

    db.commit()
    db.refresh(user)
    return user


@router.post("/change-password", response_model=Message)
@limiter.limit("5/minute")
def change_password(
    request: Request,
    payload: ChangePasswordRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    if not verify_password(payload.current_password, user.hashed_password):
        raise HTTPException(status_code=400, detail="Current password is incorrect")

    user.hashed_password = hash_password(payload.new_password)
    user.reset_token = None
    user.reset_token_expires_at = None
    db.commit()
    return Message(message="Password updated successfully")


@router.get("/2fa/status", response_model=TwoFactorStatus)
def two_factor_status(user: User = Depends(get_current_user)):
    return TwoFactorStatus(
        enabled=bool(user.two_factor_enabled),
        pending=bool(user.two_factor_secret) and not user.two_factor_enabled,
    )


@router.post("/2fa/setup", response_model=TwoFactorSetup)
def two_factor_setup(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    if user.two_factor_enabled:
        raise HTTPException(status_code=400, detail="Two-factor authentication is already enabled")

    secret = generate_totp_secret()
    user.two_factor_secret = secret
    db.commit()
    return TwoFactorSetup(secret=secret, otpauth_url=totp_provisioning_uri(secret, user.email))


@router.post("/2fa/verify", response_model=Message)
@limiter.limit("10/minute")
def two_factor_verify(
    request: Request,
    payload: TwoFactorCode,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    if user.two_factor_enabled:
        raise HTTPException(status_code=400, detail="Two-factor authentication is already enabled")
    if not user.two_factor_secret:
        raise HTTPException(status_code=400, detail="Start two-factor setup first")
    if not verify_totp(user.two_factor_secret, payload.code):
        raise HTTPException(status_code=400, detail="Invalid verification code")

    user.two_factor_enabled = True
    db.commit()
    logger.info("Two-factor enabled user=%s", user.id)
    return Message(message="Two-factor authentication enabled")


@router.post("/2fa/disable", response_model=Message)
@limiter.limit("10/minute")
def two_factor_disable(
    request: Request,
    payload: TwoFactorDisable,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    if not user.two_factor_enabled:
        raise HTTPException(status_code=400, detail="Two-factor authentication is not enabled")
    if not verify_password(payload.password, user.hashed_password):
        raise HTTPException(status_code=401, detail="Invalid password")
    if not verify_totp(user.two_factor_secret, payload.code):
        raise HTTPException(status_code=400, detail="Invalid verification code")

    user.two_factor_enabled = False
    user.two_factor_secret = None
    db.commit()
    logger.info("Two-factor disabled user=%s", user.id)
    return Message(message="Two-factor authentication disabled")
