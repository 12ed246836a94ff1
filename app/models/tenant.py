import enum
from sqlalchemy import Column, Integer, String, Boolean, Enum, DateTime, JSON, Index
from sqlalchemy.orm import relationship
from app.core.database import Base
from app.models.base import TimestampMixin


class SubscriptionTier(str, enum.Enum):
    BASIC = "BASIC"
    PREMIUM = "PREMIUM"


class SaasBillingStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    TRIAL = "TRIAL"
    SUSPENDED = "SUSPENDED"
    BLOCKED = "BLOCKED"


class Tenant(Base, TimestampMixin):
    __tablename__ = "tenants"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    subdomain = Column(String(63), unique=True, nullable=False, index=True)
    website = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(32), nullable=True)
    branding_config = Column(JSON, nullable=True)

    mpesa_shortcode = Column(String(32), nullable=True)
    mpesa_passkey = Column(String(255), nullable=True)
    mpesa_consumer_key = Column(String(255), nullable=True)
    mpesa_consumer_secret = Column(String(255), nullable=True)

    sms_provider = Column(String(32), nullable=True)
    sms_api_key = Column(String(255), nullable=True)
    sms_username = Column(String(128), nullable=True)
    sms_sender_id = Column(String(32), nullable=True)

    subscription_tier = Column(Enum(SubscriptionTier), nullable=False, default=SubscriptionTier.BASIC)
    trial_expires_at = Column(DateTime(timezone=True), nullable=True)
    subscription_expires_at = Column(DateTime(timezone=True), nullable=True)
    saas_billing_status = Column(Enum(SaasBillingStatus), nullable=False, default=SaasBillingStatus.TRIAL)
    is_active = Column(Boolean, default=True, nullable=False)

    registration_payment_method = Column(String(32), nullable=True)
    registration_payment_status = Column(String(32), nullable=True)
    registration_payment_ref = Column(String(64), nullable=True)

    users = relationship("User", back_populates="tenant")


Index("ix_tenants_status_active", Tenant.saas_billing_status, Tenant.is_active)
