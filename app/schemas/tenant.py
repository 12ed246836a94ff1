from datetime import datetime
from typing import Any, Optional

from pydantic import EmailStr

from app.models import SaasBillingStatus, SubscriptionTier
from app.schemas.common import ApiModel


class TenantOut(ApiModel):
    id: int
    name: str
    subdomain: str
    website: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    branding_config: Optional[dict[str, Any]] = None
    subscription_tier: SubscriptionTier
    saas_billing_status: SaasBillingStatus
    trial_expires_at: Optional[datetime] = None
    subscription_expires_at: Optional[datetime] = None
    is_active: bool
    mpesa_shortcode: Optional[str] = None
    mpesa_configured: bool = False
    sms_provider: Optional[str] = None
    sms_sender_id: Optional[str] = None
    sms_configured: bool = False
    features: list[str] = []
    created_at: Optional[datetime] = None


class TenantUpdate(ApiModel):
    name: Optional[str] = None
    website: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    branding_config: Optional[dict[str, Any]] = None
    mpesa_shortcode: Optional[str] = None
    mpesa_passkey: Optional[str] = None
    mpesa_consumer_key: Optional[str] = None
    mpesa_consumer_secret: Optional[str] = None
    sms_provider: Optional[str] = None
    sms_api_key: Optional[str] = None
    sms_username: Optional[str] = None
    sms_sender_id: Optional[str] = None


class TenantSubscriptionUpdate(ApiModel):
    subscription_tier: Optional[SubscriptionTier] = None
    saas_billing_status: Optional[SaasBillingStatus] = None
    trial_expires_at: Optional[datetime] = None
    subscription_expires_at: Optional[datetime] = None


class TenantStatusUpdate(ApiModel):
    is_active: Optional[bool] = None
    saas_billing_status: Optional[SaasBillingStatus] = None


class TenantDetails(TenantOut):
    user_count: int = 0
    transaction_count: int = 0
    hotspot_count: int = 0
    plan_count: int = 0
    revenue_this_month: int = 0
    revenue_last_month: int = 0
