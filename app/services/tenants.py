from datetime import datetime, timedelta

from app.core.config import get_settings
from app.models import SaasBillingStatus, SubscriptionTier, Tenant

BASIC_FEATURES = [
    "hotspot",
    "vouchers",
    "basic-reports",
    "walled-garden",
]

PREMIUM_FEATURES = BASIC_FEATURES + [
    "pppoe",
    "static-ip",
    "loyalty",
    "advanced-reports",
    "reconciliation",
    "technicians",
    "network-monitoring",
    "sms",
]

TIER_FEATURES = {
    SubscriptionTier.BASIC: BASIC_FEATURES,
    SubscriptionTier.PREMIUM: PREMIUM_FEATURES,
}


def features_for(tenant: Tenant) -> list[str]:
    tier = tenant.subscription_tier or SubscriptionTier.BASIC
    return list(TIER_FEATURES.get(SubscriptionTier(tier), BASIC_FEATURES))


def has_feature(tenant: Tenant, feature: str) -> bool:
    return feature in features_for(tenant)


def start_trial(tenant: Tenant, now: datetime) -> None:
    settings = get_settings()
    tenant.saas_billing_status = SaasBillingStatus.TRIAL
    tenant.trial_expires_at = now + timedelta(hours=settings.trial_hours)


def mpesa_configured(tenant: Tenant) -> bool:
    return all(
        [
            tenant.mpesa_shortcode,
            tenant.mpesa_passkey,
            tenant.mpesa_consumer_key,
            tenant.mpesa_consumer_secret,
        ]
    )


def sms_configured(tenant: Tenant) -> bool:
    return bool(tenant.sms_provider and tenant.sms_api_key)
