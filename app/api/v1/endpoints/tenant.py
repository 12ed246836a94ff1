from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.dependencies import get_current_tenant, require_admin
from app.models import Tenant, User
from app.schemas.tenant import TenantOut, TenantUpdate
from app.services.tenants import features_for, mpesa_configured, sms_configured
from app.utils.cache import invalidate_cached

router = APIRouter()


def tenant_out(tenant: Tenant) -> TenantOut:
    out = TenantOut.model_validate(tenant)
    out.mpesa_configured = mpesa_configured(tenant)
    out.sms_configured = sms_configured(tenant)
    out.features = features_for(tenant)
    return out


@router.get("", response_model=TenantOut)
def get_tenant(tenant: Tenant = Depends(get_current_tenant)):
    return tenant_out(tenant)


@router.patch("", response_model=TenantOut)
def update_tenant(
    payload: TenantUpdate,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    _: User = Depends(require_admin),
):
    updates = payload.model_dump(exclude_unset=True)
    if "name" in updates and not (updates["name"] or "").strip():
        raise HTTPException(status_code=400, detail="Business name is required")
    for key, value in updates.items():
        # Blank secret fields mean "keep the stored value".
        if key in {"mpesa_passkey", "mpesa_consumer_key", "mpesa_consumer_secret", "sms_api_key"} and not value:
            continue
        setattr(tenant, key, value)
    db.commit()
    db.refresh(tenant)
    invalidate_cached("superadmin:")
    return tenant_out(tenant)
