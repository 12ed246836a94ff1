import re

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.dependencies import get_current_tenant, require_admin, require_staff
from app.models import Tenant, User, WalledGarden
from app.schemas.common import Message
from app.schemas.walled_garden import WalledGardenCreate, WalledGardenOut
from app.utils.query import get_owned_or_404

router = APIRouter()

_DOMAIN_RE = re.compile(r"^(\*\.)?([a-z0-9-]+\.)+[a-z]{2,}$")


def normalize_domain(raw: str) -> str:
    domain = (raw or "").strip().lower()
    domain = re.sub(r"^[a-z]+://", "", domain)
    domain = domain.split("/", 1)[0].split(":", 1)[0]
    return domain.rstrip(".")


@router.get("", response_model=list[WalledGardenOut])
def list_walled_gardens(
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    _: User = Depends(require_staff),
):
    return db.query(WalledGarden).filter(WalledGarden.tenant_id == tenant.id).order_by(WalledGarden.domain.asc()).all()


@router.post("", response_model=WalledGardenOut, status_code=201)
def create_walled_garden(
    payload: WalledGardenCreate,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    _: User = Depends(require_admin),
):
    domain = normalize_domain(payload.domain)
    if not _DOMAIN_RE.match(domain):
        raise HTTPException(status_code=400, detail="Invalid domain")
    exists = (
        db.query(WalledGarden)
        .filter(WalledGarden.tenant_id == tenant.id, WalledGarden.domain == domain)
        .first()
    )
    if exists:
        raise HTTPException(status_code=400, detail="Domain already in walled garden")

    entry = WalledGarden(
        tenant_id=tenant.id,
        domain=domain,
        description=payload.description,
        is_active=payload.is_active,
    )
    db.add(entry)
    db.commit()
    db.refresh(entry)
    return entry


@router.delete("/{entry_id}", response_model=Message)
def delete_walled_garden(
    entry_id: int,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    _: User = Depends(require_admin),
):
    entry = get_owned_or_404(db, WalledGarden, tenant.id, entry_id, "Walled garden entry")
    db.delete(entry)
    db.commit()
    return Message(message="Domain removed")
