import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.dependencies import get_current_tenant, require_admin, require_staff
from app.models import Hotspot, Tenant, User, WifiUser
from app.schemas.common import Message
from app.schemas.hotspot import (
    DisconnectRequest,
    HotspotCreate,
    HotspotOut,
    HotspotUpdate,
    RebootResult,
    RouterInterface,
    RouterResult,
    RouterSession,
    RouterStats,
)
from app.services import routeros
from app.utils.query import apply_updates, get_owned_or_404

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("", response_model=list[HotspotOut])
def list_hotspots(
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    _: User = Depends(require_staff),
):
    return db.query(Hotspot).filter(Hotspot.tenant_id == tenant.id).order_by(Hotspot.id.asc()).all()


@router.get("/{hotspot_id}", response_model=HotspotOut)
def get_hotspot(
    hotspot_id: int,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    _: User = Depends(require_staff),
):
    return get_owned_or_404(db, Hotspot, tenant.id, hotspot_id, "Hotspot")


@router.post("", response_model=HotspotOut, status_code=201)
def create_hotspot(
    payload: HotspotCreate,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    _: User = Depends(require_admin),
):
    hotspot = Hotspot(tenant_id=tenant.id, **payload.model_dump())
    db.add(hotspot)
    db.commit()
    db.refresh(hotspot)
    return hotspot


@router.patch("/{hotspot_id}", response_model=HotspotOut)
def update_hotspot(
    hotspot_id: int,
    payload: HotspotUpdate,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    _: User = Depends(require_admin),
):
    hotspot = get_owned_or_404(db, Hotspot, tenant.id, hotspot_id, "Hotspot")
    apply_updates(hotspot, payload)
    db.commit()
    db.refresh(hotspot)
    return hotspot


@router.delete("/{hotspot_id}", response_model=Message)
def delete_hotspot(
    hotspot_id: int,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    _: User = Depends(require_admin),
):
    hotspot = get_owned_or_404(db, Hotspot, tenant.id, hotspot_id, "Hotspot")
    db.query(WifiUser).filter(WifiUser.current_hotspot_id == hotspot.id).update(
        {WifiUser.current_hotspot_id: None}, synchronize_session=False
    )
    db.delete(hotspot)
    db.commit()
    return Message(message="Hotspot deleted")


def _router_hotspot(db: Session, tenant: Tenant, hotspot_id: int) -> Hotspot:
    hotspot = get_owned_or_404(db, Hotspot, tenant.id, hotspot_id, "Hotspot")
    if not routeros.router_configured(hotspot):
        raise HTTPException(status_code=400, detail="Router API credentials are not configured for this hotspot")
    return hotspot


def _unreachable(exc: routeros.RouterUnavailable) -> HTTPException:
    return HTTPException(status_code=502, detail=f"Router request failed: {exc}")


@router.post("/{hotspot_id}/test-connection", response_model=RouterResult)
def check_router_connection(
    hotspot_id: int,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    _: User = Depends(require_admin),
):
    return routeros.check_connection(_router_hotspot(db, tenant, hotspot_id))


@router.get("/{hotspot_id}/active-sessions", response_model=RouterResult)
def active_sessions(
    hotspot_id: int,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    _: User = Depends(require_staff),
):
    hotspot = _router_hotspot(db, tenant, hotspot_id)
    try:
        rows = routeros.active_sessions(hotspot)
    except routeros.RouterUnavailable as exc:
        return RouterResult(success=False, error=str(exc))
    return RouterResult(success=True, data=rows)


@router.get("/{hotspot_id}/sessions", response_model=list[RouterSession])
def sessions(
    hotspot_id: int,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    _: User = Depends(require_staff),
):
    hotspot = _router_hotspot(db, tenant, hotspot_id)
    try:
        return routeros.hotspot_sessions(hotspot)
    except routeros.RouterUnavailable as exc:
        raise _unreachable(exc)


@router.get("/{hotspot_id}/interfaces", response_model=list[RouterInterface])
def interfaces(
    hotspot_id: int,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    _: User = Depends(require_staff),
):
    hotspot = _router_hotspot(db, tenant, hotspot_id)
    try:
        return routeros.interface_stats(hotspot)
    except routeros.RouterUnavailable as exc:
        raise _unreachable(exc)


@router.get("/{hotspot_id}/stats", response_model=RouterStats)
def stats(
    hotspot_id: int,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    _: User = Depends(require_staff),
):
    hotspot = _router_hotspot(db, tenant, hotspot_id)
    try:
        return routeros.router_stats(hotspot)
    except routeros.RouterUnavailable as exc:
        raise _unreachable(exc)


@router.post("/{hotspot_id}/disconnect-user", response_model=RouterResult)
def disconnect_user(
    hotspot_id: int,
    payload: DisconnectRequest,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    user: User = Depends(require_admin),
):
    username = (payload.username or "").strip()
    if not username:
        raise HTTPException(status_code=400, detail="Username is required")
    hotspot = _router_hotspot(db, tenant, hotspot_id)
    try:
        removed = routeros.disconnect_user(hotspot, username)
    except routeros.RouterUnavailable as exc:
        return RouterResult(success=False, error=str(exc))
    logger.info("Hotspot user disconnected by user=%s hotspot=%s sessions=%s", user.id, hotspot.id, removed)
    return RouterResult(success=True, data={"disconnected": removed})


@router.post("/{hotspot_id}/reboot", response_model=RebootResult)
def reboot(
    hotspot_id: int,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    user: User = Depends(require_admin),
):
    hotspot = _router_hotspot(db, tenant, hotspot_id)
    try:
        routeros.reboot_router(hotspot)
    except routeros.RouterUnavailable as exc:
        raise _unreachable(exc)
    logger.warning("Router reboot requested by user=%s hotspot=%s", user.id, hotspot.id)
    return RebootResult(
        success=True,
        message=f"Reboot initiated for {hotspot.location_name}. Router will be back online in 1-3 minutes.",
    )
