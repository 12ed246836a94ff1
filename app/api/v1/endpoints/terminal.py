import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.dependencies import get_current_tenant, require_admin
from app.models import Hotspot, Tenant, User
from app.schemas.terminal import CommandCategory, TerminalExecuteRequest, TerminalResult
from app.services.routeros import (
    PREDEFINED_COMMANDS,
    CommandBlocked,
    CommandSyntaxError,
    execute_command,
    router_configured,
)
from app.utils.query import get_owned_or_404

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/commands", response_model=list[CommandCategory])
def commands(_: User = Depends(require_admin)):
    return PREDEFINED_COMMANDS


@router.post("/execute", response_model=TerminalResult)
def execute(
    payload: TerminalExecuteRequest,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    user: User = Depends(require_admin),
):
    hotspot = get_owned_or_404(db, Hotspot, tenant.id, payload.hotspot_id, "Hotspot")
    if not router_configured(hotspot):
        raise HTTPException(status_code=400, detail="Router API credentials are not configured for this hotspot")
    try:
        result = execute_command(hotspot, payload.command)
    except (CommandBlocked, CommandSyntaxError) as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    logger.info("Terminal command by user=%s hotspot=%s success=%s", user.id, hotspot.id, result["success"])
    return result
