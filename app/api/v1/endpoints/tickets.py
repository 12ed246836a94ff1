from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.dependencies import get_current_tenant, require_staff
from app.models import Ticket, TicketStatus, Tenant, User, UserRole, WifiUser
from app.schemas.common import Message
from app.schemas.ticket import TicketClose, TicketCreate, TicketOut, TicketUpdate
from app.services.tickets import OPEN_STATUSES, transition
from app.utils.query import get_owned_or_404

router = APIRouter()


def _check_assignee(db: Session, tenant_id: int, user_id: Optional[int]) -> None:
    if user_id is None:
        return
    assignee = db.query(User).filter(User.id == user_id, User.tenant_id == tenant_id).first()
    if assignee is None:
        raise HTTPException(status_code=400, detail="Assignee not found")


@router.get("", response_model=list[TicketOut])
def list_tickets(
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    _: User = Depends(require_staff),
):
    query = db.query(Ticket).filter(Ticket.tenant_id == tenant.id)
    if status:
        if status.lower() == "open":
            query = query.filter(Ticket.status.in_(OPEN_STATUSES))
        else:
            try:
                query = query.filter(Ticket.status == TicketStatus(status.upper()))
            except ValueError:
                raise HTTPException(status_code=400, detail="Invalid status filter")
    return query.order_by(Ticket.created_at.desc(), Ticket.id.desc()).all()


@router.get("/{ticket_id}", response_model=TicketOut)
def get_ticket(
    ticket_id: int,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    _: User = Depends(require_staff),
):
    return get_owned_or_404(db, Ticket, tenant.id, ticket_id, "Ticket")


@router.post("", response_model=TicketOut, status_code=201)
def create_ticket(
    payload: TicketCreate,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    user: User = Depends(require_staff),
):
    subject = payload.subject.strip()
    details = payload.issue_details.strip()
    if not subject or not details:
        raise HTTPException(status_code=400, detail="Subject and issue details are required")
    if payload.wifi_user_id is not None:
        get_owned_or_404(db, WifiUser, tenant.id, payload.wifi_user_id, "WiFi user")
    _check_assignee(db, tenant.id, payload.assigned_to)

    assigned_to = payload.assigned_to
    if assigned_to is None and user.role == UserRole.TECH:
        assigned_to = user.id
    ticket = Ticket(
        tenant_id=tenant.id,
        wifi_user_id=payload.wifi_user_id,
        subject=subject,
        issue_details=details,
        priority=payload.priority,
        status=TicketStatus.OPEN,
        assigned_to=assigned_to,
    )
    db.add(ticket)
    db.commit()
    db.refresh(ticket)
    return ticket


@router.patch("/{ticket_id}", response_model=TicketOut)
def update_ticket(
    ticket_id: int,
    payload: TicketUpdate,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    _: User = Depends(require_staff),
):
    ticket = get_owned_or_404(db, Ticket, tenant.id, ticket_id, "Ticket")
    if ticket.status == TicketStatus.CLOSED:
        raise HTTPException(status_code=400, detail="Closed tickets cannot be edited")
    data = payload.model_dump(exclude_unset=True)
    if "assigned_to" in data:
        _check_assignee(db, tenant.id, data["assigned_to"])

    status = data.pop("status", None)
    notes = data.pop("resolution_notes", None)
    for key, value in data.items():
        if key in ("subject", "issue_details") and not (value or "").strip():
            raise HTTPException(status_code=400, detail=f"{key} cannot be empty")
        setattr(ticket, key, value)
    if status is not None:
        transition(ticket, status, datetime.now(timezone.utc), notes)
    elif notes is not None:
        ticket.resolution_notes = notes
    db.commit()
    db.refresh(ticket)
    return ticket


@router.post("/{ticket_id}/close", response_model=TicketOut)
def close_ticket(
    ticket_id: int,
    payload: TicketClose,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    _: User = Depends(require_staff),
):
    ticket = get_owned_or_404(db, Ticket, tenant.id, ticket_id, "Ticket")
    if ticket.status == TicketStatus.CLOSED:
        raise HTTPException(status_code=400, detail="Ticket is already closed")
    transition(ticket, TicketStatus.CLOSED, datetime.now(timezone.utc), payload.resolution_notes)
    db.commit()
    db.refresh(ticket)
    return ticket


@router.delete("/{ticket_id}", response_model=Message)
def delete_ticket(
    ticket_id: int,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    user: User = Depends(require_staff),
):
    if user.role == UserRole.TECH:
        raise HTTPException(status_code=403, detail="Admin access required")
    ticket = get_owned_or_404(db, Ticket, tenant.id, ticket_id, "Ticket")
    db.delete(ticket)
    db.commit()
    return Message(message="Ticket deleted")
