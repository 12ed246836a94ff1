from datetime import datetime
from typing import Optional

from fastapi import HTTPException

from app.models import Ticket, TicketStatus

ALLOWED_TRANSITIONS = {
    TicketStatus.OPEN: {TicketStatus.IN_PROGRESS, TicketStatus.RESOLVED, TicketStatus.CLOSED},
    TicketStatus.IN_PROGRESS: {TicketStatus.OPEN, TicketStatus.RESOLVED, TicketStatus.CLOSED},
    TicketStatus.RESOLVED: {TicketStatus.IN_PROGRESS, TicketStatus.CLOSED},
    TicketStatus.CLOSED: set(),
}

OPEN_STATUSES = (TicketStatus.OPEN, TicketStatus.IN_PROGRESS)


def can_transition(current: TicketStatus, target: TicketStatus) -> bool:
    if current == target:
        return True
    return target in ALLOWED_TRANSITIONS.get(current, set())


def transition(ticket: Ticket, target: TicketStatus, now: datetime, resolution_notes: Optional[str] = None) -> Ticket:
    current = TicketStatus(ticket.status)
    if not can_transition(current, target):
        raise HTTPException(
            status_code=400,
            detail=f"Cannot change ticket status from {current.value} to {target.value}",
        )
    ticket.status = target
    if resolution_notes is not None:
        ticket.resolution_notes = resolution_notes
    if target == TicketStatus.CLOSED and ticket.closed_at is None:
        ticket.closed_at = now
    return ticket
