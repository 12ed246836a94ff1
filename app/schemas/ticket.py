from datetime import datetime
from typing import Optional

from app.models import TicketPriority, TicketStatus
from app.schemas.common import ApiModel


class TicketCreate(ApiModel):
    subject: str
    issue_details: str
    priority: TicketPriority = TicketPriority.MEDIUM
    wifi_user_id: Optional[int] = None
    assigned_to: Optional[int] = None


class TicketUpdate(ApiModel):
    subject: Optional[str] = None
    issue_details: Optional[str] = None
    priority: Optional[TicketPriority] = None
    status: Optional[TicketStatus] = None
    resolution_notes: Optional[str] = None
    assigned_to: Optional[int] = None


class TicketClose(ApiModel):
    resolution_notes: Optional[str] = None


class TicketOut(ApiModel):
    id: int
    wifi_user_id: Optional[int] = None
    subject: str
    issue_details: str
    status: TicketStatus
    priority: TicketPriority
    resolution_notes: Optional[str] = None
    assigned_to: Optional[int] = None
    closed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
