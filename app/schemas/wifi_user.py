from datetime import datetime
from typing import Optional

from pydantic import EmailStr

from app.models import AccountType, WifiUserStatus
from app.schemas.common import ApiModel
from app.schemas.hotspot import HotspotOut
from app.schemas.plan import PlanOut
from app.schemas.ticket import TicketOut
from app.schemas.transaction import TransactionOut


class WifiUserCreate(ApiModel):
    phone_number: str
    email: Optional[EmailStr] = None
    full_name: Optional[str] = None
    account_type: AccountType = AccountType.HOTSPOT
    current_plan_id: Optional[int] = None
    current_hotspot_id: Optional[int] = None
    technician_id: Optional[int] = None
    expiry_time: Optional[datetime] = None
    mac_address: Optional[str] = None
    ip_address: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    status: WifiUserStatus = WifiUserStatus.ACTIVE
    notes: Optional[str] = None


class WifiUserUpdate(ApiModel):
    phone_number: Optional[str] = None
    email: Optional[EmailStr] = None
    full_name: Optional[str] = None
    account_type: Optional[AccountType] = None
    current_plan_id: Optional[int] = None
    current_hotspot_id: Optional[int] = None
    technician_id: Optional[int] = None
    expiry_time: Optional[datetime] = None
    mac_address: Optional[str] = None
    ip_address: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    status: Optional[WifiUserStatus] = None
    notes: Optional[str] = None


class WifiUserOut(ApiModel):
    id: int
    phone_number: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    account_type: AccountType
    current_plan_id: Optional[int] = None
    current_hotspot_id: Optional[int] = None
    technician_id: Optional[int] = None
    expiry_time: Optional[datetime] = None
    mac_address: Optional[str] = None
    ip_address: Optional[str] = None
    username: Optional[str] = None
    status: WifiUserStatus
    notes: Optional[str] = None
    created_at: Optional[datetime] = None


class RechargeRequest(ApiModel):
    plan_id: Optional[int] = None
    duration_seconds: Optional[int] = None


class ChangeHotspotRequest(ApiModel):
    hotspot_id: int


class WifiUserDetails(ApiModel):
    user: WifiUserOut
    plan: Optional[PlanOut] = None
    hotspot: Optional[HotspotOut] = None
    transactions: list[TransactionOut] = []
    tickets: list[TicketOut] = []
