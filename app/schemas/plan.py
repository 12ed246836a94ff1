from datetime import datetime
from typing import Optional

from app.models import PlanType
from app.schemas.common import ApiModel


class PlanCreate(ApiModel):
    name: str
    description: Optional[str] = None
    plan_type: PlanType = PlanType.HOTSPOT
    price: int
    duration_seconds: Optional[int] = None
    speed_mbps: Optional[int] = None
    upload_limit: Optional[str] = None
    download_limit: Optional[str] = None
    burst_upload: Optional[str] = None
    burst_download: Optional[str] = None
    simultaneous_use: int = 1
    max_devices: int = 1
    is_active: bool = True
    sort_order: int = 0


class PlanUpdate(ApiModel):
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[int] = None
    duration_seconds: Optional[int] = None
    speed_mbps: Optional[int] = None
    upload_limit: Optional[str] = None
    download_limit: Optional[str] = None
    burst_upload: Optional[str] = None
    burst_download: Optional[str] = None
    simultaneous_use: Optional[int] = None
    max_devices: Optional[int] = None
    is_active: Optional[bool] = None
    sort_order: Optional[int] = None


class PlanOut(ApiModel):
    id: int
    name: str
    description: Optional[str] = None
    plan_type: PlanType
    price: int
    duration_seconds: int
    speed_mbps: Optional[int] = None
    upload_limit: Optional[str] = None
    download_limit: Optional[str] = None
    burst_upload: Optional[str] = None
    burst_download: Optional[str] = None
    simultaneous_use: int
    max_devices: int
    is_active: bool
    sort_order: int
    created_at: Optional[datetime] = None
