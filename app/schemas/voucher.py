from datetime import datetime
from typing import Optional

from app.models import VoucherStatus
from app.schemas.common import ApiModel
from app.schemas.plan import PlanOut
from app.schemas.wifi_user import WifiUserOut


class VoucherBatchCreate(ApiModel):
    name: str
    plan_id: int
    quantity: int
    prefix: Optional[str] = None
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None


class VoucherBatchOut(ApiModel):
    id: int
    plan_id: int
    name: str
    prefix: Optional[str] = None
    quantity: int
    used_count: int
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    created_at: Optional[datetime] = None


class VoucherOut(ApiModel):
    id: int
    batch_id: int
    plan_id: int
    code: str
    status: VoucherStatus
    used_by: Optional[int] = None
    used_at: Optional[datetime] = None
    mac_address: Optional[str] = None
    valid_until: Optional[datetime] = None
    expires_at: Optional[datetime] = None


class VoucherVerifyOut(ApiModel):
    code: str
    status: VoucherStatus
    valid: bool
    plan: Optional[PlanOut] = None
    valid_until: Optional[datetime] = None


class VoucherRedeemRequest(ApiModel):
    code: str
    phone_number: Optional[str] = None
    mac_address: Optional[str] = None


class VoucherRedeemResponse(ApiModel):
    voucher: VoucherOut
    wifi_user: WifiUserOut
    expires_at: Optional[datetime] = None


class BatchDisableResult(ApiModel):
    disabled: int
