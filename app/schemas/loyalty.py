from datetime import datetime
from typing import Optional

from app.models import LoyaltyEntryType
from app.schemas.common import ApiModel


class LoyaltyAccountOut(ApiModel):
    wifi_user_id: int
    points: int = 0
    total_earned: int = 0
    total_redeemed: int = 0
    last_earned_at: Optional[datetime] = None


class LoyaltyPointsRequest(ApiModel):
    points: int
    description: Optional[str] = None


class LoyaltyTransactionOut(ApiModel):
    id: int
    entry_type: LoyaltyEntryType
    points: int
    description: Optional[str] = None
    reference_id: Optional[str] = None
    created_at: Optional[datetime] = None
