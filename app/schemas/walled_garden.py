from datetime import datetime
from typing import Optional

from app.schemas.common import ApiModel


class WalledGardenCreate(ApiModel):
    domain: str
    description: Optional[str] = None
    is_active: bool = True


class WalledGardenOut(ApiModel):
    id: int
    domain: str
    description: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None
