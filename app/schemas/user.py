from datetime import datetime
from typing import Optional

from app.models.user import UserRole
from app.schemas.common import ApiModel


class UserOut(ApiModel):
    id: int
    tenant_id: Optional[int] = None
    username: str
    email: str
    full_name: Optional[str] = None
    role: UserRole
    is_active: bool
    email_verified: bool
    two_factor_enabled: bool = False
    created_at: Optional[datetime] = None


class UserStatusUpdate(ApiModel):
    is_active: bool


class AdminUserOut(UserOut):
    tenant_name: Optional[str] = None
