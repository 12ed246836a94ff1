import enum
from sqlalchemy import Column, Integer, String, ForeignKey, Enum, Index, DateTime, Text
from sqlalchemy.orm import relationship
from app.core.database import Base
from app.models.base import TimestampMixin


class AccountType(str, enum.Enum):
    HOTSPOT = "HOTSPOT"
    PPPOE = "PPPOE"
    STATIC = "STATIC"


class WifiUserStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"
    EXPIRED = "EXPIRED"


class WifiUser(Base, TimestampMixin):
    __tablename__ = "wifi_users"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    phone_number = Column(String(32), nullable=False)
    email = Column(String(255), nullable=True)
    full_name = Column(String(255), nullable=True)
    account_type = Column(Enum(AccountType), nullable=False, default=AccountType.HOTSPOT)
    current_plan_id = Column(Integer, ForeignKey("plans.id"), nullable=True)
    current_hotspot_id = Column(Integer, ForeignKey("hotspots.id"), nullable=True)
    technician_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    expiry_time = Column(DateTime(timezone=True), nullable=True)
    mac_address = Column(String(32), nullable=True)
    ip_address = Column(String(64), nullable=True)
    username = Column(String(64), nullable=True)
    password = Column(String(128), nullable=True)
    status = Column(Enum(WifiUserStatus), nullable=False, default=WifiUserStatus.ACTIVE)
    notes = Column(Text, nullable=True)

    current_plan = relationship("Plan")
    current_hotspot = relationship("Hotspot")


Index("ix_wifi_users_tenant_phone", WifiUser.tenant_id, WifiUser.phone_number)
Index("ix_wifi_users_tenant_status", WifiUser.tenant_id, WifiUser.status)
