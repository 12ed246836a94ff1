import enum
from sqlalchemy import Column, Integer, String, Boolean, Enum, ForeignKey, Text, Index
from app.core.database import Base
from app.models.base import TimestampMixin


class PlanType(str, enum.Enum):
    HOTSPOT = "HOTSPOT"
    PPPOE = "PPPOE"
    STATIC = "STATIC"


class Plan(Base, TimestampMixin):
    __tablename__ = "plans"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    name = Column(String(128), nullable=False)
    description = Column(Text, nullable=True)
    plan_type = Column(Enum(PlanType), nullable=False, default=PlanType.HOTSPOT)
    price = Column(Integer, nullable=False)
    duration_seconds = Column(Integer, nullable=False)
    speed_mbps = Column(Integer, nullable=True)
    upload_limit = Column(String(32), nullable=True)
    download_limit = Column(String(32), nullable=True)
    burst_upload = Column(String(32), nullable=True)
    burst_download = Column(String(32), nullable=True)
    simultaneous_use = Column(Integer, nullable=False, default=1)
    max_devices = Column(Integer, nullable=False, default=1)
    is_active = Column(Boolean, default=True, nullable=False)
    sort_order = Column(Integer, nullable=False, default=0)


Index("ix_plans_tenant_type", Plan.tenant_id, Plan.plan_type)
