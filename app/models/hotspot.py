from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, Text
from app.core.database import Base
from app.models.base import TimestampMixin


class Hotspot(Base, TimestampMixin):
    __tablename__ = "hotspots"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    location_name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    nas_ip = Column(String(64), nullable=False)
    secret = Column(String(255), nullable=False)
    router_api_ip = Column(String(64), nullable=True)
    router_api_user = Column(String(64), nullable=True)
    router_api_pass = Column(String(255), nullable=True)
    router_api_port = Column(Integer, nullable=False, default=8728)
    is_active = Column(Boolean, default=True, nullable=False)
