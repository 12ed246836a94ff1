from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, UniqueConstraint
from app.core.database import Base
from app.models.base import TimestampMixin


class WalledGarden(Base, TimestampMixin):
    __tablename__ = "walled_gardens"
    __table_args__ = (UniqueConstraint("tenant_id", "domain", name="uq_walled_gardens_tenant_domain"),)

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    domain = Column(String(255), nullable=False)
    description = Column(String(255), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
