import enum
from sqlalchemy import Column, Integer, String, ForeignKey, Enum, Index, DateTime, UniqueConstraint
from sqlalchemy.orm import relationship
from app.core.database import Base
from app.models.base import TimestampMixin


class VoucherStatus(str, enum.Enum):
    AVAILABLE = "AVAILABLE"
    USED = "USED"
    EXPIRED = "EXPIRED"
    DISABLED = "DISABLED"


class VoucherBatch(Base, TimestampMixin):
    __tablename__ = "voucher_batches"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    plan_id = Column(Integer, ForeignKey("plans.id"), nullable=False)
    name = Column(String(128), nullable=False)
    prefix = Column(String(6), nullable=True)
    quantity = Column(Integer, nullable=False)
    used_count = Column(Integer, nullable=False, default=0)
    valid_from = Column(DateTime(timezone=True), nullable=True)
    valid_until = Column(DateTime(timezone=True), nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    plan = relationship("Plan")
    vouchers = relationship("Voucher", back_populates="batch")


class Voucher(Base, TimestampMixin):
    __tablename__ = "vouchers"
    __table_args__ = (UniqueConstraint("tenant_id", "code", name="uq_vouchers_tenant_code"),)

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    batch_id = Column(Integer, ForeignKey("voucher_batches.id"), nullable=False, index=True)
    plan_id = Column(Integer, ForeignKey("plans.id"), nullable=False)
    code = Column(String(32), nullable=False)
    status = Column(Enum(VoucherStatus), nullable=False, default=VoucherStatus.AVAILABLE)
    used_by = Column(Integer, ForeignKey("wifi_users.id"), nullable=True)
    used_at = Column(DateTime(timezone=True), nullable=True)
    mac_address = Column(String(32), nullable=True)
    valid_until = Column(DateTime(timezone=True), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)

    batch = relationship("VoucherBatch", back_populates="vouchers")
    plan = relationship("Plan")


Index("ix_vouchers_batch_status", Voucher.batch_id, Voucher.status)
