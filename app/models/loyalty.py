import enum
from sqlalchemy import Column, Integer, String, ForeignKey, Enum, Index, DateTime
from sqlalchemy.orm import relationship
from app.core.database import Base
from app.models.base import TimestampMixin


class LoyaltyEntryType(str, enum.Enum):
    EARN = "EARN"
    REDEEM = "REDEEM"


class LoyaltyAccount(Base, TimestampMixin):
    __tablename__ = "loyalty_points"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    wifi_user_id = Column(Integer, ForeignKey("wifi_users.id"), nullable=False, unique=True)
    points = Column(Integer, nullable=False, default=0)
    total_earned = Column(Integer, nullable=False, default=0)
    total_redeemed = Column(Integer, nullable=False, default=0)
    last_earned_at = Column(DateTime(timezone=True), nullable=True)

    entries = relationship("LoyaltyTransaction", back_populates="account", order_by="LoyaltyTransaction.id")


class LoyaltyTransaction(Base, TimestampMixin):
    __tablename__ = "loyalty_transactions"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False)
    account_id = Column(Integer, ForeignKey("loyalty_points.id"), nullable=False, index=True)
    wifi_user_id = Column(Integer, ForeignKey("wifi_users.id"), nullable=False)
    entry_type = Column(Enum(LoyaltyEntryType), nullable=False)
    points = Column(Integer, nullable=False)
    description = Column(String(255), nullable=True)
    reference_id = Column(String(64), nullable=True)

    account = relationship("LoyaltyAccount", back_populates="entries")


Index("ix_loyalty_transactions_user", LoyaltyTransaction.wifi_user_id, LoyaltyTransaction.id)
