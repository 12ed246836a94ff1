import enum
from sqlalchemy import Column, Integer, String, ForeignKey, Enum, Index, DateTime
from sqlalchemy.orm import relationship
from app.core.database import Base
from app.models.base import TimestampMixin


class TransactionStatus(str, enum.Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class ReconciliationStatus(str, enum.Enum):
    PENDING = "PENDING"
    MATCHED = "MATCHED"
    UNMATCHED = "UNMATCHED"
    MANUAL_REVIEW = "MANUAL_REVIEW"


class Transaction(Base, TimestampMixin):
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    plan_id = Column(Integer, ForeignKey("plans.id"), nullable=True)
    wifi_user_id = Column(Integer, ForeignKey("wifi_users.id"), nullable=True, index=True)
    user_phone = Column(String(20), nullable=False)
    amount = Column(Integer, nullable=False)
    mpesa_receipt_number = Column(String(32), nullable=True, index=True)
    checkout_request_id = Column(String(64), nullable=True, unique=True, index=True)
    merchant_request_id = Column(String(64), nullable=True)
    status = Column(Enum(TransactionStatus), nullable=False, default=TransactionStatus.PENDING)
    reconciliation_status = Column(Enum(ReconciliationStatus), nullable=False, default=ReconciliationStatus.PENDING)
    status_description = Column(String(255), nullable=True)
    mac_address = Column(String(32), nullable=True)
    nas_ip = Column(String(64), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)

    plan = relationship("Plan")


Index("ix_transactions_tenant_status", Transaction.tenant_id, Transaction.status)
Index("ix_transactions_tenant_reconciliation", Transaction.tenant_id, Transaction.reconciliation_status)
