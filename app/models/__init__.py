from app.models.tenant import Tenant, SubscriptionTier, SaasBillingStatus
from app.models.user import User, UserRole
from app.models.hotspot import Hotspot
from app.models.plan import Plan, PlanType
from app.models.wifi_user import WifiUser, AccountType, WifiUserStatus
from app.models.transaction import Transaction, TransactionStatus, ReconciliationStatus
from app.models.ticket import Ticket, TicketStatus, TicketPriority
from app.models.voucher import VoucherBatch, Voucher, VoucherStatus
from app.models.loyalty import LoyaltyAccount, LoyaltyTransaction, LoyaltyEntryType
from app.models.walled_garden import WalledGarden

__all__ = [
    "Tenant",
    "SubscriptionTier",
    "SaasBillingStatus",
    "User",
    "UserRole",
    "Hotspot",
    "Plan",
    "PlanType",
    "WifiUser",
    "AccountType",
    "WifiUserStatus",
    "Transaction",
    "TransactionStatus",
    "ReconciliationStatus",
    "Ticket",
    "TicketStatus",
    "TicketPriority",
    "VoucherBatch",
    "Voucher",
    "VoucherStatus",
    "LoyaltyAccount",
    "LoyaltyTransaction",
    "LoyaltyEntryType",
    "WalledGarden",
]
