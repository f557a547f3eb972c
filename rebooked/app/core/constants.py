"""
Shared constants for the backend application.
"""
from decimal import Decimal

# ---------------------------------------------------------------------------
# Roles
# ---------------------------------------------------------------------------
ADMIN_ROLES = ("admin", "super_admin")

# ---------------------------------------------------------------------------
# Order statuses
# ---------------------------------------------------------------------------
ORDER_STATUS_PENDING = "pending"
ORDER_STATUS_SCHEDULED = "scheduled"
ORDER_STATUS_CANCELLED = "cancelled"
ORDER_STATUS_REFUNDED = "refunded"

# Once the courier has the parcel the order can only be cancelled via support.
# Compared case-insensitively against both status and delivery_status.
CANCEL_BLOCKED_STATUSES = ("collected", "in transit", "out for delivery", "delivered")

# Orders in these states can no longer earn the seller a wallet credit
NON_CREDITABLE_STATUSES = (ORDER_STATUS_CANCELLED, ORDER_STATUS_REFUNDED)

REFUND_STATUS_COMPLETED = "completed"
DEFAULT_CANCELLATION_REASON = "Order cancelled by user"
DEFAULT_REFUND_REASON = "Forced refund - processed regardless of status"

# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------
NOTIFICATION_REFUND_SUCCESS = "refund_success"
NOTIFICATION_ORDER_REFUNDED = "order_refunded"
NOTIFICATION_ORDER_CANCELLED = "order_cancelled"
NOTIFICATION_WALLET_CREDITED = "wallet_credited"
NOTIFICATION_PAYOUT_APPROVED = "payout_approved"
NOTIFICATION_PAYOUT_REJECTED = "payout_rejected"

# ---------------------------------------------------------------------------
# Wallet
# ---------------------------------------------------------------------------
WALLET_TX_CREDIT = "credit"
WALLET_TX_DEBIT = "debit"
WALLET_TX_HOLD = "hold"
WALLET_TX_RELEASE = "release"

WALLET_TX_LABELS = {
    WALLET_TX_CREDIT: "Credited",
    WALLET_TX_DEBIT: "Debited",
    WALLET_TX_HOLD: "On Hold",
    WALLET_TX_RELEASE: "Released",
}

PAYOUT_PENDING = "pending"
PAYOUT_APPROVED = "approved"
PAYOUT_REJECTED = "rejected"

# ---------------------------------------------------------------------------
# Lockers
# ---------------------------------------------------------------------------
LOCKER_KINDS = ("delivery", "pickup")
KM_PER_DEGREE_LAT = 111

# ---------------------------------------------------------------------------
# Decimal helpers
# ---------------------------------------------------------------------------
ZERO = Decimal("0")
ONE_CENT = Decimal("0.01")
PERCENT_BASE = Decimal("100")
CENTS_PER_RAND = 100
