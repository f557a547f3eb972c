# rebooked/app/services/__init__.py
"""
Services layer for business logic.
Keeps API endpoints thin and business logic testable and reusable.
"""

from rebooked.app.services.orders import (
    OrderService,
    OrderServiceError,
    OrderNotFoundError,
    OrderAccessDeniedError,
    OrderNotCancellableError,
    CancellationRefundError,
)
from rebooked.app.services.refunds import (
    RefundService,
    RefundServiceError,
    RefundOrderNotFoundError,
    RefundFailedError,
)
from rebooked.app.services.wallet import (
    WalletService,
    WalletServiceError,
)
from rebooked.app.services.banking import (
    BankingService,
    BankingServiceError,
    SubaccountNotFoundError,
)
from rebooked.app.services.lockers import (
    LockerService,
    LockerServiceError,
    calculate_bounding_box,
)
from rebooked.app.services.affiliates import (
    AffiliateService,
    AffiliateServiceError,
)
from rebooked.app.services.bobpay import BobPayClient, BobPayError
from rebooked.app.services.bobgo import BobGoClient, BobGoError
from rebooked.app.services.cache import CacheService

__all__ = [
    # Order service
    "OrderService",
    "OrderServiceError",
    "OrderNotFoundError",
    "OrderAccessDeniedError",
    "OrderNotCancellableError",
    "CancellationRefundError",
    # Refund service
    "RefundService",
    "RefundServiceError",
    "RefundOrderNotFoundError",
    "RefundFailedError",
    # Wallet service
    "WalletService",
    "WalletServiceError",
    # Banking service
    "BankingService",
    "BankingServiceError",
    "SubaccountNotFoundError",
    # Locker service
    "LockerService",
    "LockerServiceError",
    "calculate_bounding_box",
    # Affiliate service
    "AffiliateService",
    "AffiliateServiceError",
    # External clients
    "BobPayClient",
    "BobPayError",
    "BobGoClient",
    "BobGoError",
    # Cache
    "CacheService",
]
