from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List, Any, Dict
from decimal import Decimal
from datetime import datetime

# --- Orders ---
class CancelOrderRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)

class CancelOrderResponse(BaseModel):
    success: bool = True
    message: str = "Order cancelled and refunded successfully"
    order_id: str
    refund_status: str
    shipment_cancelled: bool

class OrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    buyer_id: str
    seller_id: str
    book_id: Optional[str] = None
    status: str
    delivery_status: Optional[str] = None
    tracking_number: Optional[str] = None
    delivery_locker_data: Optional[Dict[str, Any]] = None
    total_amount: Optional[Decimal] = None
    refund_status: Optional[str] = None
    refunded_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    created_at: datetime


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    order_id: Optional[str] = None
    type: str
    title: str
    message: str
    read: bool
    created_at: datetime


# --- Refunds ---
class RefundRequest(BaseModel):
    order_id: str
    payment_id: Optional[str] = None
    reason: Optional[str] = Field(None, max_length=500)

class RefundResponse(BaseModel):
    success: bool = True
    refund_id: str
    amount: Decimal
    status: str
    message: str
    refund_method: str

class RefundTransactionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    order_id: str
    initiated_by: Optional[str] = None
    amount: Decimal
    reason: Optional[str] = None
    status: str
    transaction_reference: Optional[str] = None
    provider_refund_reference: Optional[str] = None
    completed_at: Optional[datetime] = None
    created_at: datetime


# --- Wallet ---
class WalletBalance(BaseModel):
    available_balance: int = 0
    pending_balance: int = 0
    total_earned: int = 0

class WalletTransactionResponse(BaseModel):
    id: str
    type: str
    type_label: str
    amount: int
    reason: Optional[str] = None
    reference_order_id: Optional[str] = None
    reference_payout_id: Optional[str] = None
    status: str
    created_at: datetime

class CreditOnCollectionRequest(BaseModel):
    order_id: str
    seller_id: str

class CreditOnCollectionResponse(BaseModel):
    success: bool
    credit_amount: int  # cents
    new_balance: int  # cents

class PayoutCreate(BaseModel):
    amount: int = Field(gt=0, description="Whole rands")

class PayoutResolve(BaseModel):
    approve: bool
    note: Optional[str] = Field(None, max_length=500)

class PayoutResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    amount: int  # cents
    status: str
    note: Optional[str] = None
    created_at: datetime
    resolved_at: Optional[datetime] = None


# --- Banking ---
class BankingDetailsIn(BaseModel):
    business_name: str = Field(min_length=1, max_length=255)
    email: str = Field(min_length=3, max_length=255)
    bank_name: str = Field(min_length=1, max_length=255)
    bank_code: str = Field(min_length=1, max_length=20)
    account_number: str

    @field_validator("account_number")
    @classmethod
    def digits_only(cls, v: str) -> str:
        v = v.replace(" ", "")
        if not v.isdigit() or not 6 <= len(v) <= 16:
            raise ValueError("Account number must be 6 to 16 digits")
        return v

class BankingSaveResponse(BaseModel):
    success: bool
    subaccount_code: str
    created: bool
    books_linked: int

class SubaccountStatus(BaseModel):
    has_subaccount: bool
    can_edit: bool
    subaccount_code: Optional[str] = None
    business_name: Optional[str] = None
    bank_name: Optional[str] = None
    account_number: Optional[str] = None
    email: Optional[str] = None


# --- Lockers ---
class LockerSave(BaseModel):
    locker: Dict[str, Any]
    replace: bool = False

class ListingRequirements(BaseModel):
    has_banking_info: bool
    has_pickup_address: bool
    has_saved_locker: bool
    is_verified: bool
    can_list_books: bool
    missing_requirements: List[str]


# --- Affiliates ---
class TrackReferralRequest(BaseModel):
    affiliate_code: str = Field(min_length=1, max_length=50)
    new_user_id: str

class AffiliateEarningRequest(BaseModel):
    book_id: Optional[str] = None
    order_id: str
    seller_id: str

class AffiliateSummary(BaseModel):
    affiliate_id: str
    referral_count: int
    earnings_count: int
    total_earned: Decimal
