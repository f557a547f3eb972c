# rebooked/app/services/wallet.py
"""
Wallet service - seller earnings and payouts.

Balances and transaction amounts are stored in cents. Reads report whole
rands (floored), matching what the profile page shows.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, List, Dict, Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from rebooked.app.core.base import utcnow
from rebooked.app.core.constants import (
    CENTS_PER_RAND,
    NON_CREDITABLE_STATUSES,
    NOTIFICATION_PAYOUT_APPROVED,
    NOTIFICATION_PAYOUT_REJECTED,
    NOTIFICATION_WALLET_CREDITED,
    PAYOUT_APPROVED,
    PAYOUT_PENDING,
    PAYOUT_REJECTED,
    PERCENT_BASE,
    WALLET_TX_CREDIT,
    WALLET_TX_DEBIT,
    WALLET_TX_HOLD,
    WALLET_TX_LABELS,
    WALLET_TX_RELEASE,
)
from rebooked.app.core.exceptions import ServiceError
from rebooked.app.core.logging import get_logger
from rebooked.app.core.metrics import payouts_total, wallet_credits_total
from rebooked.app.core.settings import get_settings
from rebooked.app.models.book import Book
from rebooked.app.models.order import Order
from rebooked.app.models.wallet import Wallet, WalletTransaction, PayoutRequest
from rebooked.app.services.affiliates import AffiliateService, AffiliateServiceError
from rebooked.app.services.banking import BankingService
from rebooked.app.services.notifications import notify

logger = get_logger(__name__)


class WalletServiceError(ServiceError):
    """Base exception for wallet service errors."""


class WalletOrderNotFoundError(WalletServiceError):
    def __init__(self, order_id: str):
        super().__init__(f"Order {order_id} not found", 404)


class WalletAccessDeniedError(WalletServiceError):
    def __init__(self, message: str):
        super().__init__(message, 403)


class AlreadyCreditedError(WalletServiceError):
    def __init__(self, order_id: str):
        super().__init__(f"Wallet already credited for order {order_id}", 409)


class OrderNotCreditableError(WalletServiceError):
    def __init__(self, order_id: str, status: str):
        super().__init__(f"Order {order_id} is {status} and cannot be credited", 409)


class PayoutNotFoundError(WalletServiceError):
    def __init__(self, payout_id: str):
        super().__init__(f"Payout {payout_id} not found", 404)


class InvalidPayoutError(WalletServiceError):
    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message, status_code)


def cents_to_rands(cents: Optional[int]) -> int:
    """Whole rands, floored (matches the wallet summary display)."""
    return (cents or 0) // CENTS_PER_RAND


def transaction_type_label(tx_type: str) -> str:
    return WALLET_TX_LABELS.get(tx_type, tx_type)


def seller_credit_cents(book_price: Decimal, commission_percent: Decimal) -> int:
    """Seller's share of a sale in cents, rounded half-up."""
    share = book_price * (PERCENT_BASE - commission_percent) / PERCENT_BASE
    return int((share * CENTS_PER_RAND).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class WalletService:
    """Service class for wallet operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    # -- Reads --------------------------------------------------------------

    async def get_wallet_balance(self, user_id: str) -> Dict[str, int]:
        """
        Wallet summary in whole rands. Zero balances if the wallet does not
        exist yet or cannot be read.
        """
        zero = {"available_balance": 0, "pending_balance": 0, "total_earned": 0}
        try:
            wallet = await self.session.get(Wallet, user_id)
        except SQLAlchemyError as e:
            logger.warning("Error fetching wallet balance", user_id=user_id, error=str(e))
            return zero
        if wallet is None:
            return zero
        return {
            "available_balance": cents_to_rands(wallet.available_balance),
            "pending_balance": cents_to_rands(wallet.pending_balance),
            "total_earned": cents_to_rands(wallet.total_earned),
        }

    async def get_transaction_history(self, user_id: str, limit: int = 50, offset: int = 0) -> List[Dict[str, Any]]:
        """Newest first; amounts in whole rands."""
        try:
            result = await self.session.execute(
                select(WalletTransaction)
                .where(WalletTransaction.user_id == user_id)
                .order_by(WalletTransaction.created_at.desc())
                .offset(offset)
                .limit(limit)
            )
        except SQLAlchemyError as e:
            logger.error("Error fetching transaction history", user_id=user_id, error=str(e))
            return []
        return [
            {
                "id": tx.id,
                "type": tx.type,
                "type_label": transaction_type_label(tx.type),
                "amount": cents_to_rands(tx.amount),
                "reason": tx.reason,
                "reference_order_id": tx.reference_order_id,
                "reference_payout_id": tx.reference_payout_id,
                "status": tx.status,
                "created_at": tx.created_at,
            }
            for tx in result.scalars().all()
        ]

    # -- Helpers ------------------------------------------------------------

    async def _get_wallet_for_update(self, user_id: str) -> Wallet:
        """Wallet row with a row lock, created on first use."""
        result = await self.session.execute(
            select(Wallet).where(Wallet.user_id == user_id).with_for_update()
        )
        wallet = result.scalar_one_or_none()
        if wallet is None:
            wallet = Wallet(user_id=user_id, available_balance=0, pending_balance=0, total_earned=0)
            self.session.add(wallet)
            await self.session.flush()
        return wallet

    async def _already_credited(self, order_id: str) -> bool:
        existing = await self.session.execute(
            select(WalletTransaction.id).where(
                WalletTransaction.reference_order_id == order_id,
                WalletTransaction.type == WALLET_TX_CREDIT,
            )
        )
        return existing.first() is not None

    def _add_transaction(
        self,
        user_id: str,
        tx_type: str,
        amount: int,
        reason: str,
        order_id: Optional[str] = None,
        payout_id: Optional[str] = None,
        status: str = "completed",
    ) -> WalletTransaction:
        tx = WalletTransaction(
            user_id=user_id,
            type=tx_type,
            amount=amount,
            reason=reason,
            reference_order_id=order_id,
            reference_payout_id=payout_id,
            status=status,
        )
        self.session.add(tx)
        return tx

    # -- Credit on collection -------------------------------------------------

    async def credit_wallet_on_collection(self, order_id: str, seller_id: str) -> Dict[str, Any]:
        """
        Credit the seller once the buyer has received the book.

        The seller keeps ``100 - PLATFORM_COMMISSION_PERCENT`` percent of the
        book price. Caller must commit the session after this returns.

        Raises:
            WalletOrderNotFoundError: If the order doesn't exist
            WalletAccessDeniedError: If the order belongs to another seller
            OrderNotCreditableError: If the order was cancelled or refunded
            AlreadyCreditedError: If this order was already credited
        """
        settings = get_settings()

        # Row lock serialises concurrent credits for the same order
        result = await self.session.execute(
            select(Order).where(Order.id == order_id).with_for_update()
        )
        order = result.scalar_one_or_none()
        if not order:
            raise WalletOrderNotFoundError(order_id)
        if order.seller_id != seller_id:
            raise WalletAccessDeniedError(f"Order {order_id} does not belong to seller {seller_id}")
        if (order.status or "").lower() in NON_CREDITABLE_STATUSES:
            raise OrderNotCreditableError(order_id, order.status)

        if await self._already_credited(order_id):
            raise AlreadyCreditedError(order_id)

        book = await self.session.get(Book, order.book_id) if order.book_id else None
        price_source = book.price if book is not None else order.total_amount
        book_price = Decimal(str(price_source or 0))
        credit = seller_credit_cents(book_price, settings.PLATFORM_COMMISSION_PERCENT)

        wallet = await self._get_wallet_for_update(seller_id)
        try:
            async with self.session.begin_nested():
                self._add_transaction(
                    seller_id,
                    WALLET_TX_CREDIT,
                    credit,
                    f"Sale of {book.title}" if book is not None else f"Sale for order {order_id}",
                    order_id=order_id,
                )
        except IntegrityError:
            raise AlreadyCreditedError(order_id)

        wallet.available_balance += credit
        wallet.total_earned += credit
        await self.session.flush()

        wallet_credits_total.inc()
        logger.info(
            "Wallet credited on collection",
            order_id=order_id,
            seller_id=seller_id,
            credit_cents=credit,
            new_balance_cents=wallet.available_balance,
        )

        await notify(self.session, [{
            "order_id": order_id,
            "user_id": seller_id,
            "type": NOTIFICATION_WALLET_CREDITED,
            "title": "Payment Received",
            "message": (
                f"R{Decimal(credit) / CENTS_PER_RAND:.2f} has been added to your wallet"
                + (f" for \"{book.title}\"." if book is not None else ".")
            ),
        }])

        await self._process_affiliate_earning(order, seller_id)

        return {
            "success": True,
            "credit_amount": credit,
            "new_balance": wallet.available_balance,
        }

    async def _process_affiliate_earning(self, order: Order, seller_id: str) -> None:
        """A sale by a referred seller earns their affiliate a commission; never fails the credit."""
        try:
            async with self.session.begin_nested():
                await AffiliateService(self.session).process_affiliate_earning(
                    book_id=order.book_id,
                    order_id=order.id,
                    seller_id=seller_id,
                )
        except (AffiliateServiceError, SQLAlchemyError) as e:
            logger.warning("Affiliate earning failed (non-critical)", order_id=order.id, error=str(e))

    # -- Payouts --------------------------------------------------------------

    async def request_payout(self, user_id: str, amount: int) -> PayoutRequest:
        """
        Move ``amount`` whole rands from available to pending and open a payout request.

        Raises:
            InvalidPayoutError: No banking setup, amount below the minimum or above the balance
        """
        settings = get_settings()

        subaccount_code = await BankingService(self.session).get_user_subaccount_code(user_id)
        if not subaccount_code:
            raise InvalidPayoutError("Banking details are required before requesting a payout")
        if amount < settings.MIN_PAYOUT_AMOUNT:
            raise InvalidPayoutError(f"Minimum payout is R{settings.MIN_PAYOUT_AMOUNT}")

        cents = amount * CENTS_PER_RAND
        wallet = await self._get_wallet_for_update(user_id)
        if cents > wallet.available_balance:
            raise InvalidPayoutError("Payout amount exceeds available balance")

        payout = PayoutRequest(
            user_id=user_id,
            amount=cents,
            status=PAYOUT_PENDING,
            subaccount_code=subaccount_code,
        )
        self.session.add(payout)
        await self.session.flush()

        wallet.available_balance -= cents
        wallet.pending_balance += cents
        self._add_transaction(
            user_id, WALLET_TX_HOLD, cents, "Payout requested", payout_id=payout.id, status=PAYOUT_PENDING,
        )
        await self.session.flush()

        payouts_total.labels(event="requested").inc()
        logger.info("Payout requested", user_id=user_id, payout_id=payout.id, amount_cents=cents)
        return payout

    async def resolve_payout(self, payout_id: str, approve: bool, note: Optional[str] = None) -> PayoutRequest:
        """
        Approve (funds leave the wallet) or reject (funds return to available) a pending payout.

        Raises:
            PayoutNotFoundError: If the payout doesn't exist
            InvalidPayoutError: If the payout was already resolved (409)
        """
        result = await self.session.execute(
            select(PayoutRequest).where(PayoutRequest.id == payout_id).with_for_update()
        )
        payout = result.scalar_one_or_none()
        if payout is None:
            raise PayoutNotFoundError(payout_id)
        if payout.status != PAYOUT_PENDING:
            raise InvalidPayoutError(f"Payout {payout_id} is already {payout.status}", 409)

        wallet = await self._get_wallet_for_update(payout.user_id)
        wallet.pending_balance -= payout.amount
        payout.note = note
        payout.resolved_at = utcnow()

        if approve:
            payout.status = PAYOUT_APPROVED
            self._add_transaction(payout.user_id, WALLET_TX_DEBIT, payout.amount, note or "Payout sent", payout_id=payout.id)
            notification = {
                "type": NOTIFICATION_PAYOUT_APPROVED,
                "title": "Payout Sent",
                "message": f"Your payout of R{Decimal(payout.amount) / CENTS_PER_RAND:.2f} is on its way to your bank account.",
            }
        else:
            payout.status = PAYOUT_REJECTED
            wallet.available_balance += payout.amount
            self._add_transaction(payout.user_id, WALLET_TX_RELEASE, payout.amount, note or "Payout rejected", payout_id=payout.id)
            notification = {
                "type": NOTIFICATION_PAYOUT_REJECTED,
                "title": "Payout Rejected",
                "message": "Your payout request was rejected and the funds are back in your wallet."
                + (f" Reason: {note}" if note else ""),
            }

        hold = await self.session.execute(
            select(WalletTransaction).where(
                WalletTransaction.reference_payout_id == payout.id,
                WalletTransaction.type == WALLET_TX_HOLD,
            )
        )
        for tx in hold.scalars().all():
            tx.status = payout.status

        await self.session.flush()
        await notify(self.session, [{"order_id": None, "user_id": payout.user_id, **notification}])

        payouts_total.labels(event=payout.status).inc()
        logger.info("Payout resolved", payout_id=payout.id, status=payout.status)
        return payout
