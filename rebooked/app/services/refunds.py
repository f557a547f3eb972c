# rebooked/app/services/refunds.py
"""
Refund service - reverses an order's payment through BobPay.

Refunds are forced: they are issued by admins or by the cancellation flow,
so order status and ownership are not checked here. When the gateway cannot
be used (not configured, no payment id, API failure) the refund is recorded
as manual and finance settles it out of band.

Every attempt leaves a ``refund_transactions`` row, including failures.
"""
import time
from decimal import Decimal
from typing import Optional, Dict, Any, List

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from rebooked.app.core.base import utcnow
from rebooked.app.core.constants import (
    DEFAULT_REFUND_REASON,
    NOTIFICATION_ORDER_REFUNDED,
    NOTIFICATION_REFUND_SUCCESS,
    ONE_CENT,
    ORDER_STATUS_REFUNDED,
    REFUND_STATUS_COMPLETED,
    ZERO,
)
from rebooked.app.core.exceptions import ServiceError
from rebooked.app.core.logging import get_logger
from rebooked.app.core.metrics import refunds_processed_total
from rebooked.app.models.order import Order
from rebooked.app.models.payment import PaymentTransaction, RefundTransaction
from rebooked.app.services.bobpay import BobPayClient, BobPayError
from rebooked.app.services.notifications import notify

logger = get_logger(__name__)

REFUND_METHOD_API = "bobpay_api"
REFUND_METHOD_MANUAL = "manual"


class RefundServiceError(ServiceError):
    """Base exception for refund service errors."""


class RefundOrderNotFoundError(RefundServiceError):
    def __init__(self, order_id: str):
        super().__init__("Order not found", 404)
        self.order_id = order_id


class RefundFailedError(RefundServiceError):
    """
    The refund could not be completed. A failed ``refund_transactions`` row
    has been added to the session; the caller should commit to keep it.
    """

    def __init__(self, message: str, status_code: int = 500):
        super().__init__(message, status_code)


def _epoch_ms() -> int:
    return int(time.time() * 1000)


def extract_gateway_payment_id(tx: PaymentTransaction) -> Optional[Any]:
    """Gateway payment id stored on a payment transaction (BobPay first, then legacy Paystack)."""
    response = tx.bobpay_response or tx.paystack_response or {}
    return response.get("id") or response.get("payment_id")


class RefundService:
    """Processes refunds and records the refund audit trail."""

    def __init__(self, session: AsyncSession, bobpay: Optional[BobPayClient] = None):
        self.session = session
        self.bobpay = bobpay or BobPayClient()

    async def _latest_payment_id(self, order_id: str) -> Optional[Any]:
        result = await self.session.execute(
            select(PaymentTransaction)
            .where(PaymentTransaction.order_id == order_id)
            .order_by(PaymentTransaction.created_at.desc())
            .limit(1)
        )
        tx = result.scalar_one_or_none()
        if tx is None:
            return None
        return extract_gateway_payment_id(tx)

    async def _call_gateway(self, payment_id: Optional[Any]) -> Dict[str, Any]:
        """Reverse through BobPay, falling back to a manual refund result."""
        if not (self.bobpay.configured and payment_id):
            if not payment_id:
                logger.info("No payment ID found, creating manual refund record")
            else:
                logger.info("BobPay credentials missing, processing manual refund")
            return {
                "manual_refund": True,
                "reason": "BobPay credentials not configured, processed manually",
            }

        try:
            result = await self.bobpay.reverse_payment(payment_id)
            logger.info("BobPay refund successful", payment_id=payment_id)
            if not isinstance(result, dict):
                return {"raw": result}
            return result
        except BobPayError as e:
            logger.error(
                "BobPay API failed, proceeding with manual refund",
                payment_id=payment_id,
                error=e.message,
                body=(e.body or "")[:500],
            )
            reason = (
                "BobPay API failed, processed manually"
                if e.status_code is not None
                else "BobPay API call failed, processed manually"
            )
            return {
                "manual_refund": True,
                "reason": reason,
                "error": e.body or e.message,
            }

    async def _record_refund(
        self,
        order: Order,
        amount: Decimal,
        reason: Optional[str],
        initiated_by: Optional[str],
        gateway_result: Dict[str, Any],
    ) -> Optional[RefundTransaction]:
        """Best-effort audit row; a failed insert does not fail the refund."""
        payment_method = gateway_result.get("payment_method")
        if not isinstance(payment_method, dict):
            payment_method = {}
        refund_tx = RefundTransaction(
            order_id=order.id,
            initiated_by=initiated_by,
            amount=amount,
            reason=reason or DEFAULT_REFUND_REASON,
            status="success",
            transaction_reference=order.payment_reference or f"tx-{_epoch_ms()}",
            provider_refund_reference=payment_method.get("merchant_reference") or f"manual-{_epoch_ms()}",
            provider_response={
                **gateway_result,
                "provider": "bobpay",
                "forced_refund": True,
            },
            completed_at=utcnow(),
        )
        try:
            async with self.session.begin_nested():
                self.session.add(refund_tx)
        except SQLAlchemyError as e:
            logger.error("Error creating refund transaction", order_id=order.id, error=str(e))
            return None
        return refund_tx

    async def record_failure(self, order_id: str, message: str) -> None:
        """Add a failed-attempt audit row (amount 0) to the session."""
        try:
            async with self.session.begin_nested():
                self.session.add(RefundTransaction(
                    order_id=order_id,
                    amount=ZERO,
                    status="failed",
                    reason=message,
                    transaction_reference=f"failed-{_epoch_ms()}",
                ))
        except SQLAlchemyError as e:
            logger.error("Failed to log refund error", order_id=order_id, error=str(e))

    async def process_refund(
        self,
        order_id: str,
        payment_id: Optional[Any] = None,
        reason: Optional[str] = None,
        initiated_by: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Refund an order in full.

        Returns::

            {
                "refund_id": "<uuid>" | "manual",
                "amount": Decimal("250.00"),
                "status": "success",
                "message": "...",
                "refund_method": "bobpay_api" | "manual",
            }

        Raises:
            RefundOrderNotFoundError: If the order does not exist
            RefundFailedError: If the refund could not be recorded
        """
        logger.info("Processing BobPay refund", order_id=order_id, payment_id=payment_id, reason=reason)

        order = await self.session.get(Order, order_id)
        if not order:
            raise RefundOrderNotFoundError(order_id)

        try:
            async with self.session.begin_nested():
                result = await self._refund_order(order, payment_id, reason, initiated_by)
        except Exception as e:
            message = f"Refund could not be recorded: {e.__class__.__name__}"
            logger.error("Error in refund", order_id=order_id, error=str(e))
            refunds_processed_total.labels(method="none", status="failed").inc()
            await self.record_failure(order_id, message)
            raise RefundFailedError(message)

        refunds_processed_total.labels(method=result["refund_method"], status="success").inc()
        return result

    async def _refund_order(
        self,
        order: Order,
        payment_id: Optional[Any],
        reason: Optional[str],
        initiated_by: Optional[str],
    ) -> Dict[str, Any]:
        if not payment_id:
            payment_id = await self._latest_payment_id(order.id)

        logger.info("Initiating BobPay refund", order_id=order.id, payment_id=payment_id)
        gateway_result = await self._call_gateway(payment_id)
        refund_method = REFUND_METHOD_MANUAL if gateway_result.get("manual_refund") else REFUND_METHOD_API

        amount = Decimal(str(order.total_amount or 0)).quantize(ONE_CENT)
        refund_tx = await self._record_refund(order, amount, reason, initiated_by, gateway_result)

        now = utcnow()
        order.status = ORDER_STATUS_REFUNDED
        order.refund_status = REFUND_STATUS_COMPLETED
        order.refunded_at = now
        order.updated_at = now
        await self.session.flush()

        await notify(self.session, [
            {
                "order_id": order.id,
                "user_id": order.buyer_id,
                "type": NOTIFICATION_REFUND_SUCCESS,
                "title": "Refund Processed",
                "message": f"Your refund of R{amount:.2f} has been processed successfully.",
            },
            {
                "order_id": order.id,
                "user_id": order.seller_id,
                "type": NOTIFICATION_ORDER_REFUNDED,
                "title": "Order Refunded",
                "message": "Order has been refunded to the buyer.",
            },
        ])

        logger.info(
            "Refund created",
            order_id=order.id,
            refund_id=refund_tx.id if refund_tx else None,
            amount=str(amount),
            refund_method=refund_method,
        )

        return {
            "refund_id": refund_tx.id if refund_tx else "manual",
            "amount": amount,
            "status": "success",
            "message": "Refund processed successfully - forced regardless of status",
            "refund_method": refund_method,
        }

    async def list_refunds(self, order_id: str) -> List[RefundTransaction]:
        """Refund audit trail for an order, newest first."""
        result = await self.session.execute(
            select(RefundTransaction)
            .where(RefundTransaction.order_id == order_id)
            .order_by(RefundTransaction.created_at.desc())
        )
        return list(result.scalars().all())
