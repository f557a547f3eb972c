# rebooked/app/services/orders.py
"""
Order service - order lookups and the cancel-and-refund flow.

Cancellation runs as a short saga: cancel the courier booking, refund the
payment, mark the order cancelled, notify both parties. Only the refund is
mandatory; a shipment that cannot be cancelled or a notification that
cannot be written is logged and the flow carries on.
"""
from typing import TYPE_CHECKING, Optional, List, Dict, Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rebooked.app.core.base import utcnow
from rebooked.app.core.constants import (
    CANCEL_BLOCKED_STATUSES,
    DEFAULT_CANCELLATION_REASON,
    NOTIFICATION_ORDER_CANCELLED,
    ORDER_STATUS_CANCELLED,
    ORDER_STATUS_SCHEDULED,
    REFUND_STATUS_COMPLETED,
)
from rebooked.app.core.exceptions import ServiceError
from rebooked.app.core.logging import get_logger
from rebooked.app.core.metrics import orders_cancelled_total
from rebooked.app.models.order import Order
from rebooked.app.services.bobgo import BobGoClient, BobGoError
from rebooked.app.services.notifications import notify
from rebooked.app.services.refunds import RefundService, RefundServiceError

if TYPE_CHECKING:
    from rebooked.app.core.auth import AuthUser

logger = get_logger(__name__)


class OrderServiceError(ServiceError):
    """Base exception for order service errors."""


class OrderNotFoundError(OrderServiceError):
    def __init__(self, order_id: str):
        super().__init__("Order not found", 404)
        self.order_id = order_id


class OrderAccessDeniedError(OrderServiceError):
    def __init__(self, message: str = "Not authorized to access this order"):
        super().__init__(message, 403)


class OrderNotCancellableError(OrderServiceError):
    def __init__(self, message: str):
        super().__init__(message, 400)


class CancellationRefundError(OrderServiceError):
    """Refund step failed; its failed-refund audit row is still in the session."""

    def __init__(self, message: str, status_code: int = 502):
        super().__init__(f"Refund failed: {message}", status_code)


def cancellation_block_reason(order: Order) -> Optional[str]:
    """Why an order can no longer be cancelled, or None if it can."""
    order_status = (order.status or "").lower()
    delivery_status = (order.delivery_status or "").lower()

    if order_status in CANCEL_BLOCKED_STATUSES or delivery_status in CANCEL_BLOCKED_STATUSES:
        current = order.status if order_status in CANCEL_BLOCKED_STATUSES else order.delivery_status
        return (
            f'Your order is "{current}". Therefore you cannot cancel the order. '
            "Contact support for more assistance."
        )
    if order.status == ORDER_STATUS_SCHEDULED:
        return "Cannot cancel order - pickup is already scheduled"
    return None


def can_access_order(order: Order, user: "AuthUser") -> bool:
    return user.is_admin or order.buyer_id == user.id or order.seller_id == user.id


class OrderService:
    """Service class for order operations."""

    def __init__(
        self,
        session: AsyncSession,
        bobgo: Optional[BobGoClient] = None,
        refunds: Optional[RefundService] = None,
    ):
        self.session = session
        self.bobgo = bobgo or BobGoClient()
        self.refunds = refunds or RefundService(session)

    async def get_order(self, order_id: str, user: Optional["AuthUser"] = None) -> Order:
        """
        Load an order. When ``user`` is given, only the buyer, the seller or an
        admin may see it.
        """
        order = await self.session.get(Order, order_id)
        if not order:
            raise OrderNotFoundError(order_id)
        if user is not None and not can_access_order(order, user):
            raise OrderAccessDeniedError()
        return order

    async def list_orders(self, user_id: str, role: str = "buyer", limit: int = 50, offset: int = 0) -> List[Order]:
        column = Order.seller_id if role == "seller" else Order.buyer_id
        result = await self.session.execute(
            select(Order)
            .where(column == user_id)
            .order_by(Order.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def _cancel_shipment(self, order: Order) -> bool:
        """Step 1 of cancellation; never raises."""
        if not order.tracking_number:
            return False
        logger.info("Cancelling shipment", order_id=order.id, tracking_number=order.tracking_number)
        try:
            await self.bobgo.cancel_shipment(order.tracking_number)
        except BobGoError as e:
            # Continue with refund even if shipment cancellation fails
            logger.error(
                "Failed to cancel shipment",
                order_id=order.id,
                tracking_number=order.tracking_number,
                error=e.message,
            )
            return False
        logger.info("Shipment cancelled successfully", order_id=order.id)
        return True

    async def cancel_order_with_refund(
        self,
        order_id: str,
        user: "AuthUser",
        reason: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Cancel an order and refund the buyer.

        Caller must commit the session after this returns. On
        ``CancellationRefundError`` the caller should also commit, to keep the
        failed-refund audit row.

        Raises:
            OrderNotFoundError: If the order doesn't exist
            OrderNotCancellableError: If the parcel is already with the courier
            OrderAccessDeniedError: If the user is not the buyer, the seller or an admin
            CancellationRefundError: If the refund step failed
        """
        logger.info("Processing cancel and refund for order", order_id=order_id, user_id=user.id)
        reason = reason or DEFAULT_CANCELLATION_REASON

        order = await self.session.get(Order, order_id)
        if not order:
            raise OrderNotFoundError(order_id)

        blocked = cancellation_block_reason(order)
        if blocked:
            raise OrderNotCancellableError(blocked)

        if not can_access_order(order, user):
            raise OrderAccessDeniedError("Not authorized to cancel this order")

        shipment_cancelled = await self._cancel_shipment(order)

        try:
            await self.refunds.process_refund(order_id=order.id, reason=reason, initiated_by=user.id)
        except RefundServiceError as e:
            logger.error("Refund failed", order_id=order.id, error=e.message)
            raise CancellationRefundError(e.message, e.status_code)

        now = utcnow()
        order.status = ORDER_STATUS_CANCELLED
        order.refund_status = REFUND_STATUS_COMPLETED
        order.refunded_at = now
        order.cancelled_at = now
        order.cancellation_reason = reason
        order.updated_at = now
        await self.session.flush()
        logger.info("Order status updated to cancelled", order_id=order.id)

        await notify(self.session, [
            {
                "order_id": order.id,
                "user_id": order.buyer_id,
                "type": NOTIFICATION_ORDER_CANCELLED,
                "title": "Order Cancelled",
                "message": "Your order has been cancelled and refunded.",
            },
            {
                "order_id": order.id,
                "user_id": order.seller_id,
                "type": NOTIFICATION_ORDER_CANCELLED,
                "title": "Order Cancelled",
                "message": "An order has been cancelled and refunded.",
            },
        ])

        orders_cancelled_total.labels(shipment_cancelled=str(shipment_cancelled).lower()).inc()

        return {
            "order_id": order.id,
            "refund_status": REFUND_STATUS_COMPLETED,
            "shipment_cancelled": shipment_cancelled,
        }
