from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional, List

from rebooked.app.api.deps import get_session
from rebooked.app.core.auth import AuthUser, get_current_user
from rebooked.app.core.limiter import limiter
from rebooked.app.core.logging import get_logger
from rebooked.app.schemas import CancelOrderRequest, CancelOrderResponse, OrderResponse
from rebooked.app.services.orders import (
    OrderService,
    OrderServiceError,
    CancellationRefundError,
)

router = APIRouter()
logger = get_logger(__name__)


def _handle_service_error(e: OrderServiceError):
    """Convert service exceptions to HTTP exceptions."""
    raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/{order_id}/cancel", response_model=CancelOrderResponse)
@limiter.limit("10/minute")
async def cancel_order(
    request: Request,
    order_id: str,
    data: Optional[CancelOrderRequest] = None,
    session: AsyncSession = Depends(get_session),
    current_user: AuthUser = Depends(get_current_user),
):
    """
    Cancel an order and refund the buyer.

    Allowed for the buyer, the seller and admins, until the courier has
    collected the parcel.
    """
    service = OrderService(session)
    try:
        result = await service.cancel_order_with_refund(
            order_id,
            current_user,
            reason=data.reason if data else None,
        )
        await session.commit()
    except CancellationRefundError as e:
        # Keep the failed-refund audit row
        await session.commit()
        _handle_service_error(e)
    except OrderServiceError as e:
        await session.rollback()
        _handle_service_error(e)

    logger.info(
        "Order cancelled",
        order_id=order_id,
        user_id=current_user.id,
        shipment_cancelled=result["shipment_cancelled"],
    )
    return CancelOrderResponse(**result)


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: str,
    session: AsyncSession = Depends(get_session),
    current_user: AuthUser = Depends(get_current_user),
):
    service = OrderService(session)
    try:
        return await service.get_order(order_id, current_user)
    except OrderServiceError as e:
        _handle_service_error(e)


@router.get("", response_model=List[OrderResponse])
async def list_orders(
    role: str = Query("buyer", pattern="^(buyer|seller)$"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_session),
    current_user: AuthUser = Depends(get_current_user),
):
    """The caller's orders as buyer (default) or as seller, newest first."""
    service = OrderService(session)
    return await service.list_orders(current_user.id, role=role, limit=limit, offset=offset)
