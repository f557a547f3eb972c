from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional, List

from rebooked.app.api.deps import get_session
from rebooked.app.core.auth import AuthUser, get_current_user_optional, require_internal_api_key
from rebooked.app.core.limiter import limiter
from rebooked.app.schemas import RefundRequest, RefundResponse, RefundTransactionResponse
from rebooked.app.services.refunds import RefundService, RefundServiceError, RefundFailedError

router = APIRouter(dependencies=[Depends(require_internal_api_key)])


@router.post("", response_model=RefundResponse)
@limiter.limit("20/minute")
async def create_refund(
    request: Request,
    data: RefundRequest,
    session: AsyncSession = Depends(get_session),
    current_user: Optional[AuthUser] = Depends(get_current_user_optional),
):
    """
    Force a full refund of an order, whatever its status.

    Used by support tooling. The optional bearer token identifies the admin
    who initiated it.
    """
    service = RefundService(session)
    try:
        result = await service.process_refund(
            order_id=data.order_id,
            payment_id=data.payment_id,
            reason=data.reason,
            initiated_by=current_user.id if current_user else None,
        )
        await session.commit()
    except RefundFailedError as e:
        await session.commit()
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except RefundServiceError as e:
        await session.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return RefundResponse(**result)


@router.get("/{order_id}", response_model=List[RefundTransactionResponse])
async def list_refunds(
    order_id: str,
    session: AsyncSession = Depends(get_session),
):
    return await RefundService(session).list_refunds(order_id)
