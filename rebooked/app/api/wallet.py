from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from rebooked.app.api.deps import get_session
from rebooked.app.core.auth import AuthUser, get_current_user, require_internal_api_key
from rebooked.app.schemas import (
    CreditOnCollectionRequest,
    CreditOnCollectionResponse,
    PayoutCreate,
    PayoutResolve,
    PayoutResponse,
    WalletBalance,
    WalletTransactionResponse,
)
from rebooked.app.services.wallet import WalletService, WalletServiceError

router = APIRouter()


def _handle_service_error(e: WalletServiceError):
    raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/balance", response_model=WalletBalance)
async def get_balance(
    session: AsyncSession = Depends(get_session),
    current_user: AuthUser = Depends(get_current_user),
):
    return await WalletService(session).get_wallet_balance(current_user.id)


@router.get("/transactions", response_model=List[WalletTransactionResponse])
async def get_transactions(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_session),
    current_user: AuthUser = Depends(get_current_user),
):
    return await WalletService(session).get_transaction_history(current_user.id, limit=limit, offset=offset)


@router.get(
    "/users/{user_id}/balance",
    response_model=WalletBalance,
    dependencies=[Depends(require_internal_api_key)],
)
async def get_user_balance(
    user_id: str,
    session: AsyncSession = Depends(get_session),
):
    """Any user's wallet, for admin tooling."""
    return await WalletService(session).get_wallet_balance(user_id)


@router.post(
    "/credit-on-collection",
    response_model=CreditOnCollectionResponse,
    dependencies=[Depends(require_internal_api_key)],
)
async def credit_on_collection(
    data: CreditOnCollectionRequest,
    session: AsyncSession = Depends(get_session),
):
    """Called by the delivery webhook once the buyer has the book."""
    service = WalletService(session)
    try:
        result = await service.credit_wallet_on_collection(data.order_id, data.seller_id)
        await session.commit()
    except WalletServiceError as e:
        await session.rollback()
        _handle_service_error(e)
    return result


@router.post("/payouts", response_model=PayoutResponse)
async def request_payout(
    data: PayoutCreate,
    session: AsyncSession = Depends(get_session),
    current_user: AuthUser = Depends(get_current_user),
):
    service = WalletService(session)
    try:
        payout = await service.request_payout(current_user.id, data.amount)
        await session.commit()
    except WalletServiceError as e:
        await session.rollback()
        _handle_service_error(e)
    await session.refresh(payout)
    return payout


@router.post(
    "/payouts/{payout_id}/resolve",
    response_model=PayoutResponse,
    dependencies=[Depends(require_internal_api_key)],
)
async def resolve_payout(
    payout_id: str,
    data: PayoutResolve,
    session: AsyncSession = Depends(get_session),
):
    service = WalletService(session)
    try:
        payout = await service.resolve_payout(payout_id, data.approve, data.note)
        await session.commit()
    except WalletServiceError as e:
        await session.rollback()
        _handle_service_error(e)
    await session.refresh(payout)
    return payout
