from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from rebooked.app.api.deps import get_session
from rebooked.app.core.auth import AuthUser, get_current_user
from rebooked.app.core.crypto import EncryptionNotConfiguredError
from rebooked.app.core.logging import get_logger
from rebooked.app.schemas import BankingDetailsIn, BankingSaveResponse, SubaccountStatus
from rebooked.app.services.banking import BankingService, BankingServiceError

router = APIRouter()
logger = get_logger(__name__)


@router.put("/details", response_model=BankingSaveResponse)
async def save_banking_details(
    data: BankingDetailsIn,
    session: AsyncSession = Depends(get_session),
    current_user: AuthUser = Depends(get_current_user),
):
    service = BankingService(session)
    try:
        result = await service.save_banking_details(current_user.id, data.model_dump())
        await session.commit()
    except BankingServiceError as e:
        await session.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except EncryptionNotConfiguredError:
        await session.rollback()
        logger.error("Banking encryption key missing, cannot store account number")
        raise HTTPException(status_code=500, detail="Server configuration error: banking encryption not set")
    return result


@router.get("/status", response_model=SubaccountStatus)
async def get_banking_status(
    session: AsyncSession = Depends(get_session),
    current_user: AuthUser = Depends(get_current_user),
):
    return await BankingService(session).get_user_subaccount_status(current_user.id)


@router.get("/subaccount")
async def get_subaccount(
    session: AsyncSession = Depends(get_session),
    current_user: AuthUser = Depends(get_current_user),
):
    try:
        return await BankingService(session).get_complete_subaccount_info(current_user.id)
    except BankingServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
