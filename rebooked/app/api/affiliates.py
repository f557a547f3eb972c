from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from rebooked.app.api.deps import get_session
from rebooked.app.core.auth import AuthUser, get_current_user, require_internal_api_key
from rebooked.app.core.limiter import limiter
from rebooked.app.core.logging import get_logger
from rebooked.app.schemas import AffiliateEarningRequest, AffiliateSummary, TrackReferralRequest
from rebooked.app.services.affiliates import AffiliateService, AffiliateServiceError

router = APIRouter()
logger = get_logger(__name__)


@router.post("/track-referral")
@limiter.limit("30/minute")
async def track_referral(
    request: Request,
    data: TrackReferralRequest,
    session: AsyncSession = Depends(get_session),
):
    """Called by the signup flow with the code from the referral link."""
    service = AffiliateService(session)
    try:
        result = await service.track_referral(data.affiliate_code, data.new_user_id)
        await session.commit()
    except AffiliateServiceError as e:
        await session.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except IntegrityError:
        # Concurrent signup request already stored the referral
        await session.rollback()
        return {"message": "User already has a referrer"}
    return result


@router.post("/earnings", dependencies=[Depends(require_internal_api_key)])
async def process_affiliate_earning(
    data: AffiliateEarningRequest,
    session: AsyncSession = Depends(get_session),
):
    service = AffiliateService(session)
    try:
        result = await service.process_affiliate_earning(data.book_id, data.order_id, data.seller_id)
        await session.commit()
    except IntegrityError:
        await session.rollback()
        return {"message": "Earning already processed"}
    return result


@router.get("/me", response_model=AffiliateSummary)
async def get_my_affiliate_summary(
    session: AsyncSession = Depends(get_session),
    current_user: AuthUser = Depends(get_current_user),
):
    return await AffiliateService(session).get_affiliate_summary(current_user.id)
