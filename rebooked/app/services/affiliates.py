# rebooked/app/services/affiliates.py
"""
Affiliate service - who referred whom, and the flat fee an affiliate earns
on each sale made by a seller they referred.
"""
from typing import Optional, Dict, Any

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from rebooked.app.core.exceptions import ServiceError
from rebooked.app.core.logging import get_logger
from rebooked.app.core.metrics import affiliate_earnings_total
from rebooked.app.core.settings import get_settings
from rebooked.app.models.affiliate import AffiliateReferral, AffiliateEarning
from rebooked.app.models.user import Profile

logger = get_logger(__name__)


class AffiliateServiceError(ServiceError):
    """Base exception for affiliate service errors."""


class InvalidAffiliateCodeError(AffiliateServiceError):
    def __init__(self):
        super().__init__("Invalid affiliate code", 404)


def referral_to_dict(referral: AffiliateReferral) -> Dict[str, Any]:
    return {
        "id": referral.id,
        "affiliate_id": referral.affiliate_id,
        "referred_user_id": referral.referred_user_id,
        "created_at": referral.created_at,
    }


class AffiliateService:
    """Service class for affiliate operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_referral(self, referred_user_id: str) -> Optional[AffiliateReferral]:
        result = await self.session.execute(
            select(AffiliateReferral).where(AffiliateReferral.referred_user_id == referred_user_id)
        )
        return result.scalar_one_or_none()

    async def track_referral(self, affiliate_code: str, new_user_id: str) -> Dict[str, Any]:
        """
        Link a new user to the affiliate whose code they signed up with.
        A user's referrer is set once and never changes.

        Raises:
            InvalidAffiliateCodeError: No active affiliate has this code
        """
        logger.info("Tracking referral", affiliate_code=affiliate_code, new_user_id=new_user_id)

        result = await self.session.execute(
            select(Profile.id)
            .where(
                func.lower(Profile.affiliate_code) == (affiliate_code or "").strip().lower(),
                Profile.is_affiliate.is_(True),
            )
            .limit(1)
        )
        affiliate_id = result.scalar_one_or_none()
        if affiliate_id is None:
            logger.warning("Affiliate not found for code", affiliate_code=affiliate_code)
            raise InvalidAffiliateCodeError()

        if await self.get_referral(new_user_id) is not None:
            logger.info("User already referred", new_user_id=new_user_id)
            return {"message": "User already has a referrer"}

        referral = AffiliateReferral(affiliate_id=affiliate_id, referred_user_id=new_user_id)
        self.session.add(referral)
        await self.session.flush()

        logger.info("Referral created", referral_id=referral.id, affiliate_id=affiliate_id)
        return {"success": True, "referral": referral_to_dict(referral)}

    async def process_affiliate_earning(
        self,
        book_id: Optional[str],
        order_id: str,
        seller_id: str,
    ) -> Dict[str, Any]:
        """Record the affiliate's fee for a referred seller's sale (once per order)."""
        referral = await self.get_referral(seller_id)
        if referral is None:
            logger.info("Seller not referred, no affiliate earning", seller_id=seller_id)
            return {"message": "Seller not referred"}

        existing = await self.session.execute(
            select(AffiliateEarning.id).where(AffiliateEarning.order_id == order_id)
        )
        if existing.first() is not None:
            logger.info("Earning already processed", order_id=order_id)
            return {"message": "Earning already processed"}

        earning = AffiliateEarning(
            affiliate_id=referral.affiliate_id,
            referred_user_id=seller_id,
            book_id=book_id,
            order_id=order_id,
            amount=get_settings().AFFILIATE_EARNING_AMOUNT,
        )
        self.session.add(earning)
        await self.session.flush()

        affiliate_earnings_total.inc()
        logger.info(
            "Affiliate earning created",
            earning_id=earning.id,
            affiliate_id=referral.affiliate_id,
            order_id=order_id,
        )
        return {
            "success": True,
            "earning": {
                "id": earning.id,
                "affiliate_id": earning.affiliate_id,
                "referred_user_id": earning.referred_user_id,
                "book_id": earning.book_id,
                "order_id": earning.order_id,
                "amount": earning.amount,
            },
        }

    async def get_affiliate_summary(self, affiliate_id: str) -> Dict[str, Any]:
        referrals = await self.session.execute(
            select(func.count(AffiliateReferral.id)).where(AffiliateReferral.affiliate_id == affiliate_id)
        )
        earnings = await self.session.execute(
            select(
                func.count(AffiliateEarning.id),
                func.coalesce(func.sum(AffiliateEarning.amount), 0),
            ).where(AffiliateEarning.affiliate_id == affiliate_id)
        )
        earnings_count, total_earned = earnings.one()
        return {
            "affiliate_id": affiliate_id,
            "referral_count": referrals.scalar_one(),
            "earnings_count": earnings_count,
            "total_earned": total_earned,
        }
