# rebooked/app/services/banking.py
"""
Banking service - seller bank details and payout subaccounts.

A seller gets one subaccount code on first setup. The code is copied to the
profile and to the seller's listed books so checkout can route the split.
"""
import re
import secrets
from typing import Optional, Dict, Any

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from rebooked.app.core.base import utcnow
from rebooked.app.core.crypto import encrypt_secret, mask_account_number
from rebooked.app.core.exceptions import ServiceError
from rebooked.app.core.logging import get_logger
from rebooked.app.models.banking import BankingSubaccount
from rebooked.app.models.book import Book
from rebooked.app.models.user import Profile

logger = get_logger(__name__)

ACCOUNT_NUMBER_RE = re.compile(r"^\d{6,16}$")
REQUIRED_FIELDS = ("business_name", "email", "bank_name", "bank_code", "account_number")


class BankingServiceError(ServiceError):
    """Base exception for banking service errors."""


class InvalidBankingDetailsError(BankingServiceError):
    def __init__(self, message: str):
        super().__init__(message, 400)


class SubaccountNotFoundError(BankingServiceError):
    def __init__(self):
        super().__init__("No subaccount found for this user", 404)


def generate_subaccount_code() -> str:
    return f"ACCT_{secrets.token_hex(8)}"


def validate_banking_details(details: Dict[str, Any]) -> Dict[str, str]:
    """Strip whitespace and check required fields; returns the cleaned dict."""
    cleaned = {}
    for field in REQUIRED_FIELDS:
        value = str(details.get(field) or "").strip()
        if not value:
            raise InvalidBankingDetailsError(f"{field} is required")
        cleaned[field] = value
    cleaned["account_number"] = cleaned["account_number"].replace(" ", "")
    if not ACCOUNT_NUMBER_RE.match(cleaned["account_number"]):
        raise InvalidBankingDetailsError("Account number must be 6 to 16 digits")
    return cleaned


class BankingService:
    """Service class for banking and subaccount operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _latest_subaccount(self, subaccount_code: str) -> Optional[BankingSubaccount]:
        result = await self.session.execute(
            select(BankingSubaccount)
            .where(BankingSubaccount.subaccount_code == subaccount_code)
            .order_by(BankingSubaccount.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def save_banking_details(self, user_id: str, details: Dict[str, Any]) -> Dict[str, Any]:
        """
        Create or update the seller's banking record.

        The account number is stored encrypted; only the masked form is ever
        returned. Caller must commit the session.

        Raises:
            InvalidBankingDetailsError: Missing field or malformed account number
        """
        cleaned = validate_banking_details(details)

        profile = await self.session.get(Profile, user_id)
        if profile is None:
            raise BankingServiceError("Profile not found", 404)

        account_number = cleaned.pop("account_number")
        code = profile.subaccount_code
        record = await self._latest_subaccount(code) if code else None

        if record is None:
            code = code or generate_subaccount_code()
            record = BankingSubaccount(user_id=user_id, subaccount_code=code, **cleaned)
            self.session.add(record)
            created = True
        else:
            for field, value in cleaned.items():
                setattr(record, field, value)
            record.updated_at = utcnow()
            created = False

        record.account_number = mask_account_number(account_number)
        record.account_number_encrypted = encrypt_secret(account_number)
        await self.session.flush()

        await self.update_profile_subaccount(user_id, code)
        linked = await self.link_books_to_subaccount(user_id, code)

        logger.info(
            "Banking details saved",
            user_id=user_id,
            subaccount_code=code,
            created=created,
            books_linked=linked,
        )
        return {
            "success": True,
            "subaccount_code": code,
            "created": created,
            "books_linked": linked,
        }

    async def update_profile_subaccount(self, user_id: str, subaccount_code: str) -> bool:
        """Best-effort; a missing profile is logged, not raised."""
        try:
            profile = await self.session.get(Profile, user_id)
        except SQLAlchemyError as e:
            logger.warning("Could not load profile for subaccount update", user_id=user_id, error=str(e))
            return False
        if profile is None:
            logger.warning("Profile not found for subaccount update", user_id=user_id)
            return False
        profile.subaccount_code = subaccount_code
        await self.session.flush()
        return True

    async def link_books_to_subaccount(self, user_id: str, subaccount_code: Optional[str]) -> int:
        """Stamp the code on the seller's books that have none; returns rows updated."""
        if not user_id or not subaccount_code:
            logger.warning("Cannot link books without user and subaccount code", user_id=user_id)
            return 0
        result = await self.session.execute(
            update(Book)
            .where(Book.seller_id == user_id, Book.seller_subaccount_code.is_(None))
            .values(seller_subaccount_code=subaccount_code)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    async def get_user_subaccount_code(self, user_id: str) -> Optional[str]:
        result = await self.session.execute(
            select(Profile.subaccount_code).where(Profile.id == user_id)
        )
        return result.scalar_one_or_none()

    async def get_complete_subaccount_info(self, user_id: str) -> Dict[str, Any]:
        """
        Everything known about the user's subaccount.

        Raises:
            SubaccountNotFoundError: If the user has no subaccount code
        """
        profile = await self.session.get(Profile, user_id)
        if profile is None or not profile.subaccount_code:
            raise SubaccountNotFoundError()

        record = await self._latest_subaccount(profile.subaccount_code)
        banking_details = None
        if record is not None:
            banking_details = {
                "business_name": record.business_name,
                "email": record.email,
                "bank_name": record.bank_name,
                "bank_code": record.bank_code,
                "account_number": record.account_number,
                "status": record.status,
                "created_at": record.created_at,
                "updated_at": record.updated_at,
            }
        return {
            "subaccount_code": profile.subaccount_code,
            "banking_details": banking_details,
            "paystack_data": record.paystack_response if record is not None else None,
            "profile_preferences": profile.preferences or {},
        }

    async def get_user_subaccount_status(self, user_id: str) -> Dict[str, Any]:
        """Display summary of the seller's banking setup."""
        try:
            profile = await self.session.get(Profile, user_id)
            if profile is None or not profile.subaccount_code:
                return {"has_subaccount": False, "can_edit": False}
            record = await self._latest_subaccount(profile.subaccount_code)
        except SQLAlchemyError as e:
            logger.error("Error reading subaccount status", user_id=user_id, error=str(e))
            return {"has_subaccount": False, "can_edit": False}

        if record is None:
            # Code issued but the banking row is missing; show what the profile has
            preferences = profile.preferences or {}
            bank_details = preferences.get("bank_details") or {}
            return {
                "has_subaccount": True,
                "subaccount_code": profile.subaccount_code,
                "business_name": preferences.get("business_name") or "Please complete banking setup",
                "bank_name": bank_details.get("bank_name") or "Banking details incomplete",
                "account_number": bank_details.get("account_number") or "Not available",
                "email": profile.email or "Please update",
                "can_edit": True,
            }

        return {
            "has_subaccount": True,
            "subaccount_code": record.subaccount_code,
            "business_name": record.business_name,
            "bank_name": record.bank_name,
            "account_number": record.account_number,
            "email": record.email,
            "can_edit": True,
        }
