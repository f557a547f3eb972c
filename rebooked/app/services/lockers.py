# rebooked/app/services/lockers.py
"""
Locker service - BobGo pickup-point search, saved lockers and the
"can this user list books" check.
"""
import math
from typing import Optional, Dict, Any, List

from redis.exceptions import RedisError
from sqlalchemy.ext.asyncio import AsyncSession

from rebooked.app.core.base import utcnow
from rebooked.app.core.constants import KM_PER_DEGREE_LAT, LOCKER_KINDS
from rebooked.app.core.exceptions import ServiceError
from rebooked.app.core.logging import get_logger
from rebooked.app.core.settings import get_settings
from rebooked.app.models.user import Profile
from rebooked.app.services.bobgo import BobGoClient, BobGoError
from rebooked.app.services.cache import CacheService

logger = get_logger(__name__)


class LockerServiceError(ServiceError):
    """Base exception for locker service errors."""


class InvalidLockerError(LockerServiceError):
    def __init__(self, message: str):
        super().__init__(message, 400)


class LockerAlreadySavedError(LockerServiceError):
    def __init__(self, kind: str, existing_name: Optional[str]):
        super().__init__(
            f"You already have a saved {kind} locker ({existing_name or 'unnamed'}). "
            "Replace it to save a new one.",
            409,
        )
        self.existing_name = existing_name


def calculate_bounding_box(lat: float, lng: float, radius_km: float = 5) -> Dict[str, float]:
    """Box of ``radius_km`` around a point; longitude degrees shrink with latitude."""
    lat_offset = radius_km / KM_PER_DEGREE_LAT
    lng_offset = radius_km / (KM_PER_DEGREE_LAT * math.cos(math.radians(lat)))
    return {
        "min_lat": lat - lat_offset,
        "max_lat": lat + lat_offset,
        "min_lng": lng - lng_offset,
        "max_lng": lng + lng_offset,
    }


def _locker_columns(kind: str):
    if kind not in LOCKER_KINDS:
        raise InvalidLockerError(f"Unknown locker kind: {kind}")
    return f"preferred_{kind}_locker_data", f"preferred_{kind}_locker_saved_at"


def is_complete_locker(locker: Optional[Dict[str, Any]]) -> bool:
    return bool(locker and locker.get("id") and locker.get("name"))


def has_complete_pickup_address(address: Optional[Dict[str, Any]]) -> bool:
    return bool(address and address.get("street") and address.get("city"))


class LockerService:
    """Service class for locker operations."""

    def __init__(
        self,
        session: Optional[AsyncSession] = None,
        cache: Optional[CacheService] = None,
        bobgo: Optional[BobGoClient] = None,
    ):
        self.session = session
        self.cache = cache
        self.bobgo = bobgo or BobGoClient()

    async def _get_profile(self, user_id: str) -> Profile:
        profile = await self.session.get(Profile, user_id)
        if profile is None:
            raise LockerServiceError("Profile not found", 404)
        return profile

    # -- Search ---------------------------------------------------------------

    async def search_lockers(self, lat: float, lng: float, radius_km: Optional[float] = None) -> List[Dict[str, Any]]:
        """Lockers near a point. Failures are logged and give an empty list."""
        settings = get_settings()
        bounds = calculate_bounding_box(lat, lng, radius_km or settings.LOCKER_SEARCH_RADIUS_KM)

        if self.cache is not None:
            try:
                cached = await self.cache.get_lockers(bounds)
            except RedisError as e:
                logger.warning("Locker cache read failed", error=str(e))
                cached = None
            if cached is not None:
                return cached

        try:
            lockers = await self.bobgo.get_locations(bounds)
        except BobGoError as e:
            logger.error("Failed to fetch BobGo locations", error=e.message, status_code=e.status_code)
            return []

        if self.cache is not None:
            try:
                await self.cache.set_lockers(bounds, lockers, ttl=settings.LOCKER_CACHE_TTL)
            except RedisError as e:
                logger.warning("Locker cache write failed", error=str(e))
        return lockers

    # -- Saved lockers --------------------------------------------------------

    async def get_saved_lockers(self, user_id: str) -> Dict[str, Any]:
        profile = await self._get_profile(user_id)
        return {
            "delivery": profile.preferred_delivery_locker_data,
            "delivery_saved_at": profile.preferred_delivery_locker_saved_at,
            "pickup": profile.preferred_pickup_locker_data,
            "pickup_saved_at": profile.preferred_pickup_locker_saved_at,
        }

    async def save_locker(
        self,
        user_id: str,
        locker: Dict[str, Any],
        kind: str = "delivery",
        replace: bool = False,
    ) -> Dict[str, Any]:
        """
        Save a locker as the user's preferred delivery or pickup point.

        Raises:
            InvalidLockerError: Unknown kind, or the locker has no id/name
            LockerAlreadySavedError: One is already saved and ``replace`` is false
        """
        data_column, saved_at_column = _locker_columns(kind)
        if not is_complete_locker(locker):
            raise InvalidLockerError("Locker must have an id and a name")

        profile = await self._get_profile(user_id)
        existing = getattr(profile, data_column)
        if existing and not replace:
            raise LockerAlreadySavedError(kind, existing.get("name"))

        setattr(profile, data_column, dict(locker))
        setattr(profile, saved_at_column, utcnow())
        await self.session.flush()

        logger.info("Locker saved", user_id=user_id, kind=kind, locker_id=locker.get("id"), replaced=bool(existing))
        return {"kind": kind, "locker": getattr(profile, data_column), "saved_at": getattr(profile, saved_at_column)}

    async def remove_locker(self, user_id: str, kind: str = "delivery") -> None:
        data_column, saved_at_column = _locker_columns(kind)
        profile = await self._get_profile(user_id)
        setattr(profile, data_column, None)
        setattr(profile, saved_at_column, None)
        await self.session.flush()
        logger.info("Locker removed", user_id=user_id, kind=kind)

    # -- Listing requirements -------------------------------------------------

    async def check_listing_requirements(self, user_id: str) -> Dict[str, Any]:
        """
        A seller can list once they have a saved delivery locker or a pickup
        address. Banking is no longer required to list.
        """
        profile = await self.session.get(Profile, user_id)
        has_saved_locker = profile is not None and is_complete_locker(profile.preferred_delivery_locker_data)
        has_pickup_address = profile is not None and has_complete_pickup_address(profile.pickup_address)
        can_list = has_saved_locker or has_pickup_address

        missing = []
        if not can_list:
            if not has_saved_locker:
                missing.append("Locker saved OR ")
            if not has_pickup_address:
                missing.append("Pickup address required")

        return {
            "has_banking_info": True,
            "has_pickup_address": has_pickup_address,
            "has_saved_locker": has_saved_locker,
            "is_verified": True,
            "can_list_books": can_list,
            "missing_requirements": missing,
        }
