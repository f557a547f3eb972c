from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from rebooked.app.api.deps import get_session, get_cache
from rebooked.app.core.auth import AuthUser, get_current_user
from rebooked.app.core.constants import LOCKER_KINDS
from rebooked.app.schemas import ListingRequirements, LockerSave
from rebooked.app.services.cache import CacheService
from rebooked.app.services.lockers import LockerService, LockerServiceError

router = APIRouter()


def _handle_service_error(e: LockerServiceError):
    raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/search")
async def search_lockers(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    radius_km: Optional[float] = Query(None, gt=0, le=50),
    cache: CacheService = Depends(get_cache),
):
    """BobGo lockers near a point (public, cached)."""
    service = LockerService(cache=cache)
    return await service.search_lockers(lat, lng, radius_km)


@router.get("/saved")
async def get_saved_lockers(
    session: AsyncSession = Depends(get_session),
    current_user: AuthUser = Depends(get_current_user),
):
    try:
        return await LockerService(session).get_saved_lockers(current_user.id)
    except LockerServiceError as e:
        _handle_service_error(e)


@router.get("/saved/{kind}")
async def get_saved_locker(
    kind: str,
    session: AsyncSession = Depends(get_session),
    current_user: AuthUser = Depends(get_current_user),
):
    try:
        saved = await LockerService(session).get_saved_lockers(current_user.id)
    except LockerServiceError as e:
        _handle_service_error(e)
    if kind not in LOCKER_KINDS:
        raise HTTPException(status_code=400, detail=f"Unknown locker kind: {kind}")
    return {"kind": kind, "locker": saved[kind], "saved_at": saved[f"{kind}_saved_at"]}


@router.put("/saved/{kind}")
async def save_locker(
    data: LockerSave,
    kind: str,
    session: AsyncSession = Depends(get_session),
    current_user: AuthUser = Depends(get_current_user),
):
    service = LockerService(session)
    try:
        result = await service.save_locker(current_user.id, data.locker, kind=kind, replace=data.replace)
        await session.commit()
    except LockerServiceError as e:
        await session.rollback()
        _handle_service_error(e)
    return result


@router.delete("/saved/{kind}")
async def remove_locker(
    kind: str,
    session: AsyncSession = Depends(get_session),
    current_user: AuthUser = Depends(get_current_user),
):
    service = LockerService(session)
    try:
        await service.remove_locker(current_user.id, kind=kind)
        await session.commit()
    except LockerServiceError as e:
        await session.rollback()
        _handle_service_error(e)
    return {"success": True, "kind": kind}


@router.get("/requirements", response_model=ListingRequirements)
async def get_listing_requirements(
    session: AsyncSession = Depends(get_session),
    current_user: AuthUser = Depends(get_current_user),
):
    return await LockerService(session).check_listing_requirements(current_user.id)
