from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from rebooked.app.api.deps import get_session
from rebooked.app.core.auth import AuthUser, get_current_user
from rebooked.app.schemas import NotificationResponse
from rebooked.app.services.notifications import (
    NotificationNotFoundError,
    list_notifications,
    mark_read,
    unread_count,
)

router = APIRouter()


@router.get("", response_model=List[NotificationResponse])
async def get_notifications(
    unread_only: bool = False,
    limit: int = Query(50, ge=1, le=200),
    session: AsyncSession = Depends(get_session),
    current_user: AuthUser = Depends(get_current_user),
):
    return await list_notifications(session, current_user.id, unread_only=unread_only, limit=limit)


@router.get("/unread-count")
async def get_unread_count(
    session: AsyncSession = Depends(get_session),
    current_user: AuthUser = Depends(get_current_user),
):
    return {"unread": await unread_count(session, current_user.id)}


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def read_notification(
    notification_id: str,
    session: AsyncSession = Depends(get_session),
    current_user: AuthUser = Depends(get_current_user),
):
    try:
        notification = await mark_read(session, notification_id, current_user.id)
        await session.commit()
    except NotificationNotFoundError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    await session.refresh(notification)
    return notification
