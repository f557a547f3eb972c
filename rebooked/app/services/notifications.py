# rebooked/app/services/notifications.py
"""In-app order notifications for buyers and sellers."""
from typing import List, Dict, Any

from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from rebooked.app.core.exceptions import ServiceError
from rebooked.app.core.logging import get_logger
from rebooked.app.models.order import OrderNotification

logger = get_logger(__name__)


class NotificationNotFoundError(ServiceError):
    def __init__(self, notification_id: str):
        super().__init__(f"Notification {notification_id} not found", 404)


async def notify(
    session: AsyncSession,
    notifications: List[Dict[str, Any]],
) -> bool:
    """
    Insert notification rows (``order_id``, ``user_id``, ``type``, ``title``, ``message``).

    Best-effort: runs in a SAVEPOINT so a failed insert leaves the caller's
    transaction usable. Returns False if nothing was written.
    """
    rows = [n for n in notifications if n.get("user_id")]
    if not rows:
        return False
    try:
        async with session.begin_nested():
            session.add_all([OrderNotification(**row) for row in rows])
    except SQLAlchemyError as e:
        logger.error(
            "Failed to create notifications",
            types=[row.get("type") for row in rows],
            order_id=rows[0].get("order_id"),
            error=str(e),
        )
        return False
    return True


async def list_notifications(
    session: AsyncSession,
    user_id: str,
    unread_only: bool = False,
    limit: int = 50,
) -> List[OrderNotification]:
    query = select(OrderNotification).where(OrderNotification.user_id == user_id)
    if unread_only:
        query = query.where(OrderNotification.read.is_(False))
    query = query.order_by(OrderNotification.created_at.desc()).limit(limit)
    result = await session.execute(query)
    return list(result.scalars().all())


async def mark_read(session: AsyncSession, notification_id: str, user_id: str) -> OrderNotification:
    notification = await session.get(OrderNotification, notification_id)
    # Someone else's notification is reported as missing
    if notification is None or notification.user_id != user_id:
        raise NotificationNotFoundError(notification_id)
    notification.read = True
    await session.flush()
    return notification


async def unread_count(session: AsyncSession, user_id: str) -> int:
    result = await session.execute(
        select(func.count(OrderNotification.id)).where(
            OrderNotification.user_id == user_id,
            OrderNotification.read.is_(False),
        )
    )
    return result.scalar_one()
