"""
Tests for in-app notifications.
"""
import pytest
from httpx import AsyncClient
from unittest.mock import patch

from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from rebooked.app.models.order import Order, OrderNotification
from rebooked.app.models.user import Profile
from rebooked.app.services.notifications import (
    NotificationNotFoundError,
    list_notifications,
    mark_read,
    notify,
    unread_count,
)
from rebooked.tests.conftest import auth_header


def _note(user_id: str, order_id=None, **overrides):
    return {
        "order_id": order_id,
        "user_id": user_id,
        "type": "order_cancelled",
        "title": "Order Cancelled",
        "message": "Your order has been cancelled and refunded.",
        **overrides,
    }


@pytest.mark.asyncio
async def test_notify_skips_rows_without_user(test_session: AsyncSession, buyer: Profile):
    assert await notify(test_session, [_note(None)]) is False
    assert await notify(test_session, [_note(buyer.id), _note(None)]) is True
    await test_session.commit()

    assert len(await list_notifications(test_session, buyer.id)) == 1


@pytest.mark.asyncio
async def test_notify_failure_is_swallowed(test_session: AsyncSession, buyer: Profile, order: Order):
    error = OperationalError("INSERT", {}, Exception("disk full"))
    with patch.object(test_session, "add_all", side_effect=error):
        assert await notify(test_session, [_note(buyer.id, order.id)]) is False

    # Caller's transaction is still usable
    order.cancellation_reason = "still works"
    await test_session.commit()
    await test_session.refresh(order)
    assert order.cancellation_reason == "still works"


@pytest.mark.asyncio
async def test_unread_and_mark_read(test_session: AsyncSession, buyer: Profile, seller: Profile):
    await notify(test_session, [_note(buyer.id), _note(buyer.id, title="Second")])
    await test_session.commit()

    assert await unread_count(test_session, buyer.id) == 2
    first = (await list_notifications(test_session, buyer.id))[0]

    await mark_read(test_session, first.id, buyer.id)
    await test_session.commit()
    assert await unread_count(test_session, buyer.id) == 1
    assert len(await list_notifications(test_session, buyer.id, unread_only=True)) == 1

    with pytest.raises(NotificationNotFoundError):
        await mark_read(test_session, first.id, seller.id)


@pytest.mark.asyncio
async def test_notifications_api(
    client: AsyncClient,
    test_session: AsyncSession,
    buyer: Profile,
    seller: Profile,
):
    test_session.add(OrderNotification(**_note(buyer.id)))
    await test_session.commit()

    response = await client.get("/notifications", headers=auth_header(buyer.id))
    assert response.status_code == 200
    notifications = response.json()
    assert len(notifications) == 1
    assert notifications[0]["read"] is False

    note_id = notifications[0]["id"]
    response = await client.post(f"/notifications/{note_id}/read", headers=auth_header(seller.id))
    assert response.status_code == 404

    response = await client.post(f"/notifications/{note_id}/read", headers=auth_header(buyer.id))
    assert response.status_code == 200
    assert response.json()["read"] is True

    response = await client.get("/notifications/unread-count", headers=auth_header(buyer.id))
    assert response.json() == {"unread": 0}
