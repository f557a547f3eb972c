"""
Tests for forced refunds (BobPay reversal with manual fallback).
"""
import json
import pytest
import httpx
from httpx import AsyncClient
from decimal import Decimal
from unittest.mock import patch

from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from rebooked.app.models.order import Order
from rebooked.app.models.payment import PaymentTransaction, RefundTransaction
from rebooked.app.models.user import Profile
from rebooked.app.services.bobpay import BobPayClient
from rebooked.app.services.refunds import (
    RefundService,
    RefundFailedError,
    RefundOrderNotFoundError,
    extract_gateway_payment_id,
)
from rebooked.tests.conftest import INTERNAL_HEADERS, auth_header


def _bobpay(handler) -> BobPayClient:
    return BobPayClient(
        api_url="https://bobpay.test/v2/",
        api_token="bp-token",
        transport=httpx.MockTransport(handler),
    )


async def _refund_rows(session: AsyncSession, order_id: str):
    result = await session.execute(
        select(RefundTransaction).where(RefundTransaction.order_id == order_id)
    )
    return list(result.scalars().all())


# --- API ---

@pytest.mark.asyncio
async def test_refund_requires_internal_key(client: AsyncClient, order: Order):
    response = await client.post("/refunds", json={"order_id": order.id})
    assert response.status_code == 401

    response = await client.post(
        "/refunds", json={"order_id": order.id}, headers={"X-Internal-Key": "wrong"}
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_forced_refund_ignores_order_status(
    client: AsyncClient,
    test_session: AsyncSession,
    admin: Profile,
    order: Order,
):
    order.status = "delivered"
    await test_session.commit()

    response = await client.post(
        "/refunds",
        json={"order_id": order.id, "reason": "Damaged on arrival"},
        headers={**INTERNAL_HEADERS, **auth_header(admin.id)},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "success"
    assert data["refund_method"] == "manual"
    assert Decimal(data["amount"]) == Decimal("250.00")
    assert data["message"] == "Refund processed successfully - forced regardless of status"

    await test_session.refresh(order)
    assert order.status == "refunded"
    assert order.refund_status == "completed"

    rows = await _refund_rows(test_session, order.id)
    assert len(rows) == 1
    assert rows[0].id == data["refund_id"]
    assert rows[0].reason == "Damaged on arrival"
    assert rows[0].initiated_by == admin.id
    assert rows[0].transaction_reference == "PAY-REF-001"
    assert rows[0].provider_refund_reference.startswith("manual-")
    assert rows[0].provider_response["forced_refund"] is True
    assert rows[0].provider_response["manual_refund"] is True


@pytest.mark.asyncio
async def test_refund_unknown_order(client: AsyncClient):
    response = await client.post("/refunds", json={"order_id": "missing"}, headers=INTERNAL_HEADERS)

    assert response.status_code == 404
    assert response.json()["detail"] == "Order not found"


@pytest.mark.asyncio
async def test_refund_failure_keeps_audit_row(
    client: AsyncClient,
    test_session: AsyncSession,
    order: Order,
):
    error = OperationalError("UPDATE orders", {}, Exception("database is locked"))
    with patch.object(RefundService, "_refund_order", side_effect=error):
        response = await client.post("/refunds", json={"order_id": order.id}, headers=INTERNAL_HEADERS)

    assert response.status_code == 500
    assert response.json()["detail"] == "Refund could not be recorded: OperationalError"

    response = await client.get(f"/refunds/{order.id}", headers=INTERNAL_HEADERS)
    assert response.status_code == 200
    rows = response.json()
    assert len(rows) == 1
    assert rows[0]["status"] == "failed"
    assert Decimal(rows[0]["amount"]) == Decimal("0")
    assert rows[0]["transaction_reference"].startswith("failed-")

    await test_session.refresh(order)
    assert order.status == "pending"


# --- Service ---

@pytest.mark.asyncio
async def test_refund_through_bobpay(
    test_session: AsyncSession,
    order: Order,
    payment: PaymentTransaction,
):
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={
            "id": 555,
            "status": "reversed",
            "payment_method": {"merchant_reference": "MR-555"},
        })

    service = RefundService(test_session, bobpay=_bobpay(handler))
    result = await service.process_refund(order.id)
    await test_session.commit()

    assert result["refund_method"] == "bobpay_api"
    assert len(requests) == 1
    assert str(requests[0].url) == "https://bobpay.test/v2/payments/reversal"
    assert json.loads(requests[0].content) == {"id": 98765}
    assert requests[0].headers["Authorization"] == "Bearer bp-token"

    rows = await _refund_rows(test_session, order.id)
    assert rows[0].provider_refund_reference == "MR-555"
    assert rows[0].provider_response["provider"] == "bobpay"
    assert rows[0].reason == "Forced refund - processed regardless of status"


@pytest.mark.asyncio
async def test_explicit_payment_id_wins(
    test_session: AsyncSession,
    order: Order,
    payment: PaymentTransaction,
):
    bodies = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={"id": 1})

    service = RefundService(test_session, bobpay=_bobpay(handler))
    await service.process_refund(order.id, payment_id="explicit-1")

    assert bodies == [{"id": "explicit-1"}]


@pytest.mark.asyncio
async def test_bobpay_rejection_falls_back_to_manual(
    test_session: AsyncSession,
    order: Order,
    payment: PaymentTransaction,
):
    service = RefundService(
        test_session,
        bobpay=_bobpay(lambda request: httpx.Response(422, text='{"error":"already reversed"}')),
    )
    result = await service.process_refund(order.id)
    await test_session.commit()

    assert result["refund_method"] == "manual"
    assert result["status"] == "success"

    rows = await _refund_rows(test_session, order.id)
    assert rows[0].provider_response["reason"] == "BobPay API failed, processed manually"
    assert "already reversed" in rows[0].provider_response["error"]

    await test_session.refresh(order)
    assert order.status == "refunded"


@pytest.mark.asyncio
async def test_bobpay_unreachable_falls_back_to_manual(
    test_session: AsyncSession,
    order: Order,
    payment: PaymentTransaction,
):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    service = RefundService(test_session, bobpay=_bobpay(handler))
    result = await service.process_refund(order.id)

    assert result["refund_method"] == "manual"


@pytest.mark.asyncio
async def test_no_payment_id_skips_gateway(test_session: AsyncSession, order: Order):
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("gateway must not be called")

    service = RefundService(test_session, bobpay=_bobpay(handler))
    result = await service.process_refund(order.id)
    await test_session.commit()

    assert result["refund_method"] == "manual"
    rows = await _refund_rows(test_session, order.id)
    assert rows[0].provider_response["reason"] == "BobPay credentials not configured, processed manually"


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [
    {"id": 1, "payment_method": "eft"},
    [{"id": 1}],
])
async def test_unusual_bobpay_body_still_recorded(
    test_session: AsyncSession,
    order: Order,
    payment: PaymentTransaction,
    body,
):
    service = RefundService(test_session, bobpay=_bobpay(lambda request: httpx.Response(200, json=body)))
    result = await service.process_refund(order.id)
    await test_session.commit()

    assert result["refund_method"] == "bobpay_api"

    rows = await _refund_rows(test_session, order.id)
    assert len(rows) == 1
    assert rows[0].status == "success"
    assert rows[0].provider_refund_reference.startswith("manual-")

    await test_session.refresh(order)
    assert order.status == "refunded"


@pytest.mark.asyncio
async def test_bobpay_non_json_reply_falls_back_to_manual(
    test_session: AsyncSession,
    order: Order,
    payment: PaymentTransaction,
):
    service = RefundService(test_session, bobpay=_bobpay(lambda request: httpx.Response(200, text="OK")))
    result = await service.process_refund(order.id)
    await test_session.commit()

    assert result["refund_method"] == "manual"
    rows = await _refund_rows(test_session, order.id)
    assert rows[0].provider_response["reason"] == "BobPay API call failed, processed manually"


@pytest.mark.asyncio
async def test_unexpected_error_records_failed_refund(test_session: AsyncSession, order: Order):
    service = RefundService(test_session)
    with patch.object(RefundService, "_call_gateway", side_effect=RuntimeError("bad gateway payload")):
        with pytest.raises(RefundFailedError) as exc:
            await service.process_refund(order.id)
    await test_session.commit()

    assert exc.value.message == "Refund could not be recorded: RuntimeError"

    rows = await _refund_rows(test_session, order.id)
    assert [row.status for row in rows] == ["failed"]

    await test_session.refresh(order)
    assert order.status == "pending"


@pytest.mark.asyncio
async def test_refund_order_not_found(test_session: AsyncSession):
    with pytest.raises(RefundOrderNotFoundError):
        await RefundService(test_session).process_refund("missing")


def test_extract_gateway_payment_id():
    assert extract_gateway_payment_id(PaymentTransaction(bobpay_response={"id": 7})) == 7
    assert extract_gateway_payment_id(PaymentTransaction(paystack_response={"payment_id": "p"})) == "p"
    assert extract_gateway_payment_id(PaymentTransaction()) is None
