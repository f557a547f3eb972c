"""
Tests for the seller wallet: balances, credit on collection and payouts.
"""
import pytest
from httpx import AsyncClient
from decimal import Decimal

from unittest.mock import patch

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from rebooked.app.models.affiliate import AffiliateEarning, AffiliateReferral
from rebooked.app.models.order import Order, OrderNotification
from rebooked.app.models.user import Profile
from rebooked.app.models.wallet import Wallet, WalletTransaction, PayoutRequest
from rebooked.app.services.wallet import (
    WalletService,
    AlreadyCreditedError,
    OrderNotCreditableError,
    WalletAccessDeniedError,
    WalletOrderNotFoundError,
    InvalidPayoutError,
    cents_to_rands,
    seller_credit_cents,
    transaction_type_label,
)
from rebooked.tests.conftest import INTERNAL_HEADERS, auth_header


@pytest.fixture
async def funded_seller(test_session: AsyncSession, seller: Profile) -> Profile:
    """Seller with banking set up and R500.00 available."""
    seller.subaccount_code = "ACCT_test"
    test_session.add(Wallet(user_id=seller.id, available_balance=50000, pending_balance=0, total_earned=50000))
    await test_session.commit()
    return seller


# --- Helpers ---

def test_cents_to_rands_floors():
    assert cents_to_rands(12399) == 123
    assert cents_to_rands(99) == 0
    assert cents_to_rands(None) == 0


def test_seller_credit_rounds_half_up():
    assert seller_credit_cents(Decimal("250.00"), Decimal("10")) == 22500
    # 90% of 0.05 is 0.045 -> 0.05
    assert seller_credit_cents(Decimal("0.05"), Decimal("10")) == 5
    assert seller_credit_cents(Decimal("99.99"), Decimal("10")) == 8999


def test_transaction_labels():
    assert transaction_type_label("credit") == "Credited"
    assert transaction_type_label("hold") == "On Hold"
    assert transaction_type_label("bonus") == "bonus"


# --- Balance and history ---

@pytest.mark.asyncio
async def test_balance_without_wallet_is_zero(client: AsyncClient, buyer: Profile):
    response = await client.get("/wallet/balance", headers=auth_header(buyer.id))

    assert response.status_code == 200
    assert response.json() == {"available_balance": 0, "pending_balance": 0, "total_earned": 0}


@pytest.mark.asyncio
async def test_balance_in_whole_rands(
    client: AsyncClient,
    test_session: AsyncSession,
    seller: Profile,
):
    test_session.add(Wallet(user_id=seller.id, available_balance=12399, pending_balance=150, total_earned=20001))
    await test_session.commit()

    response = await client.get("/wallet/balance", headers=auth_header(seller.id))

    assert response.json() == {"available_balance": 123, "pending_balance": 1, "total_earned": 200}


@pytest.mark.asyncio
async def test_admin_balance_requires_internal_key(client: AsyncClient, seller: Profile):
    response = await client.get(f"/wallet/users/{seller.id}/balance")
    assert response.status_code == 401

    response = await client.get(f"/wallet/users/{seller.id}/balance", headers=INTERNAL_HEADERS)
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_transaction_history_paginates(test_session: AsyncSession, seller: Profile):
    from datetime import datetime, timedelta

    base = datetime(2026, 1, 1)
    for i in range(5):
        test_session.add(WalletTransaction(
            user_id=seller.id,
            type="credit",
            amount=(i + 1) * 1000,
            reason=f"sale {i}",
            created_at=base + timedelta(minutes=i),
        ))
    await test_session.commit()

    service = WalletService(test_session)
    first = await service.get_transaction_history(seller.id, limit=2)
    second = await service.get_transaction_history(seller.id, limit=2, offset=2)

    assert [t["reason"] for t in first] == ["sale 4", "sale 3"]
    assert [t["reason"] for t in second] == ["sale 2", "sale 1"]
    assert first[0]["amount"] == 50
    assert first[0]["type_label"] == "Credited"


# --- Credit on collection ---

@pytest.mark.asyncio
async def test_credit_on_collection(
    client: AsyncClient,
    test_session: AsyncSession,
    seller: Profile,
    order: Order,
):
    response = await client.post(
        "/wallet/credit-on-collection",
        json={"order_id": order.id, "seller_id": seller.id},
        headers=INTERNAL_HEADERS,
    )

    assert response.status_code == 200
    assert response.json() == {"success": True, "credit_amount": 22500, "new_balance": 22500}

    wallet = await test_session.get(Wallet, seller.id)
    await test_session.refresh(wallet)
    assert wallet.available_balance == 22500
    assert wallet.total_earned == 22500

    txs = (await test_session.execute(
        select(WalletTransaction).where(WalletTransaction.user_id == seller.id)
    )).scalars().all()
    assert [(t.type, t.amount, t.reference_order_id) for t in txs] == [("credit", 22500, order.id)]

    notes = (await test_session.execute(
        select(OrderNotification).where(OrderNotification.user_id == seller.id)
    )).scalars().all()
    assert [n.type for n in notes] == ["wallet_credited"]
    assert "R225.00" in notes[0].message


@pytest.mark.asyncio
async def test_credit_is_idempotent(
    client: AsyncClient,
    seller: Profile,
    order: Order,
):
    body = {"order_id": order.id, "seller_id": seller.id}
    first = await client.post("/wallet/credit-on-collection", json=body, headers=INTERNAL_HEADERS)
    second = await client.post("/wallet/credit-on-collection", json=body, headers=INTERNAL_HEADERS)

    assert first.status_code == 200
    assert second.status_code == 409


@pytest.mark.asyncio
async def test_credit_uses_order_total_without_book(
    test_session: AsyncSession,
    buyer: Profile,
    seller: Profile,
):
    order = Order(buyer_id=buyer.id, seller_id=seller.id, status="delivered", total_amount=Decimal("100.00"))
    test_session.add(order)
    await test_session.commit()

    result = await WalletService(test_session).credit_wallet_on_collection(order.id, seller.id)
    assert result["credit_amount"] == 9000


@pytest.mark.asyncio
async def test_credit_checks(
    test_session: AsyncSession,
    seller: Profile,
    stranger: Profile,
    order: Order,
):
    service = WalletService(test_session)

    with pytest.raises(WalletOrderNotFoundError):
        await service.credit_wallet_on_collection("missing", seller.id)

    with pytest.raises(WalletAccessDeniedError):
        await service.credit_wallet_on_collection(order.id, stranger.id)

    order.status = "refunded"
    await test_session.commit()
    with pytest.raises(OrderNotCreditableError):
        await service.credit_wallet_on_collection(order.id, seller.id)


@pytest.mark.asyncio
async def test_credit_twice_via_service(test_session: AsyncSession, seller: Profile, order: Order):
    service = WalletService(test_session)
    await service.credit_wallet_on_collection(order.id, seller.id)
    await test_session.commit()

    with pytest.raises(AlreadyCreditedError):
        await service.credit_wallet_on_collection(order.id, seller.id)


@pytest.mark.asyncio
async def test_one_credit_row_per_order(test_session: AsyncSession, seller: Profile, order: Order):
    test_session.add_all([
        WalletTransaction(user_id=seller.id, type="credit", amount=100, reference_order_id=order.id),
        WalletTransaction(user_id=seller.id, type="debit", amount=100, reference_order_id=order.id),
    ])
    await test_session.commit()

    test_session.add(WalletTransaction(user_id=seller.id, type="credit", amount=100, reference_order_id=order.id))
    with pytest.raises(IntegrityError):
        await test_session.commit()
    await test_session.rollback()


@pytest.mark.asyncio
async def test_concurrent_credit_loses_on_unique_index(
    test_session: AsyncSession,
    seller: Profile,
    order: Order,
):
    service = WalletService(test_session)
    await service.credit_wallet_on_collection(order.id, seller.id)
    await test_session.commit()

    # The other request already passed the existence check
    with patch.object(WalletService, "_already_credited", return_value=False):
        with pytest.raises(AlreadyCreditedError) as exc:
            await service.credit_wallet_on_collection(order.id, seller.id)
    await test_session.rollback()

    assert exc.value.status_code == 409

    wallet = await test_session.get(Wallet, seller.id)
    await test_session.refresh(wallet)
    assert wallet.available_balance == 22500
    credits = (await test_session.execute(
        select(WalletTransaction).where(WalletTransaction.type == "credit")
    )).scalars().all()
    assert len(credits) == 1


@pytest.mark.asyncio
async def test_credit_pays_referring_affiliate(
    test_session: AsyncSession,
    seller: Profile,
    stranger: Profile,
    order: Order,
):
    stranger.is_affiliate = True
    stranger.affiliate_code = "BOOKS10"
    test_session.add(AffiliateReferral(affiliate_id=stranger.id, referred_user_id=seller.id))
    await test_session.commit()

    await WalletService(test_session).credit_wallet_on_collection(order.id, seller.id)
    await test_session.commit()

    earnings = (await test_session.execute(select(AffiliateEarning))).scalars().all()
    assert len(earnings) == 1
    assert earnings[0].affiliate_id == stranger.id
    assert earnings[0].order_id == order.id
    assert Decimal(earnings[0].amount) == Decimal("10.00")


# --- Payouts ---

@pytest.mark.asyncio
async def test_request_payout_holds_funds(
    client: AsyncClient,
    test_session: AsyncSession,
    funded_seller: Profile,
):
    response = await client.post("/wallet/payouts", json={"amount": 200}, headers=auth_header(funded_seller.id))

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "pending"
    assert data["amount"] == 20000

    wallet = await test_session.get(Wallet, funded_seller.id)
    await test_session.refresh(wallet)
    assert wallet.available_balance == 30000
    assert wallet.pending_balance == 20000


@pytest.mark.asyncio
async def test_payout_requires_banking(
    client: AsyncClient,
    test_session: AsyncSession,
    seller: Profile,
):
    test_session.add(Wallet(user_id=seller.id, available_balance=50000, pending_balance=0, total_earned=50000))
    await test_session.commit()

    response = await client.post("/wallet/payouts", json={"amount": 200}, headers=auth_header(seller.id))

    assert response.status_code == 400
    assert "Banking details" in response.json()["detail"]


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", [50, 501])
async def test_payout_amount_limits(
    test_session: AsyncSession,
    funded_seller: Profile,
    amount: int,
):
    with pytest.raises(InvalidPayoutError) as exc:
        await WalletService(test_session).request_payout(funded_seller.id, amount)
    assert exc.value.status_code == 400


@pytest.mark.asyncio
async def test_approve_payout(
    client: AsyncClient,
    test_session: AsyncSession,
    funded_seller: Profile,
):
    payout = await WalletService(test_session).request_payout(funded_seller.id, 100)
    await test_session.commit()

    response = await client.post(
        f"/wallet/payouts/{payout.id}/resolve",
        json={"approve": True, "note": "EFT sent"},
        headers=INTERNAL_HEADERS,
    )
    assert response.status_code == 200
    assert response.json()["status"] == "approved"

    wallet = await test_session.get(Wallet, funded_seller.id)
    await test_session.refresh(wallet)
    assert wallet.available_balance == 40000
    assert wallet.pending_balance == 0

    types = (await test_session.execute(
        select(WalletTransaction.type).where(WalletTransaction.reference_payout_id == payout.id)
    )).scalars().all()
    assert sorted(types) == ["debit", "hold"]

    seller_id = funded_seller.id
    test_session.expire_all()
    history = await WalletService(test_session).get_transaction_history(seller_id)
    hold = next(tx for tx in history if tx["type"] == "hold")
    assert hold["status"] == "approved"


@pytest.mark.asyncio
async def test_reject_payout_releases_funds(test_session: AsyncSession, funded_seller: Profile):
    service = WalletService(test_session)
    payout = await service.request_payout(funded_seller.id, 100)
    await service.resolve_payout(payout.id, approve=False, note="Account name mismatch")
    await test_session.commit()

    wallet = await test_session.get(Wallet, funded_seller.id)
    assert wallet.available_balance == 50000
    assert wallet.pending_balance == 0

    note = (await test_session.execute(
        select(OrderNotification).where(OrderNotification.type == "payout_rejected")
    )).scalar_one()
    assert note.user_id == funded_seller.id
    assert "Account name mismatch" in note.message

    hold = (await test_session.execute(
        select(WalletTransaction).where(
            WalletTransaction.reference_payout_id == payout.id,
            WalletTransaction.type == "hold",
        )
    )).scalar_one()
    assert hold.status == "rejected"


@pytest.mark.asyncio
async def test_resolve_payout_only_once(
    client: AsyncClient,
    test_session: AsyncSession,
    funded_seller: Profile,
):
    payout = await WalletService(test_session).request_payout(funded_seller.id, 100)
    await test_session.commit()

    url = f"/wallet/payouts/{payout.id}/resolve"
    first = await client.post(url, json={"approve": True}, headers=INTERNAL_HEADERS)
    second = await client.post(url, json={"approve": False}, headers=INTERNAL_HEADERS)

    assert first.status_code == 200
    assert second.status_code == 409

    missing = await client.post("/wallet/payouts/nope/resolve", json={"approve": True}, headers=INTERNAL_HEADERS)
    assert missing.status_code == 404

    assert (await test_session.get(PayoutRequest, payout.id)) is not None
