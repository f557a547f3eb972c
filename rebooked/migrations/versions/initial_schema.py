"""initial marketplace schema

Revision ID: initial_schema
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = 'initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'profiles',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('full_name', sa.String(255), nullable=True),
        sa.Column('role', sa.String(20), nullable=False, server_default='user'),
        sa.Column('created_at', sa.DateTime(), nullable=True, server_default=sa.text('now()')),
        sa.Column('is_affiliate', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('affiliate_code', sa.String(50), nullable=True),
        sa.Column('subaccount_code', sa.String(100), nullable=True),
        sa.Column('preferences', sa.JSON(), nullable=True),
        sa.Column('pickup_address', sa.JSON(), nullable=True),
        sa.Column('preferred_delivery_locker_data', sa.JSON(), nullable=True),
        sa.Column('preferred_delivery_locker_saved_at', sa.DateTime(), nullable=True),
        sa.Column('preferred_pickup_locker_data', sa.JSON(), nullable=True),
        sa.Column('preferred_pickup_locker_saved_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_profiles_affiliate_code', 'profiles', ['affiliate_code'])
    op.create_index('ix_profiles_subaccount_code', 'profiles', ['subaccount_code'])

    op.create_table(
        'books',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('seller_id', sa.String(36), nullable=False),
        sa.Column('title', sa.String(500), nullable=False),
        sa.Column('author', sa.String(255), nullable=True),
        sa.Column('price', sa.DECIMAL(10, 2), nullable=False),
        sa.Column('condition', sa.String(50), nullable=True),
        sa.Column('sold', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('seller_subaccount_code', sa.String(100), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True, server_default=sa.text('now()')),
        sa.ForeignKeyConstraint(['seller_id'], ['profiles.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_books_seller_id', 'books', ['seller_id'])
    op.create_index('ix_books_seller_sold', 'books', ['seller_id', 'sold'])

    op.create_table(
        'orders',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('buyer_id', sa.String(36), nullable=False),
        sa.Column('seller_id', sa.String(36), nullable=False),
        sa.Column('book_id', sa.String(36), nullable=True),
        sa.Column('status', sa.String(50), nullable=False, server_default='pending'),
        sa.Column('delivery_status', sa.String(50), nullable=True),
        sa.Column('tracking_number', sa.String(100), nullable=True),
        sa.Column('delivery_locker_data', sa.JSON(), nullable=True),
        sa.Column('total_amount', sa.DECIMAL(10, 2), nullable=True),
        sa.Column('payment_reference', sa.String(255), nullable=True),
        sa.Column('refund_status', sa.String(50), nullable=True),
        sa.Column('refunded_at', sa.DateTime(), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(), nullable=True),
        sa.Column('cancellation_reason', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True, server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['buyer_id'], ['profiles.id']),
        sa.ForeignKeyConstraint(['seller_id'], ['profiles.id']),
        sa.ForeignKeyConstraint(['book_id'], ['books.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_orders_buyer_id', 'orders', ['buyer_id'])
    op.create_index('ix_orders_seller_id', 'orders', ['seller_id'])
    op.create_index('ix_orders_status', 'orders', ['status'])
    op.create_index('ix_orders_tracking_number', 'orders', ['tracking_number'])
    op.create_index('ix_orders_buyer_created', 'orders', ['buyer_id', 'created_at'])
    op.create_index('ix_orders_seller_created', 'orders', ['seller_id', 'created_at'])

    op.create_table(
        'order_notifications',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('order_id', sa.String(36), nullable=True),
        sa.Column('user_id', sa.String(36), nullable=False),
        sa.Column('type', sa.String(50), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=True, server_default=sa.text('now()')),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id']),
        sa.ForeignKeyConstraint(['user_id'], ['profiles.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_order_notifications_user_read', 'order_notifications', ['user_id', 'read'])
    op.create_index('ix_order_notifications_order_id', 'order_notifications', ['order_id'])

    op.create_table(
        'payment_transactions',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('order_id', sa.String(36), nullable=False),
        sa.Column('reference', sa.String(255), nullable=True),
        sa.Column('amount', sa.DECIMAL(10, 2), nullable=True),
        sa.Column('status', sa.String(50), nullable=True),
        sa.Column('bobpay_response', sa.JSON(), nullable=True),
        sa.Column('paystack_response', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True, server_default=sa.text('now()')),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_payment_transactions_order_created', 'payment_transactions', ['order_id', 'created_at'])

    op.create_table(
        'refund_transactions',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('order_id', sa.String(36), nullable=False),
        sa.Column('initiated_by', sa.String(36), nullable=True),
        sa.Column('amount', sa.DECIMAL(10, 2), nullable=False, server_default='0'),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('transaction_reference', sa.String(255), nullable=True),
        sa.Column('provider_refund_reference', sa.String(255), nullable=True),
        sa.Column('provider_response', sa.JSON(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True, server_default=sa.text('now()')),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_refund_transactions_order_id', 'refund_transactions', ['order_id'])
    op.create_index('ix_refund_transactions_status', 'refund_transactions', ['status'])

    op.create_table(
        'wallets',
        sa.Column('user_id', sa.String(36), nullable=False),
        sa.Column('available_balance', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('pending_balance', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('total_earned', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(), nullable=True, server_default=sa.text('now()')),
        sa.ForeignKeyConstraint(['user_id'], ['profiles.id']),
        sa.PrimaryKeyConstraint('user_id'),
    )

    op.create_table(
        'payout_requests',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('user_id', sa.String(36), nullable=False),
        sa.Column('amount', sa.BigInteger(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('subaccount_code', sa.String(100), nullable=True),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True, server_default=sa.text('now()')),
        sa.Column('resolved_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['profiles.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_payout_requests_user_status', 'payout_requests', ['user_id', 'status'])

    op.create_table(
        'wallet_transactions',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('user_id', sa.String(36), nullable=False),
        sa.Column('type', sa.String(20), nullable=False),
        sa.Column('amount', sa.BigInteger(), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('reference_order_id', sa.String(36), nullable=True),
        sa.Column('reference_payout_id', sa.String(36), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='completed'),
        sa.Column('created_at', sa.DateTime(), nullable=True, server_default=sa.text('now()')),
        sa.ForeignKeyConstraint(['user_id'], ['profiles.id']),
        sa.ForeignKeyConstraint(['reference_order_id'], ['orders.id']),
        sa.ForeignKeyConstraint(['reference_payout_id'], ['payout_requests.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_wallet_transactions_user_created', 'wallet_transactions', ['user_id', 'created_at'])
    op.create_index('ix_wallet_transactions_order_type', 'wallet_transactions', ['reference_order_id', 'type'])
    op.create_index(
        'uq_wallet_transactions_order_credit',
        'wallet_transactions',
        ['reference_order_id'],
        unique=True,
        postgresql_where=sa.text("type = 'credit'"),
    )

    op.create_table(
        'banking_subaccounts',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('user_id', sa.String(36), nullable=False),
        sa.Column('subaccount_code', sa.String(100), nullable=False),
        sa.Column('business_name', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('bank_name', sa.String(255), nullable=False),
        sa.Column('bank_code', sa.String(20), nullable=False),
        sa.Column('account_number', sa.String(32), nullable=False),
        sa.Column('account_number_encrypted', sa.Text(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        sa.Column('paystack_response', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True, server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['profiles.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_banking_subaccounts_code', 'banking_subaccounts', ['subaccount_code'])
    op.create_index('ix_banking_subaccounts_user_id', 'banking_subaccounts', ['user_id'])

    op.create_table(
        'affiliates_referrals',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('affiliate_id', sa.String(36), nullable=False),
        sa.Column('referred_user_id', sa.String(36), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True, server_default=sa.text('now()')),
        sa.ForeignKeyConstraint(['affiliate_id'], ['profiles.id']),
        sa.ForeignKeyConstraint(['referred_user_id'], ['profiles.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('referred_user_id'),
    )
    op.create_index('ix_affiliates_referrals_affiliate_id', 'affiliates_referrals', ['affiliate_id'])

    op.create_table(
        'affiliate_earnings',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('affiliate_id', sa.String(36), nullable=False),
        sa.Column('referred_user_id', sa.String(36), nullable=False),
        sa.Column('book_id', sa.String(36), nullable=True),
        sa.Column('order_id', sa.String(36), nullable=False),
        sa.Column('amount', sa.DECIMAL(10, 2), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True, server_default=sa.text('now()')),
        sa.ForeignKeyConstraint(['affiliate_id'], ['profiles.id']),
        sa.ForeignKeyConstraint(['referred_user_id'], ['profiles.id']),
        sa.ForeignKeyConstraint(['book_id'], ['books.id']),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('order_id'),
    )
    op.create_index('ix_affiliate_earnings_affiliate_id', 'affiliate_earnings', ['affiliate_id'])


def downgrade() -> None:
    op.drop_index('ix_affiliate_earnings_affiliate_id', table_name='affiliate_earnings')
    op.drop_table('affiliate_earnings')
    op.drop_index('ix_affiliates_referrals_affiliate_id', table_name='affiliates_referrals')
    op.drop_table('affiliates_referrals')
    op.drop_index('ix_banking_subaccounts_user_id', table_name='banking_subaccounts')
    op.drop_index('ix_banking_subaccounts_code', table_name='banking_subaccounts')
    op.drop_table('banking_subaccounts')
    op.drop_index('uq_wallet_transactions_order_credit', table_name='wallet_transactions')
    op.drop_index('ix_wallet_transactions_order_type', table_name='wallet_transactions')
    op.drop_index('ix_wallet_transactions_user_created', table_name='wallet_transactions')
    op.drop_table('wallet_transactions')
    op.drop_index('ix_payout_requests_user_status', table_name='payout_requests')
    op.drop_table('payout_requests')
    op.drop_table('wallets')
    op.drop_index('ix_refund_transactions_status', table_name='refund_transactions')
    op.drop_index('ix_refund_transactions_order_id', table_name='refund_transactions')
    op.drop_table('refund_transactions')
    op.drop_index('ix_payment_transactions_order_created', table_name='payment_transactions')
    op.drop_table('payment_transactions')
    op.drop_index('ix_order_notifications_order_id', table_name='order_notifications')
    op.drop_index('ix_order_notifications_user_read', table_name='order_notifications')
    op.drop_table('order_notifications')
    for index in (
        'ix_orders_seller_created', 'ix_orders_buyer_created', 'ix_orders_tracking_number',
        'ix_orders_status', 'ix_orders_seller_id', 'ix_orders_buyer_id',
    ):
        op.drop_index(index, table_name='orders')
    op.drop_table('orders')
    op.drop_index('ix_books_seller_sold', table_name='books')
    op.drop_index('ix_books_seller_id', table_name='books')
    op.drop_table('books')
    op.drop_index('ix_profiles_subaccount_code', table_name='profiles')
    op.drop_index('ix_profiles_affiliate_code', table_name='profiles')
    op.drop_table('profiles')
