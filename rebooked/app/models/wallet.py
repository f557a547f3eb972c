from sqlalchemy import String, ForeignKey, DateTime, BigInteger, Text, Index, text
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime
from typing import Optional
from rebooked.app.core.base import Base, new_uuid, utcnow


class Wallet(Base):
    """Seller earnings. All amounts are in cents."""
    __tablename__ = 'wallets'
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey('profiles.id'), primary_key=True)
    available_balance: Mapped[int] = mapped_column(BigInteger, default=0)
    pending_balance: Mapped[int] = mapped_column(BigInteger, default=0)
    total_earned: Mapped[int] = mapped_column(BigInteger, default=0)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)


class WalletTransaction(Base):
    __tablename__ = 'wallet_transactions'
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey('profiles.id'))
    type: Mapped[str] = mapped_column(String(20))  # credit / debit / hold / release
    amount: Mapped[int] = mapped_column(BigInteger)
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    reference_order_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey('orders.id'), nullable=True)
    reference_payout_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey('payout_requests.id'), nullable=True)
    status: Mapped[str] = mapped_column(String(20), default='completed')
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    __table_args__ = (
        Index('ix_wallet_transactions_user_created', 'user_id', 'created_at'),
        Index('ix_wallet_transactions_order_type', 'reference_order_id', 'type'),
        # One sale credit per order
        Index(
            'uq_wallet_transactions_order_credit',
            'reference_order_id',
            unique=True,
            postgresql_where=text("type = 'credit'"),
            sqlite_where=text("type = 'credit'"),
        ),
    )


class PayoutRequest(Base):
    __tablename__ = 'payout_requests'
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey('profiles.id'))
    amount: Mapped[int] = mapped_column(BigInteger)
    status: Mapped[str] = mapped_column(String(20), default='pending')
    subaccount_code: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    __table_args__ = (
        Index('ix_payout_requests_user_status', 'user_id', 'status'),
    )
