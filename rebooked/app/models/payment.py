from sqlalchemy import String, ForeignKey, DateTime, DECIMAL, Text, Index, JSON
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime
from typing import Optional, Any
from rebooked.app.core.base import Base, new_uuid, utcnow


class PaymentTransaction(Base):
    """A checkout payment as confirmed by the gateway."""
    __tablename__ = 'payment_transactions'
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    order_id: Mapped[str] = mapped_column(String(36), ForeignKey('orders.id'))
    reference: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    amount: Mapped[Optional[float]] = mapped_column(DECIMAL(10, 2), nullable=True)
    status: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    # Raw gateway payloads; older rows were written by the Paystack integration
    bobpay_response: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    paystack_response: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    __table_args__ = (
        Index('ix_payment_transactions_order_created', 'order_id', 'created_at'),
    )


class RefundTransaction(Base):
    """Audit row for every refund attempt, successful or not."""
    __tablename__ = 'refund_transactions'
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    order_id: Mapped[str] = mapped_column(String(36), ForeignKey('orders.id'))
    initiated_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    amount: Mapped[float] = mapped_column(DECIMAL(10, 2), default=0)
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20))
    transaction_reference: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    provider_refund_reference: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    provider_response: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    __table_args__ = (
        Index('ix_refund_transactions_order_id', 'order_id'),
        Index('ix_refund_transactions_status', 'status'),
    )
