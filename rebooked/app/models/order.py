from sqlalchemy import String, ForeignKey, DateTime, DECIMAL, Text, Index, Boolean, JSON
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime
from typing import Optional, Any
from rebooked.app.core.base import Base, new_uuid, utcnow


class Order(Base):
    __tablename__ = 'orders'
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    buyer_id: Mapped[str] = mapped_column(String(36), ForeignKey('profiles.id'))
    seller_id: Mapped[str] = mapped_column(String(36), ForeignKey('profiles.id'))
    book_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey('books.id'), nullable=True)
    status: Mapped[str] = mapped_column(String(50), default='pending')
    # Courier-side status reported by BobGo ("collected", "in transit", ...)
    delivery_status: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    tracking_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    delivery_locker_data: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    total_amount: Mapped[Optional[float]] = mapped_column(DECIMAL(10, 2), nullable=True)
    payment_reference: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    # Refund / cancellation
    refund_status: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    refunded_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    cancellation_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True, default=utcnow)

    __table_args__ = (
        Index('ix_orders_buyer_id', 'buyer_id'),
        Index('ix_orders_seller_id', 'seller_id'),
        Index('ix_orders_status', 'status'),
        Index('ix_orders_tracking_number', 'tracking_number'),
        Index('ix_orders_buyer_created', 'buyer_id', 'created_at'),
        Index('ix_orders_seller_created', 'seller_id', 'created_at'),
    )


class OrderNotification(Base):
    __tablename__ = 'order_notifications'
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    order_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey('orders.id'), nullable=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey('profiles.id'))
    type: Mapped[str] = mapped_column(String(50))
    title: Mapped[str] = mapped_column(String(255))
    message: Mapped[str] = mapped_column(Text)
    read: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    __table_args__ = (
        Index('ix_order_notifications_user_read', 'user_id', 'read'),
        Index('ix_order_notifications_order_id', 'order_id'),
    )
