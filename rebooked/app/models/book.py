from sqlalchemy import String, ForeignKey, DateTime, DECIMAL, Boolean, Index
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime
from typing import Optional
from rebooked.app.core.base import Base, new_uuid, utcnow


class Book(Base):
    __tablename__ = 'books'

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    seller_id: Mapped[str] = mapped_column(String(36), ForeignKey('profiles.id'))
    title: Mapped[str] = mapped_column(String(500))
    author: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    price: Mapped[float] = mapped_column(DECIMAL(10, 2))
    condition: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    sold: Mapped[bool] = mapped_column(Boolean, default=False)
    # Set once the seller finishes banking setup
    seller_subaccount_code: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    __table_args__ = (
        Index('ix_books_seller_id', 'seller_id'),
        Index('ix_books_seller_sold', 'seller_id', 'sold'),
    )
