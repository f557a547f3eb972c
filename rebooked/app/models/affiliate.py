from sqlalchemy import String, ForeignKey, DateTime, DECIMAL, Index
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime
from typing import Optional
from rebooked.app.core.base import Base, new_uuid, utcnow


class AffiliateReferral(Base):
    __tablename__ = 'affiliates_referrals'

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)

    # Who brought the user in
    affiliate_id: Mapped[str] = mapped_column(String(36), ForeignKey('profiles.id'))

    # The new user; a user can only ever have one referrer
    referred_user_id: Mapped[str] = mapped_column(String(36), ForeignKey('profiles.id'), unique=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    __table_args__ = (
        Index('ix_affiliates_referrals_affiliate_id', 'affiliate_id'),
    )


class AffiliateEarning(Base):
    __tablename__ = 'affiliate_earnings'

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    affiliate_id: Mapped[str] = mapped_column(String(36), ForeignKey('profiles.id'))
    referred_user_id: Mapped[str] = mapped_column(String(36), ForeignKey('profiles.id'))
    book_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey('books.id'), nullable=True)
    # One earning per sale
    order_id: Mapped[str] = mapped_column(String(36), ForeignKey('orders.id'), unique=True)
    amount: Mapped[float] = mapped_column(DECIMAL(10, 2))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    __table_args__ = (
        Index('ix_affiliate_earnings_affiliate_id', 'affiliate_id'),
    )
