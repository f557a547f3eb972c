from sqlalchemy import String, DateTime, Boolean, JSON, Index
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime
from typing import Optional, Any
from rebooked.app.core.base import Base, new_uuid, utcnow


class Profile(Base):
    __tablename__ = 'profiles'

    # Same id as the auth provider's user
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    full_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    role: Mapped[str] = mapped_column(String(20), default='user')
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    # Affiliate programme
    is_affiliate: Mapped[bool] = mapped_column(Boolean, default=False)
    affiliate_code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    # Banking
    subaccount_code: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    preferences: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)

    # Seller pickup address: {"street": ..., "city": ..., "province": ..., "postal_code": ...}
    pickup_address: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)

    # Saved BobGo lockers (full location payload as returned by the locker search)
    preferred_delivery_locker_data: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    preferred_delivery_locker_saved_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    preferred_pickup_locker_data: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    preferred_pickup_locker_saved_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    __table_args__ = (
        Index('ix_profiles_affiliate_code', 'affiliate_code'),
        Index('ix_profiles_subaccount_code', 'subaccount_code'),
    )
