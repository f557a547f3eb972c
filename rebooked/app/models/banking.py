from sqlalchemy import String, ForeignKey, DateTime, Text, Index, JSON
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime
from typing import Optional, Any
from rebooked.app.core.base import Base, new_uuid, utcnow


class BankingSubaccount(Base):
    __tablename__ = 'banking_subaccounts'
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey('profiles.id'))
    subaccount_code: Mapped[str] = mapped_column(String(100))
    business_name: Mapped[str] = mapped_column(String(255))
    email: Mapped[str] = mapped_column(String(255))
    bank_name: Mapped[str] = mapped_column(String(255))
    bank_code: Mapped[str] = mapped_column(String(20))
    # Masked for display; the full number is only stored encrypted
    account_number: Mapped[str] = mapped_column(String(32))
    account_number_encrypted: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default='active')
    paystack_response: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    __table_args__ = (
        Index('ix_banking_subaccounts_code', 'subaccount_code'),
        Index('ix_banking_subaccounts_user_id', 'user_id'),
    )
