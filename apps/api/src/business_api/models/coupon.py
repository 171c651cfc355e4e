"""Coupons issued against the prize catalog."""

from __future__ import annotations

from datetime import datetime
from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, String, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from business_api.db.base import Base
from business_api.db.time import ensure_aware, utcnow


class Coupon(Base):
    """Redeemable reward instance; expiry and redemption are independent flags."""

    __tablename__ = "coupons"
    __table_args__ = (
        Index("ix_coupons_business_user", "business_id", "user_id"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    business_id = Column(
        UUID(as_uuid=True),
        ForeignKey("businesses.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id = Column(String(64), nullable=False)
    prize_id = Column(UUID(as_uuid=True), ForeignKey("prizes.id", ondelete="RESTRICT"), nullable=False)
    code = Column(String(64), nullable=False, unique=True)
    is_redeemed = Column(Boolean, nullable=False, default=False, server_default="false")
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    expired_at = Column(DateTime(timezone=True), nullable=True)
    redeemed_at = Column(DateTime(timezone=True), nullable=True)

    prize = relationship("Prize", lazy="joined")

    def is_expired(self, now: datetime) -> bool:
        if self.expired_at is None:
            return False
        return ensure_aware(self.expired_at) <= now

    def is_valid(self, now: datetime) -> bool:
        return not self.is_redeemed and not self.is_expired(now)
