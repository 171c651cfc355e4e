from uuid import uuid4

from sqlalchemy import Column, DateTime, ForeignKey, Index, String, func
from sqlalchemy.dialects.postgresql import UUID

from business_api.db.base import Base
from business_api.db.time import utcnow


class Stamp(Base):
    """One loyalty point issued to a user during a visit."""

    __tablename__ = "stamps"
    __table_args__ = (
        Index("ix_stamps_business_user", "business_id", "user_id"),
        Index("ix_stamps_business_created", "business_id", "created_at"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    business_id = Column(
        UUID(as_uuid=True),
        ForeignKey("businesses.id", ondelete="CASCADE"),
        nullable=False,
    )
    # Identity lives in the user-service; only the opaque id is stored here.
    user_id = Column(String(64), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
