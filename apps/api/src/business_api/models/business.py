"""Businesses and their prize catalog."""

from __future__ import annotations

from uuid import uuid4

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import UUID

from business_api.db.base import Base
from business_api.db.time import utcnow


class Business(Base):
    """A merchant running a stamp-card programme."""

    __tablename__ = "businesses"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, server_default=func.now(), nullable=False
    )


class Prize(Base):
    """Catalog entry unlocked once a customer collects ``points_required`` stamps."""

    __tablename__ = "prizes"
    __table_args__ = (
        CheckConstraint("points_required > 0", name="points_required_positive"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    business_id = Column(
        UUID(as_uuid=True),
        ForeignKey("businesses.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    points_required = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, server_default=func.now(), nullable=False
    )
