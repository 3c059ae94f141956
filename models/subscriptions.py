"""Subscription model linking a subscriber to a channel."""
from sqlalchemy import Column, DateTime, ForeignKey, UniqueConstraint, Uuid, func
from uuid import uuid4
from .base import Base


class Subscription(Base):
    """
    SQLAlchemy model for channel subscriptions.
    
    Both sides reference users: ``subscriber`` follows ``channel``.
    """
    __tablename__ = "subscriptions"
    __table_args__ = (
        UniqueConstraint("subscriber_id", "channel_id", name="uq_subscriptions_subscriber_channel"),
    )
    
    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4, index=True)
    subscriber_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    channel_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
