"""User model for accounts and authentication."""
from sqlalchemy import Column, String, DateTime, Text, Uuid, func
from uuid import uuid4
from .base import Base


class User(Base):
    """
    SQLAlchemy model for users.
    
    Stores credentials, profile media and the single currently valid
    refresh token of an account.
    """
    __tablename__ = "users"
    
    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4, index=True)
    username = Column(String, unique=True, nullable=False, index=True)  # Always lowercase
    email = Column(String, unique=True, nullable=False, index=True)
    fullname = Column(String, nullable=False, index=True)
    password = Column(String, nullable=False)  # Argon2 hash
    avatar = Column(String, nullable=False)  # Media host URL
    cover_image = Column(String, nullable=True, default="")
    refresh_token = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
