"""Authentication schemas for requests and responses."""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict
from uuid import UUID

from .base import CamelModel


class UserResponse(CamelModel):
    """Sanitized user; never carries the password hash or refresh token."""
    id: UUID
    username: str
    email: str
    fullname: str
    avatar: str
    cover_image: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    
    model_config = ConfigDict(from_attributes=True)


class UserLogin(CamelModel):
    """Schema for user login. Either username or email identifies the account."""
    username: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class PasswordChange(CamelModel):
    """Schema for password changes."""
    old_password: Optional[str] = None
    new_password: Optional[str] = None


class AccountUpdate(CamelModel):
    """Schema for profile updates."""
    fullname: Optional[str] = None
    email: Optional[str] = None


class RefreshTokenRequest(CamelModel):
    """Body fallback for clients that cannot send the refresh cookie."""
    refresh_token: Optional[str] = None


class Token(CamelModel):
    """Schema for an issued access/refresh token pair."""
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class LoginResponse(Token):
    """Schema for a successful login."""
    user: UserResponse


class TokenPayload(BaseModel):
    """Schema for JWT token payload."""
    sub: str  # subject (user id)
    exp: int  # expiration time
    iat: int  # issued at
    type: str  # token type (access/refresh)
    jti: Optional[str] = None
    username: Optional[str] = None
    email: Optional[str] = None
    fullname: Optional[str] = None
