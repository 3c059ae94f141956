from .auth import (
    UserResponse, UserLogin, PasswordChange, AccountUpdate,
    RefreshTokenRequest, Token, LoginResponse, TokenPayload,
)
from .channels import ChannelProfile
from .responses import ApiResponse, ErrorResponse

__all__ = ["UserResponse", "UserLogin", "PasswordChange", "AccountUpdate",
           "RefreshTokenRequest", "Token", "LoginResponse", "TokenPayload",
           "ChannelProfile", "ApiResponse", "ErrorResponse"]
