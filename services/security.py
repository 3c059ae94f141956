"""Password hashing and JWT signing primitives."""
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import uuid4
from passlib.context import CryptContext
from jose import JWTError, jwt
from pydantic import ValidationError as PydanticValidationError

from config import Settings
from models.users import User
from schemas.auth import TokenPayload


# Password hashing with Argon2
pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    return pwd_context.verify(plain_password, hashed_password)


def hash_password(password: str) -> str:
    """Hash a password."""
    return pwd_context.hash(password)


class TokenSigner:
    """Signs and verifies access and refresh tokens.

    Access and refresh tokens are signed with separate secrets so that one
    kind can never be accepted in place of the other.
    """

    def __init__(self, settings: Settings):
        self.algorithm = settings.JWT_ALGORITHM
        self.access_secret = settings.ACCESS_TOKEN_SECRET
        self.refresh_secret = settings.REFRESH_TOKEN_SECRET
        self.access_expires = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
        self.refresh_expires = timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)

    def create_access_token(self, user: User, expires_delta: Optional[timedelta] = None) -> str:
        """Create a JWT access token carrying the user's identity claims."""
        now = datetime.now(timezone.utc)
        to_encode = {
            "sub": str(user.id),
            "username": user.username,
            "email": user.email,
            "fullname": user.fullname,
            "exp": now + (expires_delta or self.access_expires),
            "iat": now,
            "jti": uuid4().hex,
            "type": ACCESS_TOKEN_TYPE
        }

        return jwt.encode(to_encode, self.access_secret, algorithm=self.algorithm)

    def create_refresh_token(self, user: User, expires_delta: Optional[timedelta] = None) -> str:
        """Create a JWT refresh token carrying only the user id."""
        now = datetime.now(timezone.utc)
        to_encode = {
            "sub": str(user.id),
            "exp": now + (expires_delta or self.refresh_expires),
            "iat": now,
            "jti": uuid4().hex,
            "type": REFRESH_TOKEN_TYPE
        }

        return jwt.encode(to_encode, self.refresh_secret, algorithm=self.algorithm)

    def decode_access_token(self, token: str) -> Optional[TokenPayload]:
        return self._decode(token, self.access_secret, ACCESS_TOKEN_TYPE)

    def decode_refresh_token(self, token: str) -> Optional[TokenPayload]:
        return self._decode(token, self.refresh_secret, REFRESH_TOKEN_TYPE)

    def _decode(self, token: str, secret: str, expected_type: str) -> Optional[TokenPayload]:
        """Decode and validate a JWT token; None when it does not verify."""
        try:
            payload = jwt.decode(token, secret, algorithms=[self.algorithm])
        except JWTError:
            return None

        if payload.get("type") != expected_type or not payload.get("sub"):
            return None

        try:
            return TokenPayload(**payload)
        except PydanticValidationError:
            return None
