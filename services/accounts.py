"""Account service: registration, credentials, tokens and profile updates."""
import logging
from typing import Optional
from uuid import UUID
from sqlalchemy import exists, false, func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from config import Settings
from errors import AuthError, ConflictError, InternalError, NotFoundError, UploadError, ValidationError
from models.subscriptions import Subscription
from models.users import User
from schemas.auth import LoginResponse, Token, UserResponse
from schemas.channels import ChannelProfile
from services.media import MediaUploadGateway, UploadStatus
from services.security import TokenSigner, hash_password, verify_password

logger = logging.getLogger(__name__)


def _is_blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


class AccountService:
    """Service class for account operations.

    Every operation takes the request's database session first; the signing
    configuration and the media gateway are fixed at construction.
    """

    def __init__(self, settings: Settings, uploader: MediaUploadGateway, signer: Optional[TokenSigner] = None):
        self.settings = settings
        self.uploader = uploader
        self.signer = signer or TokenSigner(settings)

    # Lookups

    @staticmethod
    def get_user_by_id(db: Session, user_id: UUID) -> Optional[User]:
        """Get a user by ID."""
        return db.get(User, user_id)

    @staticmethod
    def get_user_by_login(db: Session, username: Optional[str] = None, email: Optional[str] = None) -> Optional[User]:
        """Get a user matching the username or the email."""
        conditions = []
        if not _is_blank(username):
            conditions.append(User.username == username.strip().lower())
        if not _is_blank(email):
            conditions.append(User.email == email.strip().lower())
        if not conditions:
            return None
        return db.query(User).filter(or_(*conditions)).first()

    @staticmethod
    def _require_user(db: Session, user_id: UUID) -> User:
        user = db.get(User, user_id)
        if user is None:
            raise NotFoundError("User does not exist")
        return user

    # Registration

    def register(
        self,
        db: Session,
        fullname: Optional[str],
        username: Optional[str],
        email: Optional[str],
        password: Optional[str],
        avatar_path: Optional[str],
        cover_image_path: Optional[str] = None
    ) -> UserResponse:
        """Create an account and upload its profile images."""
        if any(_is_blank(field) for field in (fullname, username, email, password)):
            raise ValidationError("All fields are required")

        username = username.strip().lower()
        email = email.strip().lower()

        if self.get_user_by_login(db, username=username, email=email):
            raise ConflictError("User with email or username already exists")

        if not avatar_path:
            raise ValidationError("Avatar file is required")

        avatar = self.uploader.upload(avatar_path)
        if not avatar.ok:
            raise UploadError("Error while uploading avatar")

        # A failed cover upload is tolerated and stored as empty
        cover_image = self.uploader.upload(cover_image_path)
        if cover_image.status is UploadStatus.FAILED:
            logger.warning(f"Cover image upload failed for {username}: {cover_image.error}")

        user = User(
            fullname=fullname.strip(),
            avatar=avatar.url,
            cover_image=cover_image.url or "",
            email=email,
            password=hash_password(password),
            username=username
        )

        try:
            db.add(user)
            db.commit()
        except IntegrityError as e:
            db.rollback()
            logger.warning(f"Registration conflict for {username}: {e}")
            raise ConflictError("User with email or username already exists")
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Error creating user {username}: {e}")
            raise InternalError("Something went wrong while registering the user")

        created_user = db.get(User, user.id, populate_existing=True)
        if created_user is None:
            raise InternalError("Something went wrong while registering the user")

        logger.info(f"Registered user {created_user.id}")
        return UserResponse.model_validate(created_user)

    # Tokens

    def generate_access_and_refresh_tokens(self, db: Session, user_id: UUID) -> Token:
        """Issue a fresh token pair and persist the refresh token on the user."""
        try:
            user = self._require_user(db, user_id)
            access_token = self.signer.create_access_token(user)
            refresh_token = self.signer.create_refresh_token(user)

            user.refresh_token = refresh_token
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Error persisting refresh token for user {user_id}: {e}")
            raise InternalError("Something went wrong while generating refresh and access token")

        return Token(access_token=access_token, refresh_token=refresh_token)

    def login(self, db: Session, password: Optional[str], username: Optional[str] = None, email: Optional[str] = None) -> LoginResponse:
        """Check credentials and issue a token pair."""
        if _is_blank(username) and _is_blank(email):
            raise ValidationError("Username or email is required")

        user = self.get_user_by_login(db, username=username, email=email)
        if not user:
            raise NotFoundError("User does not exist")

        if not password or not verify_password(password, user.password):
            raise AuthError("Invalid user credentials")

        tokens = self.generate_access_and_refresh_tokens(db, user.id)
        logger.info(f"User {user.id} logged in")

        return LoginResponse(
            user=UserResponse.model_validate(user),
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token
        )

    def logout(self, db: Session, user_id: UUID) -> None:
        """Clear the stored refresh token so it can no longer be rotated."""
        user = self._require_user(db, user_id)
        user.refresh_token = None
        db.commit()
        logger.info(f"User {user_id} logged out")

    def refresh_access_token(self, db: Session, incoming_refresh_token: Optional[str]) -> Token:
        """Rotate a refresh token; each stored token can be used exactly once."""
        if not incoming_refresh_token:
            raise AuthError("Unauthorized request")

        payload = self.signer.decode_refresh_token(incoming_refresh_token)
        if payload is None:
            raise AuthError("Invalid refresh token")

        try:
            user_id = UUID(payload.sub)
        except ValueError:
            raise AuthError("Invalid refresh token")

        user = self.get_user_by_id(db, user_id)
        if user is None:
            raise AuthError("Invalid refresh token")

        if incoming_refresh_token != user.refresh_token:
            raise AuthError("Refresh token is expired or used")

        tokens = self.generate_access_and_refresh_tokens(db, user.id)
        logger.info(f"Rotated tokens for user {user.id}")
        return tokens

    def authenticate_access_token(self, db: Session, token: Optional[str]) -> User:
        """Resolve the user named by an access token."""
        if not token:
            raise AuthError("Unauthorized request")

        payload = self.signer.decode_access_token(token)
        if payload is None:
            raise AuthError("Invalid access token")

        try:
            user_id = UUID(payload.sub)
        except ValueError:
            raise AuthError("Invalid access token")

        user = self.get_user_by_id(db, user_id)
        if user is None:
            raise AuthError("Invalid access token")

        return user

    # Profile

    @staticmethod
    def get_current_user(user: User) -> UserResponse:
        return UserResponse.model_validate(user)

    def change_password(self, db: Session, user_id: UUID, old_password: Optional[str], new_password: Optional[str]) -> None:
        """Replace the password hash after checking the old password."""
        if _is_blank(old_password) or _is_blank(new_password):
            raise ValidationError("Old and new password are required")

        user = self._require_user(db, user_id)
        if not verify_password(old_password, user.password):
            raise AuthError("Invalid old password")

        user.password = hash_password(new_password)
        db.commit()
        logger.info(f"Password changed for user {user_id}")

    def update_profile(self, db: Session, user_id: UUID, fullname: Optional[str], email: Optional[str]) -> UserResponse:
        """Update the full name and email of an account."""
        if _is_blank(fullname) or _is_blank(email):
            raise ValidationError("All fields are required")

        email = email.strip().lower()
        user = self._require_user(db, user_id)

        taken = db.query(User).filter(User.email == email, User.id != user.id).first()
        if taken:
            raise ConflictError("Email is already in use")

        user.fullname = fullname.strip()
        user.email = email
        try:
            db.commit()
        except IntegrityError as e:
            db.rollback()
            logger.warning(f"Email update conflict for user {user_id}: {e}")
            raise ConflictError("Email is already in use")
        db.refresh(user)

        return UserResponse.model_validate(user)

    def update_avatar(self, db: Session, user_id: UUID, avatar_path: Optional[str]) -> UserResponse:
        if not avatar_path:
            raise ValidationError("Avatar file is missing")
        return self._replace_image(db, user_id, "avatar", avatar_path, "Error while uploading avatar")

    def update_cover_image(self, db: Session, user_id: UUID, cover_image_path: Optional[str]) -> UserResponse:
        if not cover_image_path:
            raise ValidationError("Cover image file is missing")
        return self._replace_image(db, user_id, "cover_image", cover_image_path, "Error while uploading cover image")

    def _replace_image(self, db: Session, user_id: UUID, field: str, local_path: str, failure_message: str) -> UserResponse:
        user = self._require_user(db, user_id)

        result = self.uploader.upload(local_path)
        if not result.ok:
            raise UploadError(failure_message)

        setattr(user, field, result.url)
        db.commit()
        db.refresh(user)

        return UserResponse.model_validate(user)

    # Channel

    @staticmethod
    def get_channel_profile(db: Session, username: Optional[str], requesting_user_id: Optional[UUID] = None) -> ChannelProfile:
        """
        Read a channel's public profile and subscription counters in one query.

        Args:
            db: Database session
            username: Channel owner's username
            requesting_user_id: Viewer, used for the ``is_subscribed`` flag

        Returns:
            ChannelProfile for the matching user
        """
        if _is_blank(username):
            raise ValidationError("Username is missing")

        subscriber_count = (
            select(func.count(Subscription.id))
            .where(Subscription.channel_id == User.id)
            .correlate(User)
            .scalar_subquery()
        )
        subscribed_to_count = (
            select(func.count(Subscription.id))
            .where(Subscription.subscriber_id == User.id)
            .correlate(User)
            .scalar_subquery()
        )
        if requesting_user_id is None:
            is_subscribed = false()
        else:
            is_subscribed = exists().where(
                Subscription.channel_id == User.id,
                Subscription.subscriber_id == requesting_user_id
            ).correlate(User)

        row = db.query(
            User.fullname,
            User.username,
            User.avatar,
            User.cover_image,
            subscriber_count.label("subscriber_count"),
            subscribed_to_count.label("subscribed_to_count"),
            is_subscribed.label("is_subscribed")
        ).filter(User.username == username.strip().lower()).first()

        if row is None:
            raise NotFoundError("Channel does not exist")

        return ChannelProfile.model_validate(dict(row._mapping))
