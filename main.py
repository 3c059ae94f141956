from fastapi import FastAPI, APIRouter, Depends, File, Form, Request, Response, UploadFile, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordBearer
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Optional
from uuid import uuid4
import os
import logging

from config import Settings, get_settings

logging.basicConfig(
    level=get_settings().LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)

# Local imports
from database import get_db, engine
from errors import AppError
from models import Base, User
from schemas import (
    UserResponse, UserLogin, PasswordChange, AccountUpdate, RefreshTokenRequest,
    Token, LoginResponse, ChannelProfile, ApiResponse, ErrorResponse
)
from services import AccountService, MediaUploadGateway
from sqlalchemy.orm import Session
from sqlalchemy import text


ACCESS_TOKEN_COOKIE = "accessToken"
REFRESH_TOKEN_COOKIE = "refreshToken"
COOKIE_OPTIONS = {"httponly": True, "secure": True}


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()

    # Create tables if they don't exist
    Base.metadata.create_all(bind=engine)
    os.makedirs(settings.UPLOAD_TMP_DIR, exist_ok=True)
    logger.info("Account service started")

    yield


app = FastAPI(
    title="Account Service",
    version="1.0.0",
    lifespan=lifespan
)

# CORS configuration
origins = get_settings().allowed_origins

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    max_age=3600
)


def _error_response(status_code: int, message: str, errors: Optional[list] = None) -> JSONResponse:
    body = ErrorResponse(status_code=status_code, message=message, errors=errors or [])
    return JSONResponse(status_code=status_code, content=body.model_dump(by_alias=True))


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return _error_response(exc.status_code, exc.message, exc.errors)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"loc": list(error.get("loc", [])), "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]
    return _error_response(status.HTTP_400_BAD_REQUEST, "Invalid request", errors)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _error_response(exc.status_code, str(exc.detail))


@app.get("/health")
async def health_check(db: Session = Depends(get_db)):
    """Liveness check including the database connection."""
    health_status = {"status": "healthy", "service": "account-service", "checks": {}}

    try:
        db.execute(text("SELECT 1"))
        health_status["checks"]["database"] = {"status": "healthy"}
    except Exception as e:
        health_status["checks"]["database"] = {"status": "unhealthy", "error": str(e)}
        health_status["status"] = "unhealthy"

    return health_status


# Service wiring

@lru_cache
def get_media_gateway() -> MediaUploadGateway:
    return MediaUploadGateway(get_settings())


def get_account_service(
    settings: Settings = Depends(get_settings),
    uploader: MediaUploadGateway = Depends(get_media_gateway)
) -> AccountService:
    return AccountService(settings, uploader)


# OAuth2 configuration
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/users/login", auto_error=False)


async def get_current_user(
    request: Request,
    bearer_token: Optional[str] = Depends(oauth2_scheme),
    accounts: AccountService = Depends(get_account_service),
    db: Session = Depends(get_db)
) -> User:
    """Get current user from the access token cookie or bearer header."""
    token = request.cookies.get(ACCESS_TOKEN_COOKIE) or bearer_token
    return accounts.authenticate_access_token(db, token)


async def stage_upload(file: Optional[UploadFile], settings: Settings) -> Optional[str]:
    """Write an uploaded file to the temp directory and return its path."""
    if file is None or not file.filename:
        return None

    os.makedirs(settings.UPLOAD_TMP_DIR, exist_ok=True)
    file_extension = os.path.splitext(file.filename)[1].lower()
    local_path = os.path.join(settings.UPLOAD_TMP_DIR, f"{uuid4().hex}{file_extension}")

    content = await file.read()
    with open(local_path, "wb") as fh:
        fh.write(content)

    return local_path


def discard_staged(*local_paths: Optional[str]) -> None:
    """Remove staged files once the request is done with them."""
    for local_path in local_paths:
        if not local_path:
            continue
        try:
            os.remove(local_path)
        except FileNotFoundError:
            # Already removed by the gateway after a failed upload
            pass
        except OSError as e:
            logger.warning(f"Could not remove staged file {local_path}: {e}")


def set_token_cookies(response: Response, tokens: Token) -> None:
    response.set_cookie(ACCESS_TOKEN_COOKIE, tokens.access_token, **COOKIE_OPTIONS)
    response.set_cookie(REFRESH_TOKEN_COOKIE, tokens.refresh_token, **COOKIE_OPTIONS)


# User endpoints
router = APIRouter(prefix="/api/v1/users", tags=["users"])


@router.post("/register", response_model=ApiResponse[UserResponse], status_code=status.HTTP_201_CREATED)
async def register(
    fullname: Optional[str] = Form(None),
    username: Optional[str] = Form(None),
    email: Optional[str] = Form(None),
    password: Optional[str] = Form(None),
    avatar: Optional[UploadFile] = File(None),
    cover_image: Optional[UploadFile] = File(None, alias="coverImage"),
    settings: Settings = Depends(get_settings),
    accounts: AccountService = Depends(get_account_service),
    db: Session = Depends(get_db)
):
    """Register a new user with an avatar and an optional cover image."""
    avatar_path = await stage_upload(avatar, settings)
    cover_image_path = await stage_upload(cover_image, settings)

    try:
        user = accounts.register(
            db,
            fullname=fullname,
            username=username,
            email=email,
            password=password,
            avatar_path=avatar_path,
            cover_image_path=cover_image_path
        )
    finally:
        discard_staged(avatar_path, cover_image_path)

    return ApiResponse(status_code=status.HTTP_201_CREATED, data=user, message="User registered successfully")


@router.post("/login", response_model=ApiResponse[LoginResponse])
async def login(
    credentials: UserLogin,
    response: Response,
    accounts: AccountService = Depends(get_account_service),
    db: Session = Depends(get_db)
):
    """Login with username or email and password."""
    result = accounts.login(
        db,
        password=credentials.password,
        username=credentials.username,
        email=credentials.email
    )
    set_token_cookies(response, result)

    return ApiResponse(data=result, message="User logged in successfully")


@router.post("/logout", response_model=ApiResponse[dict])
async def logout(
    response: Response,
    current_user: User = Depends(get_current_user),
    accounts: AccountService = Depends(get_account_service),
    db: Session = Depends(get_db)
):
    """Invalidate the stored refresh token and clear the cookies."""
    accounts.logout(db, current_user.id)
    response.delete_cookie(ACCESS_TOKEN_COOKIE, **COOKIE_OPTIONS)
    response.delete_cookie(REFRESH_TOKEN_COOKIE, **COOKIE_OPTIONS)

    return ApiResponse(data={}, message="User logged out")


@router.post("/refresh-token", response_model=ApiResponse[Token])
async def refresh_access_token(
    request: Request,
    response: Response,
    body: Optional[RefreshTokenRequest] = None,
    accounts: AccountService = Depends(get_account_service),
    db: Session = Depends(get_db)
):
    """Rotate the refresh token and issue a new access token."""
    incoming = request.cookies.get(REFRESH_TOKEN_COOKIE) or (body.refresh_token if body else None)

    tokens = accounts.refresh_access_token(db, incoming)
    set_token_cookies(response, tokens)

    return ApiResponse(data=tokens, message="Access token refreshed")


@router.post("/change-password", response_model=ApiResponse[dict])
async def change_password(
    passwords: PasswordChange,
    current_user: User = Depends(get_current_user),
    accounts: AccountService = Depends(get_account_service),
    db: Session = Depends(get_db)
):
    accounts.change_password(db, current_user.id, passwords.old_password, passwords.new_password)
    return ApiResponse(data={}, message="Password changed successfully")


@router.get("/current-user", response_model=ApiResponse[UserResponse])
async def current_user_info(
    current_user: User = Depends(get_current_user),
    accounts: AccountService = Depends(get_account_service)
):
    return ApiResponse(data=accounts.get_current_user(current_user), message="Current user fetched successfully")


@router.patch("/update-account", response_model=ApiResponse[UserResponse])
async def update_account(
    update: AccountUpdate,
    current_user: User = Depends(get_current_user),
    accounts: AccountService = Depends(get_account_service),
    db: Session = Depends(get_db)
):
    user = accounts.update_profile(db, current_user.id, update.fullname, update.email)
    return ApiResponse(data=user, message="Account details updated successfully")


@router.patch("/avatar", response_model=ApiResponse[UserResponse])
async def update_avatar(
    avatar: Optional[UploadFile] = File(None),
    current_user: User = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
    accounts: AccountService = Depends(get_account_service),
    db: Session = Depends(get_db)
):
    avatar_path = await stage_upload(avatar, settings)
    try:
        user = accounts.update_avatar(db, current_user.id, avatar_path)
    finally:
        discard_staged(avatar_path)
    return ApiResponse(data=user, message="Avatar updated successfully")


@router.patch("/cover-image", response_model=ApiResponse[UserResponse])
async def update_cover_image(
    cover_image: Optional[UploadFile] = File(None, alias="coverImage"),
    current_user: User = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
    accounts: AccountService = Depends(get_account_service),
    db: Session = Depends(get_db)
):
    cover_image_path = await stage_upload(cover_image, settings)
    try:
        user = accounts.update_cover_image(db, current_user.id, cover_image_path)
    finally:
        discard_staged(cover_image_path)
    return ApiResponse(data=user, message="Cover image updated successfully")


@router.get("/c/{username}", response_model=ApiResponse[ChannelProfile])
async def channel_profile(
    username: str,
    current_user: User = Depends(get_current_user),
    accounts: AccountService = Depends(get_account_service),
    db: Session = Depends(get_db)
):
    """Get a channel's public profile with subscription counters."""
    profile = accounts.get_channel_profile(db, username, current_user.id)
    return ApiResponse(data=profile, message="User channel fetched successfully")


app.include_router(router)
