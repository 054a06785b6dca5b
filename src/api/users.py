"""Account, session and profile endpoints under /api/v1/users."""

from typing import Any, Optional

import structlog
from fastapi import APIRouter, Body, Depends, File, Form, Request, UploadFile, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from src.api.dependencies import (
    ACCESS_COOKIE,
    REFRESH_COOKIE,
    get_account_service,
    get_app_settings,
    get_current_account,
    get_media_storage,
    get_profile_service,
    get_token_service,
)
from src.config import Settings
from src.errors import (
    AppError,
    ConflictError,
    InternalError,
    NotFoundError,
    UnauthenticatedError,
    ValidationError,
)
from src.models.account import Account, TokenPair
from src.models.auth import (
    LoginRequest,
    RefreshRequest,
    ResetPasswordRequest,
    UpdateAccountRequest,
)
from src.models.response import ApiResponse
from src.services.account_service import AccountService, validate_password
from src.services.media_service import MediaStorage
from src.services.profile_service import ProfileService
from src.services.token_service import TokenService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/v1/users", tags=["Users"])


def _respond(status_code: int, message: str, data: Any = None, **extra: Any) -> JSONResponse:
    """Wrap a payload in the success envelope."""
    envelope = ApiResponse(
        status_code=status_code,
        data=data if data is not None else {},
        message=message,
        **extra,
    )
    return JSONResponse(status_code=status_code, content=jsonable_encoder(envelope, by_alias=True))


def _set_session_cookies(response: JSONResponse, pair: TokenPair, settings: Settings) -> None:
    response.set_cookie(
        ACCESS_COOKIE,
        pair.access_token,
        max_age=settings.access_token_max_age,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
    )
    response.set_cookie(
        REFRESH_COOKIE,
        pair.refresh_token,
        max_age=settings.refresh_token_max_age,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
    )


def _clear_session_cookies(response: JSONResponse, settings: Settings) -> None:
    for name in (ACCESS_COOKIE, REFRESH_COOKIE):
        response.delete_cookie(
            name, httponly=True, secure=settings.cookie_secure, samesite="lax"
        )


async def _store_upload(media: MediaStorage, upload: UploadFile, error_message: str) -> str:
    """Read an uploaded file and hand it to media storage."""
    content = await upload.read()
    try:
        return await media.store(upload.filename or "", content, upload.content_type)
    except InternalError as e:
        raise InternalError(error_message) from e


def _has_file(upload: Optional[UploadFile]) -> bool:
    return upload is not None and bool(upload.filename)


@router.get("/")
async def users_root() -> JSONResponse:
    return _respond(status.HTTP_200_OK, "Stream Hub Users route")


@router.post("/register")
async def register(
    username: str = Form(default=""),
    email: str = Form(default=""),
    full_name: str = Form(default="", alias="fullName"),
    password: str = Form(default=""),
    avatar: Optional[UploadFile] = File(default=None),
    cover_image: Optional[UploadFile] = File(default=None, alias="coverImage"),
    accounts: AccountService = Depends(get_account_service),
    media: MediaStorage = Depends(get_media_storage),
) -> JSONResponse:
    """Register a new account.

    Checks run in order: blank fields (400), existing username or email
    (409), password length (400), missing avatar (400). Nothing is stored
    until they pass. The cover image is optional and a rejected or failed
    cover upload leaves it empty.

    Returns:
        201 with the created account under ``user``
    """
    if not all(f.strip() for f in (username, email, full_name, password)):
        raise ValidationError("All fields are required")

    if await accounts.identity_exists(username, email):
        raise ConflictError("User already exists")

    validate_password(password)

    if not _has_file(avatar):
        raise ValidationError("Avatar is required")

    avatar_url = await _store_upload(media, avatar, "Error uploading avatar")

    cover_image_url = ""
    if _has_file(cover_image):
        try:
            cover_image_url = await _store_upload(media, cover_image, "Error uploading cover image")
        except AppError as e:
            logger.warning(
                "cover_image_upload_skipped",
                username=username.strip().lower(),
                reason=e.message,
            )

    account = await accounts.create_account(
        username=username,
        email=email,
        full_name=full_name,
        password=password,
        avatar_url=avatar_url,
        cover_image_url=cover_image_url,
    )

    return _respond(
        status.HTTP_201_CREATED,
        "User created successfully",
        data=None,
        user=account,
    )


@router.post("/login")
async def login(
    request: LoginRequest,
    accounts: AccountService = Depends(get_account_service),
    tokens: TokenService = Depends(get_token_service),
    settings: Settings = Depends(get_app_settings),
) -> JSONResponse:
    """Log in with username or email and password.

    Sets the accessToken and refreshToken cookies and returns both tokens.

    Raises:
        ValidationError: If no identity or no password is given
        UnauthenticatedError: If the identity is unknown or the password is wrong
    """
    identity = (request.username or request.email or "").strip()
    if not identity:
        raise ValidationError("Username or email is required")
    if not request.password:
        raise ValidationError("Password is required")

    record = await accounts.verify_credentials(identity, request.password)
    if record is None:
        raise UnauthenticatedError("Invalid user credentials")

    account = record.to_public()
    pair = await tokens.issue_pair(account)

    logger.info("user_logged_in", account_id=str(account.id), username=account.username)

    response = _respond(
        status.HTTP_200_OK,
        "User logged in successfully",
        data=account,
        accessToken=pair.access_token,
        refreshToken=pair.refresh_token,
    )
    _set_session_cookies(response, pair, settings)
    return response


@router.post("/logout")
async def logout(
    current_account: Account = Depends(get_current_account),
    tokens: TokenService = Depends(get_token_service),
    settings: Settings = Depends(get_app_settings),
) -> JSONResponse:
    """Clear the stored refresh token and both session cookies."""
    await tokens.revoke(current_account.id)
    logger.info("user_logged_out", account_id=str(current_account.id))

    response = _respond(status.HTTP_200_OK, "User logged out")
    _clear_session_cookies(response, settings)
    return response


@router.post("/refresh-access-token")
async def refresh_access_token(
    http_request: Request,
    body: Optional[RefreshRequest] = Body(default=None),
    tokens: TokenService = Depends(get_token_service),
    settings: Settings = Depends(get_app_settings),
) -> JSONResponse:
    """Exchange the refresh token (cookie or body) for a new pair.

    Raises:
        UnauthenticatedError: If no refresh token is presented
        UnauthorizedError: If the token is invalid, expired, or superseded
    """
    presented = http_request.cookies.get(REFRESH_COOKIE) or (body.refresh_token if body else None)
    if not presented:
        raise UnauthenticatedError("Unauthorized request")

    pair = await tokens.rotate(presented)

    response = _respond(status.HTTP_200_OK, "Access token refreshed", data=pair)
    _set_session_cookies(response, pair, settings)
    return response


@router.post("/reset-password")
async def reset_password(
    request: ResetPasswordRequest,
    current_account: Account = Depends(get_current_account),
    accounts: AccountService = Depends(get_account_service),
) -> JSONResponse:
    """Change the password after checking the current one.

    Raises:
        ValidationError: If either password is blank or the old one is wrong
    """
    if not request.old_password or not request.new_password:
        raise ValidationError("Old and new passwords are required")

    record = await accounts.find_record_by_id(current_account.id)
    if record is None:
        raise NotFoundError("User not found")

    if not await accounts.verify_password(record, request.old_password):
        raise ValidationError("Invalid old password")

    await accounts.update_password(current_account.id, request.new_password)
    return _respond(status.HTTP_200_OK, "Password changed successfully")


@router.get("/current-user")
async def current_user(current_account: Account = Depends(get_current_account)) -> JSONResponse:
    return _respond(
        status.HTTP_200_OK,
        "Current user fetched successfully",
        data={"user": current_account},
    )


@router.patch("/update-account")
async def update_account(
    request: UpdateAccountRequest,
    current_account: Account = Depends(get_current_account),
    accounts: AccountService = Depends(get_account_service),
) -> JSONResponse:
    account = await accounts.update_profile(
        current_account.id,
        full_name=request.full_name,
        email=request.email,
    )
    return _respond(
        status.HTTP_200_OK,
        "Account details updated successfully",
        data={"user": account},
    )


@router.patch("/update-avatar")
async def update_avatar(
    avatar: Optional[UploadFile] = File(default=None),
    current_account: Account = Depends(get_current_account),
    accounts: AccountService = Depends(get_account_service),
    media: MediaStorage = Depends(get_media_storage),
) -> JSONResponse:
    if not _has_file(avatar):
        raise ValidationError("Avatar file is missing")

    avatar_url = await _store_upload(media, avatar, "Error uploading avatar")
    account = await accounts.update_avatar(current_account.id, avatar_url)
    return _respond(status.HTTP_200_OK, "Avatar updated successfully", data={"user": account})


@router.patch("/update-cover-image")
async def update_cover_image(
    cover_image: Optional[UploadFile] = File(default=None, alias="coverImage"),
    current_account: Account = Depends(get_current_account),
    accounts: AccountService = Depends(get_account_service),
    media: MediaStorage = Depends(get_media_storage),
) -> JSONResponse:
    if not _has_file(cover_image):
        raise ValidationError("Cover image file is missing")

    cover_image_url = await _store_upload(media, cover_image, "Error uploading cover image")
    account = await accounts.update_cover_image(current_account.id, cover_image_url)
    return _respond(
        status.HTTP_200_OK,
        "Cover image updated successfully",
        data={"user": account},
    )


@router.get("/channel/{username}")
async def channel_profile(
    username: str,
    current_account: Account = Depends(get_current_account),
    profiles: ProfileService = Depends(get_profile_service),
) -> JSONResponse:
    """Channel profile with subscriber counts as seen by the caller."""
    profile = await profiles.get_channel_profile(username, viewer_id=current_account.id)
    return _respond(status.HTTP_200_OK, "User channel fetched successfully", data=profile)


@router.get("/watch-history")
async def watch_history(
    current_account: Account = Depends(get_current_account),
    profiles: ProfileService = Depends(get_profile_service),
) -> JSONResponse:
    """The caller's watch history in stored order, with video owners embedded."""
    videos = await profiles.get_watch_history(current_account)
    return _respond(status.HTTP_200_OK, "Watch history fetched successfully", data=videos)
